"""
Scoring of submitted answers and analytics across all responses of a quiz.
"""
from dataclasses import dataclass, field, asdict
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Sequence, Dict, Any

from tinyquiz.core.exceptions import InvalidAnswers
from tinyquiz.models.question import Question, OPTION_COUNT

UNANSWERED = -1

def round_half_up(numerator: int, denominator: int) -> int:
    """Percentage numerator/denominator*100 rounded half-up (33.5 -> 34)."""
    if denominator == 0:
        return 0
    value = Decimal(numerator * 100) / Decimal(denominator)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

@dataclass
class Score:
    correct: int
    total: int
    percentage: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

@dataclass
class QuestionResult:
    question_index: int
    question: str
    user_answer: int
    correct_answer: int
    is_correct: bool
    explanation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionIndex": self.question_index,
            "question": self.question,
            "userAnswer": self.user_answer,
            "correctAnswer": self.correct_answer,
            "isCorrect": self.is_correct,
            "explanation": self.explanation,
        }

@dataclass
class ScoreResult:
    score: Score
    results: List[QuestionResult]

def validate_answers(answers: Sequence[int], question_count: int) -> None:
    if not isinstance(answers, (list, tuple)):
        raise InvalidAnswers("Answers must be provided as an array")
    if len(answers) != question_count:
        raise InvalidAnswers(f"Expected {question_count} answers, received {len(answers)}")
    for answer in answers:
        if isinstance(answer, bool) or not isinstance(answer, int) or not UNANSWERED <= answer < OPTION_COUNT:
            raise InvalidAnswers(f"Answers must be integers between {UNANSWERED} and {OPTION_COUNT - 1}")

def score_answers(questions: Sequence[Question], answers: Sequence[int]) -> ScoreResult:
    """
    Compare an answer vector with the answer key.

    ``-1`` marks an unanswered question and never counts as correct.
    """
    validate_answers(answers, len(questions))

    results = []
    for i, (question, answer) in enumerate(zip(questions, answers)):
        results.append(QuestionResult(
            question_index=i,
            question=question.question,
            user_answer=answer,
            correct_answer=question.correct_answer,
            is_correct=answer == question.correct_answer,
            explanation=question.explanation,
        ))

    correct = sum(1 for r in results if r.is_correct)
    total = len(questions)
    return ScoreResult(
        score=Score(correct=correct, total=total, percentage=round_half_up(correct, total)),
        results=results,
    )

@dataclass
class QuestionAnalytics:
    question_index: int
    question: str
    correct_answer: int
    correct_count: int
    correct_percentage: int
    option_counts: List[int]
    total_responses: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionIndex": self.question_index,
            "question": self.question,
            "correctAnswer": self.correct_answer,
            "correctCount": self.correct_count,
            "correctPercentage": self.correct_percentage,
            "optionCounts": list(self.option_counts),
            "totalResponses": self.total_responses,
        }

@dataclass
class QuizAnalytics:
    total_responses: int
    average_score: int
    questions: List[QuestionAnalytics] = field(default_factory=list)

    def summary(self) -> Dict[str, int]:
        return {"totalResponses": self.total_responses, "averageScore": self.average_score}

def aggregate_responses(
    questions: Sequence[Question],
    responses: Sequence[Sequence[int]],
    percentages: Sequence[int],
) -> QuizAnalytics:
    """
    Fold all responses of a quiz into per-question and overall figures.

    Args:
        questions: The quiz's answer key
        responses: One answer vector per response
        percentages: The stored score percentage of each response
    """
    total = len(responses)
    average = round_half_up(sum(percentages), total * 100) if total else 0

    per_question = []
    for q_index, question in enumerate(questions):
        chosen = [answers[q_index] for answers in responses if q_index < len(answers)]
        option_counts = [0] * OPTION_COUNT
        for answer in chosen:
            if 0 <= answer < OPTION_COUNT:
                option_counts[answer] += 1
        correct_count = option_counts[question.correct_answer]
        per_question.append(QuestionAnalytics(
            question_index=q_index,
            question=question.question,
            correct_answer=question.correct_answer,
            correct_count=correct_count,
            correct_percentage=round_half_up(correct_count, total),
            option_counts=option_counts,
            total_responses=len(chosen),
        ))

    return QuizAnalytics(total_responses=total, average_score=average, questions=per_question)
