"""
Normalization of raw AI provider output into canonical questions.

Two output shapes are supported:

* the "questions object" shape (Gemini): ``{"questions": [{question, options,
  correctAnswer, explanation}, ...]}``, possibly wrapped in a markdown fence;
* the "flat array" shape (NVIDIA): ``[{question, option1..option4, answer,
  explanation?}, ...]`` embedded somewhere in free text.

Both end in :func:`validate_question`, the single place where the canonical
schema is enforced.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional

from tinyquiz.core.exceptions import MalformedResponse, SchemaViolation
from tinyquiz.models.question import Question, OPTION_COUNT

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\n?", re.IGNORECASE)
_ARRAY_RE = re.compile(r"\[\s*\{.*?\}\s*\]", re.DOTALL)

ANSWER_TOKENS = {f"option{i + 1}": i for i in range(OPTION_COUNT)}
FLAT_REQUIRED_FIELDS = ("question", "option1", "option2", "option3", "option4", "answer")


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers and surrounding whitespace."""
    return _FENCE_RE.sub("", text).strip()


def _non_empty_string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def validate_question(candidate: Any, index: int) -> Question:
    """
    Validate one candidate dict against the canonical schema.

    Args:
        candidate: Dict with ``question``, ``options``, ``correctAnswer`` and
            ``explanation`` keys.
        index: 1-based position, used in error messages.

    Returns:
        Question with every string field trimmed.

    Raises:
        SchemaViolation: naming ``index`` on the first violation found.
    """
    if not isinstance(candidate, dict):
        raise SchemaViolation("Expected a question object", index)

    text = _non_empty_string(candidate.get("question"))
    if text is None:
        raise SchemaViolation("Missing or invalid question text", index)

    options = candidate.get("options")
    if not isinstance(options, list) or len(options) != OPTION_COUNT:
        raise SchemaViolation(f"Must have exactly {OPTION_COUNT} options", index)
    trimmed_options = []
    for option in options:
        trimmed = _non_empty_string(option)
        if trimmed is None:
            raise SchemaViolation("All options must be non-empty strings", index)
        trimmed_options.append(trimmed)

    correct = candidate.get("correctAnswer")
    # bool is an int subclass; True must not pass as index 1
    if isinstance(correct, bool) or not isinstance(correct, int) or not 0 <= correct < OPTION_COUNT:
        raise SchemaViolation(f"correctAnswer must be an integer between 0-{OPTION_COUNT - 1}", index)

    explanation = _non_empty_string(candidate.get("explanation"))
    if explanation is None:
        raise SchemaViolation("Missing or invalid explanation", index)

    return Question(
        question=text,
        options=trimmed_options,
        correct_answer=correct,
        explanation=explanation,
    )


def parse_questions_object(raw_text: str, provider_name: str = "Gemini") -> List[Question]:
    """Parse the ``{"questions": [...]}`` shape."""
    cleaned = strip_code_fences(raw_text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning("%s returned invalid JSON: %.200s", provider_name, cleaned)
        raise MalformedResponse(f"{provider_name} returned invalid JSON format") from e

    questions = data.get("questions") if isinstance(data, dict) else None
    if not isinstance(questions, list):
        raise SchemaViolation("Invalid questions format - expected questions array")
    if not questions:
        raise SchemaViolation("No questions generated")

    return [validate_question(item, i) for i, item in enumerate(questions, start=1)]


def _first_array_literal(text: str) -> Optional[List[Any]]:
    match = _ARRAY_RE.search(text)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, list) else None


def extract_flat_array(raw_text: str) -> List[Any]:
    """
    Find the JSON array of questions in free-form model output.

    Strategies, first success wins:

    1. first ``[ {...} ]`` literal in the raw text;
    2. same search after stripping code fences;
    3. the whole fence-stripped text, only when it starts with ``[``.
    """
    found = _first_array_literal(raw_text)
    if found is not None:
        return found

    cleaned = strip_code_fences(raw_text)
    found = _first_array_literal(cleaned)
    if found is not None:
        return found

    if cleaned.startswith("["):
        try:
            parsed = json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise MalformedResponse("No valid JSON MCQ array found in NVIDIA response") from e
        if isinstance(parsed, list):
            return parsed

    logger.warning("No JSON array in NVIDIA response: %.200s", raw_text)
    raise MalformedResponse("No valid JSON MCQ array found in NVIDIA response")


def flat_to_candidate(item: Any, index: int) -> Dict[str, Any]:
    """Map one ``option1..4``/``answer`` record onto the canonical keys."""
    if not isinstance(item, dict):
        raise SchemaViolation("Expected a question object", index)
    if any(not item.get(field) for field in FLAT_REQUIRED_FIELDS):
        raise SchemaViolation("Missing required fields in NVIDIA response", index)

    answer = item["answer"]
    token = answer.strip().lower() if isinstance(answer, str) else None
    if token not in ANSWER_TOKENS:
        raise SchemaViolation(
            f'Invalid answer format "{answer}". Expected option1, option2, option3, or option4',
            index,
        )

    explanation = _non_empty_string(item.get("explanation")) or f"The correct answer is {answer}."

    return {
        "question": item["question"],
        "options": [item["option1"], item["option2"], item["option3"], item["option4"]],
        "correctAnswer": ANSWER_TOKENS[token],
        "explanation": explanation,
    }


def parse_flat_array(raw_text: str) -> List[Question]:
    """Parse the bare array shape with ``option1..4`` and ``answer`` fields."""
    items = extract_flat_array(raw_text)
    if not items:
        raise SchemaViolation("No questions generated")
    return [
        validate_question(flat_to_candidate(item, i), i)
        for i, item in enumerate(items, start=1)
    ]
