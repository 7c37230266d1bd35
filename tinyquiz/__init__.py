"""TinyQuiz backend: AI-generated, short-lived, shareable quizzes."""

__version__ = "1.0.0"
