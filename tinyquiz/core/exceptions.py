"""
Error taxonomy shared by the API layer and the services.

Every error carries the HTTP status it maps to, a public message and
optional details. Details are only exposed outside production.
"""
from typing import Any, Optional


class TinyQuizError(Exception):
    """Base class for all application errors."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def public_message(self) -> str:
        """Message safe to return to any caller."""
        return self.message


class ValidationError(TinyQuizError):
    """Malformed caller input."""
    status_code = 400


class InvalidAnswers(ValidationError):
    """Answer vector does not fit the quiz."""
    pass


class AuthError(TinyQuizError):
    """Missing, invalid or expired credentials."""
    status_code = 401


class AuthorizationError(TinyQuizError):
    """Authenticated, but not the owner of the resource."""
    status_code = 403


class NotFoundError(TinyQuizError):
    status_code = 404


class ExpiredError(TinyQuizError):
    """Quiz is past its expiry time."""
    status_code = 410


class ConfigurationError(TinyQuizError):
    """Server-side misconfiguration, e.g. a provider without an API key."""
    status_code = 500


class UpstreamError(TinyQuizError):
    """
    AI provider could not be reached or answered with a non-2xx status.

    Timeouts map to 504, everything else to 502.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        upstream_status: Optional[int] = None,
        body: Optional[Any] = None,
        timeout: bool = False,
    ):
        super().__init__(message, details={"provider": provider, "status": upstream_status, "body": body})
        self.provider = provider
        self.upstream_status = upstream_status
        self.body = body
        self.timeout = timeout

    @property
    def status_code(self) -> int:
        return 504 if self.timeout else 502

    @property
    def public_message(self) -> str:
        if self.timeout:
            return "Quiz generation timed out. Please try again with a simpler topic."
        return "AI service temporarily unavailable. Please try again later."


class GenerationError(TinyQuizError):
    """AI output could not be turned into valid questions."""
    status_code = 500

    @property
    def public_message(self) -> str:
        return "Failed to generate quiz. Please try again."


class MalformedResponse(GenerationError):
    """Provider output is not parseable JSON of the expected kind."""
    pass


class SchemaViolation(GenerationError):
    """Provider output parsed but does not match the question schema."""

    def __init__(self, message: str, index: Optional[int] = None):
        if index is not None:
            message = f"Question {index}: {message}"
        super().__init__(message)
        self.index = index
