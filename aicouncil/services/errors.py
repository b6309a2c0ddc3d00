"""Shared service-layer error types.

Every error carries the HTTP status the API layer should answer with and a
message that is safe to show to end users. Nothing here is retried.
"""

from typing import Any, List, Optional


class CouncilAppError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(CouncilAppError):
    status_code = 400


class AuthenticationError(CouncilAppError):
    status_code = 401


class ForbiddenError(CouncilAppError):
    """Resource exists but belongs to someone else."""
    status_code = 403


class NotFoundError(CouncilAppError):
    status_code = 404


class ConflictError(CouncilAppError):
    status_code = 409


class RateLimitExceededError(CouncilAppError):
    status_code = 429

    def __init__(self, message: str, requests_this_hour: int, limit: int):
        super().__init__(message)
        self.requests_this_hour = requests_this_hour
        self.limit = limit


class DimensionMismatchError(CouncilAppError):
    """Two embedding vectors of different length were compared."""
    status_code = 500


# ── Upstream provider errors (LLM + embeddings) ────────────────────────

class LLMError(CouncilAppError):
    """Raised when a completion or embedding call fails."""
    status_code = 502


class LLMConfigurationError(LLMError):
    """Missing or placeholder API key. Fatal until an operator fixes the config."""
    status_code = 500


class LLMAuthenticationError(LLMError):
    status_code = 401


class LLMRateLimitError(LLMError):
    status_code = 429


class LLMUnavailableError(LLMError):
    status_code = 503


class LLMServiceError(LLMError):
    status_code = 502


class TurnFailedError(CouncilAppError):
    """
    A council turn stopped part way through.

    Replies in `completed` were already persisted and stay persisted;
    `cause` is the error raised by the failing agent's completion.
    """

    def __init__(self, message: str, completed: List[Any], failed_slot: int, cause: Exception):
        status_code = cause.status_code if isinstance(cause, CouncilAppError) else 500
        super().__init__(message, status_code=status_code)
        self.completed = completed
        self.failed_slot = failed_slot
        self.cause = cause
