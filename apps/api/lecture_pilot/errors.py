from __future__ import annotations


class LecturePilotError(Exception):
    """Base class for errors raised by lecture_pilot."""


class ValidationError(LecturePilotError):
    """Input rejected before any network call (size, type, empty content)."""


class NetworkError(LecturePilotError):
    """A remote call failed: connection refused, non-success status."""


class RequestTimeoutError(NetworkError):
    """A remote call did not finish within its time budget."""


class SchemaError(LecturePilotError):
    """A producer returned an empty, unparseable or mistyped payload."""


class GenerationError(LecturePilotError):
    """The generative service rejected or failed the request."""


class AnalysisError(LecturePilotError):
    """Every analysis path failed."""

    hint = "Please try again or use a smaller file."

    def __init__(self, message: str, failures: list[str] | None = None) -> None:
        super().__init__(message)
        self.failures = failures or []

    def __str__(self) -> str:
        return f"{self.args[0]} {self.hint}"


class NotFoundError(LecturePilotError):
    """No lecture is stored under the requested id."""


class UnauthorizedError(LecturePilotError):
    """Credential missing or rejected."""
