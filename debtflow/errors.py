"""Exception hierarchy for debtflow."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .upload.conflict import ConflictWarning


class DebtflowError(Exception):
    """Base class for all debtflow errors."""


class FileValidationError(DebtflowError):
    """A candidate file was rejected before any network call."""


class ConflictError(DebtflowError):
    """A usage upload would overwrite data uploaded inside the conflict window."""

    def __init__(
        self,
        message: str,
        warning: Optional["ConflictWarning"] = None,
        days_since_last_upload: Optional[int] = None,
        last_upload_date: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.warning = warning
        self.days_since_last_upload = days_since_last_upload
        self.last_upload_date = last_upload_date


class TransmissionError(DebtflowError):
    """The upload or lookup request failed at the transport or HTTP level."""

    def __init__(
        self, message: str, status_code: Optional[int] = None, details: Any = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class PersistenceError(DebtflowError):
    """Persisted workflow state could not be decoded."""


class UnknownStepError(DebtflowError, KeyError):
    """A step id outside the fixed workflow topology was used."""


class StepDataError(DebtflowError, ValueError):
    """A step data patch would clobber a namespaced history entry."""


__all__ = [
    "DebtflowError",
    "FileValidationError",
    "ConflictError",
    "TransmissionError",
    "PersistenceError",
    "UnknownStepError",
    "StepDataError",
]
