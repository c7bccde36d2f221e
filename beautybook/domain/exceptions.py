"""
Domain-specific exception hierarchy for the booking application.
"""

from enum import Enum


class BeautyBookError(Exception):
    """Base class for all application-level errors."""


class ValidationReason(str, Enum):
    """Why client-entered booking data was rejected."""
    EMPTY_NAME = "empty_name"
    INVALID_CONTACT = "invalid_contact"


class ValidationError(BeautyBookError):
    """Raised when client identity fields fail validation. User-correctable."""

    MESSAGES = {
        ValidationReason.EMPTY_NAME: "Por favor, preencha seu nome.",
        ValidationReason.INVALID_CONTACT: "WhatsApp inválido. Use o formato +55 (XX) XXXXX-XXXX.",
    }

    def __init__(self, reason: ValidationReason):
        self.reason = reason
        super().__init__(self.MESSAGES[reason])


class SubmissionError(BeautyBookError):
    """Raised when the persistence collaborator fails to store a booking."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class SubmissionInProgressError(SubmissionError):
    """Raised when a gate is asked to submit while a submission is in flight."""


class ConfigurationError(BeautyBookError):
    """Raised when the backend collaborators are missing or unconfigured."""


class StoreError(BeautyBookError):
    """Raised when the remote data store cannot be read or written."""


class AuthenticationError(BeautyBookError):
    """Raised when authentication or token handling fails."""
