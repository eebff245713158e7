"""
Exception types raised across the session protocol.
"""


class IvyGuideError(Exception):
    """Base class for errors raised by ivy_guide."""


class ProfileValidationError(IvyGuideError):
    """Raised when the profile form is submitted without a required field."""

    def __init__(self, field: str) -> None:
        super().__init__(f"Missing required profile field: {field}")
        self.field = field


class InvalidPhaseError(IvyGuideError):
    """Raised when an operation is not allowed in the current session phase."""

    def __init__(self, operation: str, phase: str) -> None:
        super().__init__(f"Cannot {operation} while session is in phase '{phase}'")
        self.operation = operation
        self.phase = phase


class ServiceResponseError(IvyGuideError):
    """Raised when an LLM-backed service returns output that fails its schema."""

    def __init__(self, service: str, detail: str) -> None:
        super().__init__(f"Invalid response from {service}: {detail}")
        self.service = service
        self.detail = detail


class CaptureUnavailableError(IvyGuideError):
    """Raised when speech capture is requested but the capability is missing."""
