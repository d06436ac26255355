"""Structured error codes for the chat-to-swap pipeline.

Provides semantic error codes that can be used for:
- User-safe error payloads (internal detail is never echoed)
- Log categorization
- Distinguishing a failed swap from a declined pitch
"""
from enum import Enum
from typing import Optional


class PipelineErrorCode(str, Enum):
    """Error codes for admission, generation and execution failures."""

    # Admission
    RATE_LIMITED = "RATE_LIMITED"

    # Generation
    GENERATION_FAILED = "GENERATION_FAILED"
    GENERATION_EMPTY = "GENERATION_EMPTY"

    # Execution (one per swap phase)
    ORDER_FAILED = "ORDER_FAILED"
    SIGNING_FAILED = "SIGNING_FAILED"
    SUBMIT_FAILED = "SUBMIT_FAILED"
    VENUE_STATUS_NOT_SUCCESS = "VENUE_STATUS_NOT_SUCCESS"

    # Configuration
    CREDENTIALS_MISSING = "CREDENTIALS_MISSING"

    # Generic
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class PipelineError(Exception):
    """Exception with structured error code and message."""

    def __init__(
        self,
        error_code: PipelineErrorCode,
        message: str,
        details: Optional[dict] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "code": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class GenerationError(PipelineError):
    """The text-generation call failed or returned nothing."""

    def __init__(self, message: str, error_code: PipelineErrorCode = PipelineErrorCode.GENERATION_FAILED):
        super().__init__(error_code, message)


class ExecutionError(PipelineError):
    """A swap failed in one of its phases.

    ``phase`` is the last execution state reached before failing. A failure at
    or after SUBMITTED means funds may have moved.
    """

    def __init__(
        self,
        error_code: PipelineErrorCode,
        message: str,
        phase: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.phase = phase
        super().__init__(error_code, message, details)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["phase"] = self.phase
        return data


# Error code to user-safe message mapping
ERROR_CODE_MESSAGES = {
    PipelineErrorCode.RATE_LIMITED: "Rate limit exceeded",
    PipelineErrorCode.GENERATION_FAILED: "The agent could not respond. Please try again.",
    PipelineErrorCode.GENERATION_EMPTY: "The agent returned an empty response. Please try again.",
    PipelineErrorCode.ORDER_FAILED: "Could not get a swap order from the venue",
    PipelineErrorCode.SIGNING_FAILED: "Could not sign the swap transaction",
    PipelineErrorCode.SUBMIT_FAILED: "Could not submit the swap to the venue",
    PipelineErrorCode.VENUE_STATUS_NOT_SUCCESS: "The venue did not report a successful swap",
    PipelineErrorCode.CREDENTIALS_MISSING: "Venue credentials are not configured",
    PipelineErrorCode.VALIDATION_ERROR: "Invalid request",
    PipelineErrorCode.INTERNAL_ERROR: "An internal error occurred",
}


def get_error_message(error_code: PipelineErrorCode) -> str:
    """Get the user-safe message for an error code."""
    return ERROR_CODE_MESSAGES.get(error_code, "An error occurred")
