"""Error handling utilities for the form-assist flow."""

from dataclasses import dataclass
from typing import Optional, Dict, Any
from enum import Enum


class ErrorType(Enum):
    """Enumeration of error types in the form-assist flow."""

    # Model API Errors
    MODEL_RATE_LIMIT = "MODEL_RATE_LIMIT"
    MODEL_TIMEOUT = "MODEL_TIMEOUT"
    MODEL_AUTH_ERROR = "MODEL_AUTH_ERROR"
    MODEL_INVALID_REQUEST = "MODEL_INVALID_REQUEST"
    MODEL_SERVICE_ERROR = "MODEL_SERVICE_ERROR"

    # Extraction Errors
    EXTRACTION_EMPTY = "EXTRACTION_EMPTY"
    EXTRACTION_MALFORMED = "EXTRACTION_MALFORMED"

    # Document Processing Errors
    PDF_EXTRACTION_FAILED = "PDF_EXTRACTION_FAILED"
    IMAGE_ANALYSIS_FAILED = "IMAGE_ANALYSIS_FAILED"
    UNSUPPORTED_DOCUMENT = "UNSUPPORTED_DOCUMENT"

    # Submission / Storage Errors
    SUBMISSION_FAILED = "SUBMISSION_FAILED"
    SUBMISSION_IN_PROGRESS = "SUBMISSION_IN_PROGRESS"
    STORAGE_FAILED = "STORAGE_FAILED"

    # Configuration Errors
    CONFIG_MISSING = "CONFIG_MISSING"
    CONFIG_INVALID = "CONFIG_INVALID"

    # System Errors
    INITIALIZATION_FAILED = "INITIALIZATION_FAILED"

    # General Errors
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass
class ErrorContext:
    """
    Context information for errors in the form-assist flow.

    Attributes:
        error_type: Type of error from ErrorType enum
        message: Human-readable error message
        recoverable: Whether the error can be recovered from
        fallback_action: Optional description of fallback action taken
        details: Optional additional error details
        original_exception: Optional original exception that caused this error
    """

    error_type: ErrorType
    message: str
    recoverable: bool
    fallback_action: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    original_exception: Optional[Exception] = None

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error context to dictionary for logging/serialization.

        Returns:
            Dictionary representation of error context
        """
        return {
            "error_type": self.error_type.value,
            "message": self.message,
            "recoverable": self.recoverable,
            "fallback_action": self.fallback_action,
            "details": self.details or {},
            "original_exception": str(self.original_exception) if self.original_exception else None
        }


class FormAssistError(Exception):
    """
    Base exception for all form-assist errors.

    Wraps errors with additional context so callers can degrade the
    turn to a chat message instead of failing the conversation.

    Attributes:
        context: ErrorContext with detailed error information
    """

    def __init__(self, context: ErrorContext):
        self.context = context
        super().__init__(context.message)

    def __str__(self) -> str:
        base = f"{self.context.error_type.value}: {self.context.message}"
        if self.context.fallback_action:
            base += f" (Fallback: {self.context.fallback_action})"
        return base

    @property
    def error_type(self) -> ErrorType:
        return self.context.error_type

    def to_dict(self) -> Dict[str, Any]:
        return self.context.to_dict()


class ModelAPIError(FormAssistError):
    """Exception for LLM provider (AWS Bedrock) errors."""

    @classmethod
    def from_client_error(
        cls,
        error: Exception,
        operation: str,
        recoverable: bool = False,
        fallback_action: Optional[str] = None
    ) -> "ModelAPIError":
        """
        Create ModelAPIError from boto3 ClientError.

        Args:
            error: Original boto3 ClientError
            operation: Description of operation that failed
            recoverable: Whether error is recoverable
            fallback_action: Optional fallback action description

        Returns:
            ModelAPIError instance
        """
        error_code = "Unknown"
        error_message = str(error)

        if hasattr(error, 'response'):
            error_info = error.response.get("Error", {})
            error_code = error_info.get("Code", "Unknown")
            error_message = error_info.get("Message", str(error))

        error_type_map = {
            "ThrottlingException": ErrorType.MODEL_RATE_LIMIT,
            "TooManyRequestsException": ErrorType.MODEL_RATE_LIMIT,
            "RequestTimeout": ErrorType.MODEL_TIMEOUT,
            "RequestTimeoutException": ErrorType.MODEL_TIMEOUT,
            "ModelTimeoutException": ErrorType.MODEL_TIMEOUT,
            "UnauthorizedException": ErrorType.MODEL_AUTH_ERROR,
            "AccessDeniedException": ErrorType.MODEL_AUTH_ERROR,
            "ValidationException": ErrorType.MODEL_INVALID_REQUEST,
            "ServiceUnavailableException": ErrorType.MODEL_SERVICE_ERROR,
            "InternalServerException": ErrorType.MODEL_SERVICE_ERROR,
        }

        error_type = error_type_map.get(error_code, ErrorType.MODEL_SERVICE_ERROR)

        context = ErrorContext(
            error_type=error_type,
            message=f"Model API error during {operation}: {error_message}",
            recoverable=recoverable,
            fallback_action=fallback_action,
            details={
                "error_code": error_code,
                "operation": operation
            },
            original_exception=error
        )

        return cls(context)

    @classmethod
    def timeout(cls, operation: str, seconds: float) -> "ModelAPIError":
        """Create error for a call that exceeded its wall-clock budget."""
        context = ErrorContext(
            error_type=ErrorType.MODEL_TIMEOUT,
            message=f"{operation} did not finish within {seconds:g} seconds",
            recoverable=True,
            fallback_action="Ask the user to try again",
            details={"operation": operation, "timeout_seconds": seconds}
        )
        return cls(context)


class DocumentProcessingError(FormAssistError):
    """Exception for document processing errors."""

    @classmethod
    def pdf_extraction_failed(
        cls,
        filename: str,
        error: Exception,
        fallback_action: Optional[str] = None
    ) -> "DocumentProcessingError":
        """
        Create error for PDF extraction failure.

        Args:
            filename: Name of PDF file
            error: Original exception
            fallback_action: Optional fallback action

        Returns:
            DocumentProcessingError instance
        """
        context = ErrorContext(
            error_type=ErrorType.PDF_EXTRACTION_FAILED,
            message=f"Failed to extract text from PDF '{filename}': {str(error)}",
            recoverable=True,
            fallback_action=fallback_action or "Try the next extraction strategy",
            details={"filename": filename},
            original_exception=error
        )
        return cls(context)

    @classmethod
    def image_analysis_failed(
        cls,
        filename: str,
        error: Exception,
        fallback_action: Optional[str] = None
    ) -> "DocumentProcessingError":
        context = ErrorContext(
            error_type=ErrorType.IMAGE_ANALYSIS_FAILED,
            message=f"Failed to analyze image '{filename}': {str(error)}",
            recoverable=True,
            fallback_action=fallback_action or "Ask the user to type the details",
            details={"filename": filename},
            original_exception=error
        )
        return cls(context)

    @classmethod
    def unsupported_document(cls, filename: str, content_type: str) -> "DocumentProcessingError":
        context = ErrorContext(
            error_type=ErrorType.UNSUPPORTED_DOCUMENT,
            message=f"Unsupported file type for '{filename}' ({content_type})",
            recoverable=True,
            fallback_action="Ask for a PDF, image or text file",
            details={"filename": filename, "content_type": content_type}
        )
        return cls(context)


class SubmissionError(FormAssistError):
    """Exception for claim submission failures reported by the persistence collaborator."""

    @classmethod
    def rejected(cls, message: str, details: Optional[Dict[str, Any]] = None) -> "SubmissionError":
        """
        Create error carrying the collaborator's message verbatim.

        Args:
            message: Error message returned by the collaborator
            details: Optional extra details

        Returns:
            SubmissionError instance
        """
        context = ErrorContext(
            error_type=ErrorType.SUBMISSION_FAILED,
            message=message,
            recoverable=True,
            fallback_action="Keep draft for correction and resubmission",
            details=details
        )
        return cls(context)


# Short texts shown in the chat when a turn degrades
_USER_MESSAGES = {
    ErrorType.MODEL_TIMEOUT: "The assistant took too long to respond. Please try again.",
    ErrorType.MODEL_RATE_LIMIT: "The assistant is busy right now. Please try again in a moment.",
    ErrorType.MODEL_AUTH_ERROR: "The assistant is not available right now.",
    ErrorType.MODEL_INVALID_REQUEST: "The assistant could not process that request.",
    ErrorType.MODEL_SERVICE_ERROR: "The assistant is not available right now. Please try again.",
    ErrorType.PDF_EXTRACTION_FAILED: "I couldn't read that PDF.",
    ErrorType.IMAGE_ANALYSIS_FAILED: "I couldn't read that image.",
    ErrorType.UNSUPPORTED_DOCUMENT: "That file type isn't supported. Please upload a PDF, image or text file.",
    ErrorType.SUBMISSION_IN_PROGRESS: "A submission is already in progress.",
}


def user_message(error: Exception) -> str:
    """
    Map an exception to a short user-facing chat message.

    Submission failures pass the collaborator's message through verbatim.

    Args:
        error: Exception raised at a call site

    Returns:
        Message suitable for display in the conversation
    """
    if isinstance(error, SubmissionError):
        return error.context.message
    if isinstance(error, FormAssistError):
        return _USER_MESSAGES.get(error.error_type, "Something went wrong. Please try again.")
    return "Something went wrong. Please try again."
