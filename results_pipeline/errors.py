"""
results_pipeline/errors.py
Centralized Error Handling

Every failure of the results pipeline is reported synchronously to the caller
as a structured error. Nothing is retried by the pipeline itself.

ERROR RESPONSE STRUCTURE:
{
    "success": false,
    "error": "ErrorType",
    "message": "Human-readable description",
    "code": "UNIQUE_ERROR_CODE",
    "details": {} (optional)
}

HTTP STATUS CODE DISCIPLINE:
- 400: Invalid input / missing prerequisite data
- 401: Authentication missing or expired
- 403: Role lacks the required capability
- 404: Resource does not exist
- 409: Operation not legal in the current lifecycle state / duplicate vote
- 422: Validation error (Pydantic)
- 500: NEVER caused by user input (internal only)
"""

import logging
import uuid
from typing import Optional, Dict, Any

from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorCode:
    """Unique error codes for machine-readable error handling"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"

    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_INVALID = "AUTH_INVALID"
    PERMISSION_DENIED = "PERMISSION_DENIED"

    NOT_FOUND = "NOT_FOUND"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    SUBMISSION_NOT_FOUND = "SUBMISSION_NOT_FOUND"
    CREDENTIAL_NOT_FOUND = "CREDENTIAL_NOT_FOUND"

    INVALID_LIFECYCLE_TRANSITION = "INVALID_LIFECYCLE_TRANSITION"
    MISSING_RUBRIC = "MISSING_RUBRIC"
    NO_SUBMISSIONS = "NO_SUBMISSIONS"
    NO_COMPUTED_RESULTS = "NO_COMPUTED_RESULTS"
    ALREADY_VOTED = "ALREADY_VOTED"
    FEATURE_DISABLED = "FEATURE_DISABLED"

    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """Standard error response model"""
    success: bool = False
    error: str
    message: str
    code: str
    details: Optional[Dict[str, Any]] = None


class APIError(Exception):
    """Base pipeline exception with consistent structure"""

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        code: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.status_code = status_code
        self.error = error
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        result = {
            "success": False,
            "error": self.error,
            "message": self.message,
            "code": self.code
        }
        if self.details:
            result["details"] = self.details
        return result

    def to_response(self) -> JSONResponse:
        """Convert to FastAPI JSONResponse"""
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


class BadRequestError(APIError):
    """400 Bad Request - Invalid input"""
    def __init__(self, message: str, code: str = ErrorCode.INVALID_INPUT, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="Bad Request",
            message=message,
            code=code,
            details=details
        )


class InvalidScoreError(BadRequestError):
    """Score, weight or max score outside its allowed bounds"""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, code=ErrorCode.INVALID_INPUT, details=details)


class MissingRubricError(BadRequestError):
    """Event has no usable rubric criteria"""
    def __init__(self, event_id: int, message: str = "No rubric criteria found for this event"):
        super().__init__(message, code=ErrorCode.MISSING_RUBRIC, details={"event_id": event_id})


class NoSubmissionsError(BadRequestError):
    """Event has no submissions at all"""
    def __init__(self, event_id: int):
        super().__init__(
            "No submissions found",
            code=ErrorCode.NO_SUBMISSIONS,
            details={"event_id": event_id}
        )


class NoComputedResultsError(BadRequestError):
    """Publish attempted before any results were computed"""
    def __init__(self, event_id: int):
        super().__init__(
            "No results computed for this event",
            code=ErrorCode.NO_COMPUTED_RESULTS,
            details={"event_id": event_id}
        )


class UnauthorizedError(APIError):
    """401 Unauthorized - Authentication required"""
    def __init__(self, message: str = "Authentication required", code: str = ErrorCode.AUTH_REQUIRED):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="Unauthorized",
            message=message,
            code=code
        )


class ForbiddenError(APIError):
    """403 Forbidden - Role lacks the capability"""
    def __init__(self, message: str, code: str = ErrorCode.PERMISSION_DENIED, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error="Forbidden",
            message=message,
            code=code,
            details=details
        )


class FeatureDisabledError(ForbiddenError):
    def __init__(self, feature: str):
        super().__init__(
            f"{feature} is disabled",
            code=ErrorCode.FEATURE_DISABLED,
            details={"feature": feature}
        )


class NotFoundError(APIError):
    """404 Not Found - Resource does not exist"""
    def __init__(self, resource: str, identifier: Any = None, code: str = ErrorCode.NOT_FOUND):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with id '{identifier}' not found"
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error="Not Found",
            message=message,
            code=code
        )


class CredentialNotFoundError(NotFoundError):
    def __init__(self, credential_id: str):
        super().__init__("Credential", credential_id, code=ErrorCode.CREDENTIAL_NOT_FOUND)


class InvalidLifecycleTransitionError(APIError):
    """409 Conflict - Operation not legal in the event's current lifecycle state"""
    def __init__(
        self,
        message: str,
        current_state: Optional[str] = None,
        attempted: Optional[str] = None,
        allowed_states: Optional[list] = None
    ):
        self.current_state = current_state
        self.attempted = attempted
        details = {"current_state": current_state, "attempted": attempted}
        if allowed_states is not None:
            details["allowed_states"] = allowed_states
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error="Invalid Lifecycle Transition",
            message=message,
            code=ErrorCode.INVALID_LIFECYCLE_TRANSITION,
            details=details
        )


class AlreadyVotedError(APIError):
    """409 Conflict - Voter already voted for this submission"""
    def __init__(self, submission_id: int):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error="Conflict",
            message="Already voted",
            code=ErrorCode.ALREADY_VOTED,
            details={"submission_id": submission_id, "already_voted": True}
        )


def internal_error_response(error: Exception, context: str = "") -> JSONResponse:
    """Log an internal error and build a safe 500 response"""
    log_id = str(uuid.uuid4())[:8]
    logger.error(f"[{log_id}] Internal error in {context}: {type(error).__name__}: {str(error)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "Internal Error",
            "message": "An unexpected error occurred. Please try again later.",
            "code": ErrorCode.INTERNAL_ERROR,
            "details": {"log_id": log_id}
        }
    )
