"""
Centralized error handling and user-friendly error messages.

Ranking errors (EmbeddingUnavailable, ExplanationUnavailable, MalformedCandidate) are
raised per item inside a feed pass and absorbed by the ranker; they never abort a request.
"""
import logging

from fastapi import HTTPException
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error."""
    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Validation error."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=400, details=details)


class NotFoundError(AppError):
    """Resource not found error."""
    def __init__(self, message: str = "The requested resource was not found.", details: dict | None = None):
        super().__init__(message, status_code=404, details=details)


class AIServiceError(AppError):
    """AI service error."""
    def __init__(self, message: str = "AI service temporarily unavailable", details: dict | None = None):
        super().__init__(message, status_code=503, details=details)


class EmbeddingUnavailable(AIServiceError):
    """Embedding provider failed, timed out, or returned a malformed vector."""
    def __init__(self, message: str = "Embedding unavailable", details: dict | None = None):
        super().__init__(message, details=details)


class ExplanationUnavailable(AIServiceError):
    """Explanation provider failed or returned an unusable payload."""
    def __init__(self, message: str = "Explanation unavailable", details: dict | None = None):
        super().__init__(message, details=details)


class MalformedCandidate(ValidationError):
    """Candidate record is missing text fields required for ranking."""
    def __init__(self, entity_kind: str, entity_id: int | None, missing: list[str]):
        super().__init__(
            f"{entity_kind} {entity_id} missing required fields: {', '.join(missing)}",
            details={"entity_kind": entity_kind, "entity_id": entity_id, "missing": missing},
        )
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        self.missing = missing


# User-friendly error messages
ERROR_MESSAGES = {
    # Users / jobs
    "phone_exists": "Phone already exists",
    "user_not_found": "User not found",
    "not_a_worker": "userId must be a worker",
    "job_not_found": "Job not found",
    "invalid_reference": "Invalid reference. The related record may not exist.",

    # General
    "server_error": "Server error",
    "database_error": "Database connection issue. Please try again later.",
    "validation_error": "Please check your input and try again.",
}


def get_error_message(error_key: str, default: str | None = None) -> str:
    """Get a user-friendly error message."""
    return ERROR_MESSAGES.get(error_key, default or ERROR_MESSAGES["server_error"])


def handle_database_error(error: Exception, operation: str = "") -> HTTPException:
    """Handle database errors with user-friendly messages."""
    logger.error("Database error during %s: %s", operation, error)

    error_str = str(error).lower()

    if ("unique" in error_str or "duplicate" in error_str) and "phone" in error_str:
        return HTTPException(status_code=409, detail=get_error_message("phone_exists"))

    if "duplicate" in error_str or "unique" in error_str:
        return HTTPException(
            status_code=409,
            detail="This record already exists. Please check your input."
        )

    if "foreign key" in error_str:
        return HTTPException(status_code=400, detail=get_error_message("invalid_reference"))

    if "connection" in error_str or "operational" in error_str:
        return HTTPException(status_code=503, detail=get_error_message("database_error"))

    return HTTPException(status_code=500, detail=get_error_message("server_error"))


def create_error_response(
    status_code: int,
    message: str,
    details: dict | None = None
) -> JSONResponse:
    """Create a standardized error response."""
    content = {
        "success": False,
        "error": message,
    }

    if details:
        content["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content
    )
