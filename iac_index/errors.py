"""Error codes, message catalog and service exceptions."""

from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    # Not Found (404)
    DATA_SOURCE_NOT_FOUND = "data_source_not_found"

    # Validation (422)
    POLICY_PARSING_ERROR = "policy_parsing_error"
    TEMPLATE_VALIDATION_ERROR = "template_validation_error"
    INVALID_FIELD = "invalid_field"

    # Server Error (500/503)
    SOURCE_UNAVAILABLE = "source_unavailable"
    INTERNAL_ERROR = "internal_error"


ERROR_MESSAGES: dict[ErrorCode, dict] = {
    ErrorCode.DATA_SOURCE_NOT_FOUND: {
        "message": "Data source not found",
        "hint": "Use GET /sources to list the configured data sources.",
    },
    ErrorCode.POLICY_PARSING_ERROR: {
        "message": "Policy definition could not be parsed",
        "hint": "Send the policy definition as a JSON object, either the full ARM envelope or its properties.",
    },
    ErrorCode.TEMPLATE_VALIDATION_ERROR: {
        "message": "Template could not be processed",
        "hint": "Templates must be Bicep (.bicep) or ARM JSON (.json) files.",
    },
    ErrorCode.INVALID_FIELD: {
        "message": "Invalid field value",
        "hint": "Check the field value matches the expected type and format.",
    },
    ErrorCode.SOURCE_UNAVAILABLE: {
        "message": "Upstream content source unavailable",
        "hint": "The template or policy repository could not be reached. Retry shortly, or configure GITHUB_TOKEN to raise rate limits.",
    },
    ErrorCode.INTERNAL_ERROR: {
        "message": "An unexpected error occurred",
        "hint": "Please retry your request. If the problem persists, check the service logs.",
    },
}


def make_error(code: ErrorCode, **overrides) -> dict:
    """
    Build an ``{"error": {...}}`` body for HTTPException.detail.

    The catalog supplies message and hint; keyword overrides (message,
    hint, field) replace or extend them.
    """
    entry = ERROR_MESSAGES.get(code, {})
    error = {"code": code.value, "message": entry.get("message", "An error occurred")}
    if entry.get("hint"):
        error["hint"] = entry["hint"]
    return {"error": {**error, **overrides}}


class IndexServiceError(Exception):
    """Base class for errors surfaced to callers of the indexing service."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_error(self) -> dict:
        """Render as an API error body."""
        return make_error(self.code, message=self.message)


class PolicyParsingError(IndexServiceError):
    """Raised when a policy definition is not a well-formed JSON object."""

    code = ErrorCode.POLICY_PARSING_ERROR
    status_code = 422


class TemplateValidationError(IndexServiceError):
    """Raised when a template request cannot be processed at all."""

    code = ErrorCode.TEMPLATE_VALIDATION_ERROR
    status_code = 422


class SourceError(IndexServiceError):
    """Raised when an upstream content source fails."""

    code = ErrorCode.SOURCE_UNAVAILABLE
    status_code = 503

    def __init__(self, message: str, upstream_status: int | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status
