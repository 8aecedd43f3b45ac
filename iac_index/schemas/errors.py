"""Pydantic schemas for error responses."""

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Error information with actionable guidance."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    hint: str | None = Field(None, description="Actionable guidance to fix the error")
    field: str | None = Field(None, description="Field name for validation errors")


class ErrorResponse(BaseModel):
    """Standard error response wrapper."""

    error: ErrorDetail

    model_config = {
        "json_schema_extra": {
            "example": {
                "error": {
                    "code": "policy_parsing_error",
                    "message": "Invalid policy JSON: Expecting value: line 1 column 1 (char 0)",
                    "hint": "Send the policy definition as a JSON object, either the full ARM envelope or its properties.",
                }
            }
        }
    }


class ValidationErrorDetail(BaseModel):
    """Request validation error for a specific field."""

    code: str = Field(default="invalid_field", description="Error code")
    message: str = Field(..., description="Error message")
    field: str = Field(..., description="Field path that caused the error")
    hint: str | None = Field(None, description="How to fix the error")


class ValidationErrorResponse(BaseModel):
    """Response for request validation errors (422)."""

    errors: list[ValidationErrorDetail]
