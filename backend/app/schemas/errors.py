# backend/app/schemas/errors.py
"""
Error response bodies rendered by the exception handlers in main.py.

Domain errors use ErrorDetail; request-body problems caught by FastAPI use
ValidationErrorDetail with one FieldError per offending field.
"""

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Body of every 4xx/5xx raised from app.services.exceptions."""

    error: str = Field(
        ...,
        description="Exception class name",
        examples=["InvalidAllocationError", "TransactionNotFoundError", "RecomputeError"],
    )
    message: str = Field(..., examples=["Allocation rejected: total shares must be positive"])
    details: dict | None = Field(
        default=None,
        description="Structured context: offending field, transaction id, affected pairs",
    )


class FieldError(BaseModel):
    """One failed constraint of a request body, path or query parameter."""

    field: str = Field(..., description="Dotted location", examples=["body.holders.Ana"])
    message: str
    type: str = Field(..., examples=["greater_than_equal"])


class ValidationErrorDetail(BaseModel):
    """422 body for requests rejected before reaching a service."""

    error: str = "RequestValidationError"
    message: str = "Request validation failed"
    details: list[FieldError]
