# backend/app/schemas/users.py
"""
User preference request/response schemas.

Defines Pydantic models for:
- Alias (the holder name a user trades as)
- Display currency (every valuation amount is converted into it)
"""

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.validators import validate_currency


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================


class UserPreferenceResponse(BaseModel):
    """Response containing user preferences."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    alias: str | None = Field(
        None,
        description="Default holder name in person filters",
        examples=["Ana"],
    )
    display_currency: str = Field(
        ...,
        description="Currency all valuations are shown in",
        examples=["EUR", "USD"],
    )
    updated_at: dt.datetime | None = None


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================


class UserPreferenceUpdate(BaseModel):
    """Request body for updating preferences (partial update)."""

    alias: str | None = Field(
        None,
        max_length=100,
        examples=["Ana"],
    )
    display_currency: str | None = Field(
        None,
        description="ISO 4217 code",
        examples=["USD"],
    )

    @field_validator("display_currency")
    @classmethod
    def normalize_currency(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return validate_currency(v)


class UserPreferenceUpdateResponse(BaseModel):
    preference: UserPreferenceResponse
    was_created: bool
    changed_fields: list[str]
