# backend/app/routers/users.py
"""
User preference endpoints.

Endpoints:
    GET /users/{user_id}/preferences  - Alias and display currency
    PUT /users/{user_id}/preferences  - Update alias and/or display currency

A user without a stored row gets the configured default display currency.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from app.config import settings
from app.dependencies import get_preference_store, get_user_id
from app.middleware import limiter, RATE_LIMIT_WRITE
from app.schemas.users import (
    UserPreferenceResponse,
    UserPreferenceUpdate,
    UserPreferenceUpdateResponse,
)
from app.services.user_preferences_service import SqlPreferenceStore

logger = logging.getLogger(__name__)


# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/users/{user_id}",
    tags=["User Preferences"],
)


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get(
    "/preferences",
    response_model=UserPreferenceResponse,
    summary="Get user preferences",
)
def get_preferences(
        user_id: Annotated[str, Depends(get_user_id)],
        store: Annotated[SqlPreferenceStore, Depends(get_preference_store)],
):
    """Stored preferences, or the defaults when none were saved yet."""
    preference = store.get_preference(user_id)
    if preference is None:
        return UserPreferenceResponse(
            user_id=user_id,
            alias=None,
            display_currency=settings.default_display_currency,
        )
    return UserPreferenceResponse.model_validate(preference)


@router.put(
    "/preferences",
    response_model=UserPreferenceUpdateResponse,
    summary="Update user preferences",
)
@limiter.limit(RATE_LIMIT_WRITE)
def update_preferences(
        request: Request,
        body: UserPreferenceUpdate,
        user_id: Annotated[str, Depends(get_user_id)],
        store: Annotated[SqlPreferenceStore, Depends(get_preference_store)],
):
    """Only the fields sent are changed."""
    result = store.update_preference(
        user_id,
        alias=body.alias,
        display_currency=body.display_currency,
        default_currency=settings.default_display_currency,
    )
    return UserPreferenceUpdateResponse(
        preference=UserPreferenceResponse.model_validate(result.preference),
        was_created=result.was_created,
        changed_fields=result.changed_fields,
    )
