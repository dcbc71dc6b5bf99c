# backend/app/services/user_preferences_service.py
"""
User Preferences Service.

Stores the per-user alias and display currency. Implements the
PreferenceStore protocol used by the Currency Resolver.

Design Principles:
- No HTTP Knowledge: returns None / raises domain exceptions
- Sensible Defaults: a missing row means "use the configured default"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import UserPreference
from app.services.exceptions import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class PreferenceUpdateResult:
    """Result of updating user preferences."""

    preference: UserPreference
    was_created: bool
    changed_fields: list[str] = field(default_factory=list)


class SqlPreferenceStore:
    """Preference store backed by the user_preferences table."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def get_preference(self, user_id: str) -> UserPreference | None:
        return self._db.scalar(
            select(UserPreference).where(UserPreference.user_id == user_id)
        )

    def get_display_currency(self, user_id: str) -> str | None:
        preference = self.get_preference(user_id)
        return preference.display_currency if preference else None

    def update_preference(
            self,
            user_id: str,
            alias: str | None = None,
            display_currency: str | None = None,
            default_currency: str = "EUR",
    ) -> PreferenceUpdateResult:
        """
        Create or update the preference row of a user.

        Only the fields that are not None are changed.

        Raises:
            ValidationError: If display_currency is not a 3-letter code
        """
        if display_currency is not None:
            display_currency = display_currency.strip().upper()
            if len(display_currency) != 3 or not display_currency.isalpha():
                raise ValidationError(
                    f"Invalid currency code: '{display_currency}'",
                    field="display_currency",
                )

        preference = self.get_preference(user_id)
        was_created = preference is None
        if preference is None:
            preference = UserPreference(user_id=user_id, display_currency=default_currency)
            self._db.add(preference)

        changed: list[str] = []
        if alias is not None and alias != preference.alias:
            preference.alias = alias.strip() or None
            changed.append("alias")
        if display_currency is not None and display_currency != preference.display_currency:
            preference.display_currency = display_currency
            changed.append("display_currency")

        self._db.commit()
        self._db.refresh(preference)

        if changed or was_created:
            logger.info(f"Preferences for {user_id} updated: {changed or 'created'}")

        return PreferenceUpdateResult(
            preference=preference,
            was_created=was_created,
            changed_fields=changed,
        )
