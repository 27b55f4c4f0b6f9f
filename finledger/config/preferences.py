"""
User Preferences

The month start-day is a per-device user preference, persisted outside
the ledger core in a small JSON file. The core never reads it implicitly:
LedgerService loads it once and threads the value into every call.
"""

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from finledger.errors import DataIntegrityError
from finledger.periods import validate_start_day


class UserPreferences(BaseModel):
    month_start_day: int = Field(default=1, ge=1, le=28)


class MonthStartPreference:
    """
    File-backed storage for the month start-day.

    A missing file means "use the default". A corrupt file is an error,
    not a silent reset: the start-day decides every historical balance.
    """

    def __init__(self, path: str, default_day: int = 1):
        self._path = Path(path)
        self._default_day = validate_start_day(default_day)
        self._cached: Optional[UserPreferences] = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> UserPreferences:
        if self._cached is not None:
            return self._cached

        if not self._path.exists():
            self._cached = UserPreferences(month_start_day=self._default_day)
            return self._cached

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            self._cached = UserPreferences.model_validate(raw)
        except (json.JSONDecodeError, ValidationError) as e:
            raise DataIntegrityError(f"Corrupt preferences file {self._path}: {e}")
        return self._cached

    def get_month_start_day(self) -> int:
        return self.load().month_start_day

    def set_month_start_day(self, day: int) -> int:
        """
        Persist a new start-day.

        Raises:
            InvalidInputError: If day is outside 1..28
        """
        validate_start_day(day)

        prefs = self.load().model_copy(update={"month_start_day": day})
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(prefs.model_dump_json(indent=2), encoding="utf-8")
        self._cached = prefs
        return day
