"""Tests for settings and the start-day preference."""

import pytest

from finledger.config import LedgerSettings, MonthStartPreference, get_settings
from finledger.errors import DataIntegrityError, InvalidInputError


class TestMonthStartPreference:
    """Tests for the file-backed start-day."""

    def test_missing_file_uses_default(self, tmp_path):
        prefs = MonthStartPreference(str(tmp_path / "prefs.json"), default_day=7)
        assert prefs.get_month_start_day() == 7

    def test_set_persists(self, tmp_path):
        path = tmp_path / "nested" / "prefs.json"
        MonthStartPreference(str(path)).set_month_start_day(15)
        assert MonthStartPreference(str(path)).get_month_start_day() == 15

    def test_rejects_out_of_range(self, preferences):
        with pytest.raises(InvalidInputError):
            preferences.set_month_start_day(29)
        assert preferences.get_month_start_day() == 1

    def test_corrupt_file_is_an_error(self, tmp_path):
        path = tmp_path / "prefs.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(DataIntegrityError):
            MonthStartPreference(str(path)).get_month_start_day()

    def test_out_of_range_value_in_file(self, tmp_path):
        path = tmp_path / "prefs.json"
        path.write_text('{"month_start_day": 31}', encoding="utf-8")
        with pytest.raises(DataIntegrityError):
            MonthStartPreference(str(path)).get_month_start_day()

    def test_bad_default(self, tmp_path):
        with pytest.raises(InvalidInputError):
            MonthStartPreference(str(tmp_path / "prefs.json"), default_day=0)


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LEDGER_STORAGE_BACKEND", raising=False)
        monkeypatch.delenv("LEDGER_DEFAULT_MONTH_START_DAY", raising=False)
        settings = LedgerSettings(_env_file=None)
        assert settings.storage_backend == "memory"
        assert settings.default_month_start_day == 1
        assert settings.count_budget_as_income is False

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("LEDGER_DEFAULT_MONTH_START_DAY", "10")
        monkeypatch.setenv("LEDGER_COUNT_BUDGET_AS_INCOME", "true")
        settings = LedgerSettings(_env_file=None)
        assert settings.default_month_start_day == 10
        assert settings.count_budget_as_income is True

    def test_start_day_out_of_range(self, monkeypatch):
        monkeypatch.setenv("LEDGER_DEFAULT_MONTH_START_DAY", "30")
        with pytest.raises(ValueError):
            LedgerSettings(_env_file=None)

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()
