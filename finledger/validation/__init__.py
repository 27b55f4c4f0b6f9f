"""Fact validation package."""

from finledger.validation.validator import FactValidator

__all__ = ["FactValidator"]
