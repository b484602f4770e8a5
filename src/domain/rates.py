from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, NewType

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

AssetId = NewType("AssetId", str)
CurrencyCode = NewType("CurrencyCode", str)


def _blank_to_none(value: Any) -> Any:
    # Older rate files carry "" for timestamps that were never written.
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _assume_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CachedRate(BaseModel):
    """Rates of one asset against every currency fetched so far.

    A currency missing from ``rates`` is unknown, it is never an implicit zero.
    ``last_updated`` is ``None`` only for entries loaded from legacy files and
    such entries are always treated as stale.
    """

    model_config = ConfigDict(populate_by_name=True)

    asset_id: AssetId = Field(alias="id")
    rates: dict[CurrencyCode, Decimal] = Field(default_factory=dict, alias="currencyRateMap")
    last_updated: datetime | None = Field(default=None, alias="lastUpdated")

    @field_validator("last_updated", mode="before")
    @classmethod
    def _parse_last_updated(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("last_updated")
    @classmethod
    def _last_updated_in_utc(cls, value: datetime | None) -> datetime | None:
        return _assume_utc(value)

    @field_validator("rates")
    @classmethod
    def _validate_rates(cls, value: dict[CurrencyCode, Decimal]) -> dict[CurrencyCode, Decimal]:
        normalized: dict[CurrencyCode, Decimal] = {}
        for currency, rate in value.items():
            if not rate.is_finite() or rate < 0:
                raise ValueError(f"rate for {currency!r} must be finite and non-negative, got {rate}")
            normalized[CurrencyCode(currency.lower())] = rate
        return normalized

    @field_serializer("rates", when_used="json")
    def _rates_as_numbers(self, rates: dict[CurrencyCode, Decimal]) -> dict[str, float]:
        return {currency: float(rate) for currency, rate in rates.items()}

    def currencies(self) -> set[CurrencyCode]:
        return set(self.rates)


class RatesSnapshot(BaseModel):
    """Whole content of the rate cache file."""

    model_config = ConfigDict(populate_by_name=True)

    rates: list[CachedRate] = Field(default_factory=list)
    global_last_updated: datetime | None = Field(default=None, alias="globalLastUpdated")

    @field_validator("global_last_updated", mode="before")
    @classmethod
    def _parse_global_last_updated(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("global_last_updated")
    @classmethod
    def _global_last_updated_in_utc(cls, value: datetime | None) -> datetime | None:
        return _assume_utc(value)

    @model_validator(mode="after")
    def _validate_unique_assets(self) -> RatesSnapshot:
        seen: set[AssetId] = set()
        for entry in self.rates:
            if entry.asset_id in seen:
                raise ValueError(f"duplicate cached rate for asset {entry.asset_id!r}")
            seen.add(entry.asset_id)
        return self

    def get(self, asset_id: str) -> CachedRate | None:
        for entry in self.rates:
            if entry.asset_id == asset_id:
                return entry
        return None

    def upsert(self, entry: CachedRate) -> None:
        for index, existing in enumerate(self.rates):
            if existing.asset_id == entry.asset_id:
                self.rates[index] = entry
                return
        self.rates.append(entry)

    def asset_ids(self) -> list[AssetId]:
        return [entry.asset_id for entry in self.rates]


def parse_currencies(raw: str | Iterable[str] | None, *, default: str = "usd") -> list[CurrencyCode]:
    """Normalize ``"usd,EUR"`` style input into unique lowercase codes, keeping order."""
    parts: Iterable[str]
    if raw is None:
        parts = ()
    elif isinstance(raw, str):
        parts = raw.split(",")
    else:
        parts = raw

    currencies: list[CurrencyCode] = []
    for part in parts:
        code = CurrencyCode(part.strip().lower())
        if code and code not in currencies:
            currencies.append(code)

    if not currencies:
        currencies.append(CurrencyCode(default.strip().lower()))
    return currencies


__all__ = ["AssetId", "CachedRate", "CurrencyCode", "RatesSnapshot", "parse_currencies"]
