from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum

from domain.rates import AssetId, CachedRate, CurrencyCode

from .rate_errors import AssetNotFound, ProviderUnavailable, RateCacheError, RateLimitExceeded


class FetchFailureKind(StrEnum):
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    UNAVAILABLE = "UNAVAILABLE"


@dataclass(frozen=True)
class FetchFailure:
    """Why a group of assets could not be fetched from the provider."""

    kind: FetchFailureKind
    asset_ids: frozenset[AssetId]
    provider: str
    message: str = ""

    def to_error(self) -> RateCacheError:
        if self.kind is FetchFailureKind.RATE_LIMITED:
            return RateLimitExceeded(self.provider)
        if self.kind is FetchFailureKind.NOT_FOUND:
            return AssetNotFound(self.asset_ids)
        return ProviderUnavailable(self.provider, self.message or None)


@dataclass(frozen=True)
class FetchResult:
    rates: dict[AssetId, dict[CurrencyCode, Decimal]] = field(default_factory=dict)
    failures: list[FetchFailure] = field(default_factory=list)

    def failure_for(self, asset_id: str) -> FetchFailure | None:
        for failure in self.failures:
            if asset_id in failure.asset_ids:
                return failure
        return None


@dataclass(frozen=True)
class Usability:
    fresh: bool
    missing_currencies: frozenset[CurrencyCode]

    @property
    def usable(self) -> bool:
        return self.fresh and not self.missing_currencies


@dataclass
class RateQueryResult:
    """Entries resolved by a batch query plus the assets that could not be resolved."""

    rates: list[CachedRate] = field(default_factory=list)
    unresolved: dict[AssetId, FetchFailure] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.unresolved

    def unresolved_kinds(self) -> dict[AssetId, FetchFailureKind]:
        return {asset_id: failure.kind for asset_id, failure in self.unresolved.items()}

    def get(self, asset_id: str) -> CachedRate | None:
        for entry in self.rates:
            if entry.asset_id == asset_id:
                return entry
        return None


__all__ = ["FetchFailure", "FetchFailureKind", "FetchResult", "RateQueryResult", "Usability"]
