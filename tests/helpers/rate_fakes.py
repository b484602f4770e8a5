from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Mapping

from domain.rates import AssetId, CachedRate, CurrencyCode, RatesSnapshot
from services.rate_errors import StoreUnavailable
from services.rate_store import JsonRateStore
from services.rate_types import FetchFailure, FetchFailureKind, FetchResult


@dataclass
class FakeClock:
    current: datetime

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


class StubRateFetcher:
    """Answers from an in-memory price table and records every call."""

    def __init__(
        self,
        prices: Mapping[str, Mapping[str, object]] | None = None,
        *,
        failures: Mapping[str, FetchFailureKind] | None = None,
        provider_name: str = "StubGecko",
    ) -> None:
        self.prices: dict[str, dict[str, object]] = {asset: dict(rates) for asset, rates in (prices or {}).items()}
        self.failures: dict[str, FetchFailureKind] = dict(failures or {})
        self.provider_name = provider_name
        self.calls: list[tuple[frozenset[str], frozenset[str]]] = []

    def fetch(self, asset_ids: Iterable[AssetId], currencies: Iterable[CurrencyCode]) -> FetchResult:
        ids = frozenset(asset_ids)
        codes = frozenset(currencies)
        self.calls.append((ids, codes))

        rates: dict[AssetId, dict[CurrencyCode, Decimal]] = {}
        failed: dict[FetchFailureKind, set[AssetId]] = defaultdict(set)
        for asset_id in sorted(ids):
            kind = self.failures.get(asset_id)
            if kind is not None:
                failed[kind].add(asset_id)
                continue
            known = self.prices.get(asset_id)
            if known is None:
                failed[FetchFailureKind.NOT_FOUND].add(asset_id)
                continue
            rates[asset_id] = {CurrencyCode(code): Decimal(str(known[code])) for code in codes if code in known}

        failures = [
            FetchFailure(kind=kind, asset_ids=frozenset(assets), provider=self.provider_name)
            for kind, assets in failed.items()
        ]
        return FetchResult(rates=rates, failures=failures)


class RecordingStore(JsonRateStore):
    """JSON store that counts operations and can be told to fail the next loads or saves."""

    def __init__(self, *, path: Path, fail_loads: int = 0, fail_saves: int = 0) -> None:
        super().__init__(path=path)
        self.fail_loads = fail_loads
        self.fail_saves = fail_saves
        self.loads = 0
        self.saves = 0

    def load(self) -> RatesSnapshot:
        self.loads += 1
        if self.fail_loads:
            self.fail_loads -= 1
            raise StoreUnavailable(self.path, "simulated read error")
        return super().load()

    def save(self, snapshot: RatesSnapshot) -> None:
        if self.fail_saves:
            self.fail_saves -= 1
            raise StoreUnavailable(self.path, "simulated write error", operation="write")
        super().save(snapshot)
        self.saves += 1


def cached(asset_id: str, rates: Mapping[str, object], last_updated: datetime | None) -> CachedRate:
    return CachedRate(
        asset_id=AssetId(asset_id),
        rates={CurrencyCode(code): Decimal(str(value)) for code, value in rates.items()},
        last_updated=last_updated,
    )


def seed(store: JsonRateStore, *entries: CachedRate, global_last_updated: datetime | None = None) -> None:
    snapshot = RatesSnapshot(rates=list(entries), global_last_updated=global_last_updated)
    store.path.parent.mkdir(parents=True, exist_ok=True)
    store.path.write_text(snapshot.model_dump_json(by_alias=True), encoding="utf-8")


def read_snapshot(store: JsonRateStore) -> RatesSnapshot:
    return RatesSnapshot.model_validate_json(store.path.read_text(encoding="utf-8"))
