from __future__ import annotations

import logging
import threading
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import StrEnum
from typing import Callable, Iterable

from domain.rates import AssetId, CachedRate, CurrencyCode, RatesSnapshot

from .rate_errors import AssetNotFound, StoreUnavailable
from .rate_fetcher import RateFetcher
from .rate_store import RateStore
from .rate_types import FetchFailure, FetchFailureKind, RateQueryResult
from .staleness import is_usable

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RefreshMode(StrEnum):
    FULL = "full"
    PARTIAL = "partial"
    CREATE = "create"


class RateCacheCoordinator:
    """Serves rate queries from the store and fetches only what is stale or missing.

    Each call runs load → fetch → merge → save under one lock, so concurrent
    callers never interleave their read-modify-write cycles on the snapshot.
    Currencies already cached for an asset are never dropped by a refresh.
    """

    def __init__(
        self,
        *,
        store: RateStore,
        fetcher: RateFetcher,
        ttl: timedelta,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.ttl = ttl
        self._clock = clock or _utc_now
        self._lock = threading.Lock()

    def refresh(self, asset_ids: Iterable[str], currencies: Iterable[CurrencyCode]) -> RateQueryResult:
        with self._lock:
            snapshot = self.store.load()
            return self._refresh_snapshot(snapshot, [AssetId(asset_id) for asset_id in asset_ids], currencies)

    def refresh_all(self, currencies: Iterable[CurrencyCode]) -> RateQueryResult:
        with self._lock:
            snapshot = self.store.load()
            return self._refresh_snapshot(snapshot, snapshot.asset_ids(), currencies)

    def cached_asset_ids(self) -> list[AssetId]:
        with self._lock:
            return self.store.load().asset_ids()

    def fetch_direct(self, asset_id: str, currencies: Iterable[CurrencyCode]) -> CachedRate:
        """Fetch one asset without consulting the cache, then try to record it.

        Used when the store cannot be read. A failure to record the fetched
        entry is logged and does not hide the fetched rates from the caller.
        """
        with self._lock:
            now = self._clock()
            asset = AssetId(asset_id)
            result = self.fetcher.fetch([asset], currencies)
            fetched = result.rates.get(asset)
            if not fetched:
                failure = result.failure_for(asset)
                raise failure.to_error() if failure is not None else AssetNotFound([asset])

            entry = CachedRate(asset_id=asset, rates=fetched, last_updated=now)
            try:
                snapshot = self.store.load()
                entry = self._merge(snapshot.get(asset), asset, RefreshMode.PARTIAL, fetched, now)
                snapshot.upsert(entry)
                self._stamp(snapshot, now)
                self.store.save(snapshot)
            except StoreUnavailable as exc:
                logger.warning("Could not record directly fetched rates for %s: %s", asset, exc)
            return entry

    def _refresh_snapshot(
        self,
        snapshot: RatesSnapshot,
        asset_ids: list[AssetId],
        currencies: Iterable[CurrencyCode],
    ) -> RateQueryResult:
        now = self._clock()
        requested = frozenset(currencies)
        ordered_ids = list(dict.fromkeys(asset_ids))

        plans: dict[AssetId, tuple[RefreshMode, frozenset[CurrencyCode]]] = {}
        for asset_id in ordered_ids:
            entry = snapshot.get(asset_id)
            usability = is_usable(entry, requested, self.ttl, now)
            if entry is None:
                plans[asset_id] = (RefreshMode.CREATE, requested)
            elif not usability.fresh:
                plans[asset_id] = (RefreshMode.FULL, frozenset(entry.currencies()) | requested)
            elif usability.missing_currencies:
                plans[asset_id] = (RefreshMode.PARTIAL, usability.missing_currencies)

        served = [asset_id for asset_id in ordered_ids if asset_id not in plans]
        if served:
            logger.info("Not refreshing for coins: %s", ", ".join(served))
        if plans:
            logger.info(
                "Refreshing rates for coins: %s",
                ", ".join(f"{asset_id} ({mode})" for asset_id, (mode, _) in plans.items()),
            )

        groups: dict[frozenset[CurrencyCode], list[AssetId]] = defaultdict(list)
        for asset_id, (_, codes) in plans.items():
            groups[codes].append(asset_id)

        unresolved: dict[AssetId, FetchFailure] = {}
        changed = False
        for codes, group_ids in groups.items():
            result = self.fetcher.fetch(group_ids, codes)
            for asset_id in group_ids:
                fetched = result.rates.get(asset_id)
                mode = plans[asset_id][0]
                if fetched is None or (not fetched and mode is RefreshMode.CREATE):
                    unresolved[asset_id] = result.failure_for(asset_id) or FetchFailure(
                        kind=FetchFailureKind.NOT_FOUND,
                        asset_ids=frozenset({asset_id}),
                        provider=self.fetcher.provider_name,
                        message="no rates for the requested currencies",
                    )
                    continue
                snapshot.upsert(self._merge(snapshot.get(asset_id), asset_id, mode, fetched, now))
                changed = True

        if unresolved:
            logger.warning(
                "Could not resolve rates for: %s",
                ", ".join(f"{asset_id} ({failure.kind})" for asset_id, failure in unresolved.items()),
            )

        if changed:
            self._stamp(snapshot, now)
            self.store.save(snapshot)

        resolved: list[CachedRate] = []
        for asset_id in ordered_ids:
            if asset_id in unresolved:
                continue
            entry = snapshot.get(asset_id)
            if entry is not None:
                resolved.append(entry)
        return RateQueryResult(rates=resolved, unresolved=unresolved)

    @staticmethod
    def _merge(
        existing: CachedRate | None,
        asset_id: AssetId,
        mode: RefreshMode,
        fetched: dict[CurrencyCode, Decimal],
        now: datetime,
    ) -> CachedRate:
        if existing is None:
            return CachedRate(asset_id=asset_id, rates=fetched, last_updated=now)

        if mode is RefreshMode.PARTIAL:
            rates = {**existing.rates, **fetched}
        else:
            rates = dict(fetched)
            dropped = existing.currencies() - set(fetched)
            if dropped:
                logger.warning(
                    "Provider omitted %s for %s on refresh; keeping cached values",
                    ", ".join(sorted(dropped)),
                    asset_id,
                )
                rates.update({currency: existing.rates[currency] for currency in dropped})

        last_updated = now if existing.last_updated is None else max(existing.last_updated, now)
        return CachedRate(asset_id=asset_id, rates=rates, last_updated=last_updated)

    @staticmethod
    def _stamp(snapshot: RatesSnapshot, now: datetime) -> None:
        latest = max((entry.last_updated for entry in snapshot.rates if entry.last_updated is not None), default=now)
        snapshot.global_last_updated = max(now, latest)


__all__ = ["RateCacheCoordinator", "RefreshMode"]
