from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Iterable

from config import AppSettings, config
from domain.pricing import RateProvider
from domain.rates import AssetId, CachedRate, CurrencyCode, parse_currencies

from .coingecko_client import CoinGeckoClient
from .rate_cache import RateCacheCoordinator
from .rate_errors import AssetNotFound, ProviderUnavailable, StoreUnavailable
from .rate_fetcher import CoinGeckoRateFetcher
from .rate_store import JsonRateStore
from .rate_types import FetchFailureKind, RateQueryResult

logger = logging.getLogger(__name__)

Currencies = str | Iterable[str] | None


class RateService(RateProvider):
    """Public rate queries. All of them may persist refreshed rates as a side effect."""

    def __init__(self, coordinator: RateCacheCoordinator, *, default_currency: str = "usd") -> None:
        self.coordinator = coordinator
        self.default_currency = default_currency

    def get_all(self, currencies: Currencies = None) -> RateQueryResult:
        result = self.coordinator.refresh_all(self._currencies(currencies))
        self._raise_if_rate_limited(result)
        return result

    def get_by_ids(self, asset_ids: Iterable[str], currencies: Currencies = None) -> RateQueryResult:
        result = self.coordinator.refresh(asset_ids, self._currencies(currencies))
        self._raise_if_rate_limited(result)
        return result

    def get_by_id(self, asset_id: str, currencies: Currencies = None) -> CachedRate | None:
        codes = self._currencies(currencies)
        try:
            result = self.coordinator.refresh([asset_id], codes)
        except StoreUnavailable as exc:
            if exc.operation != "read":
                raise
            logger.warning("%s; fetching %s directly", exc, asset_id)
            try:
                return self.coordinator.fetch_direct(asset_id, codes)
            except ProviderUnavailable as fetch_exc:
                raise exc from fetch_exc

        failure = result.unresolved.get(AssetId(asset_id))
        if failure is None:
            return result.get(asset_id)
        if failure.kind is FetchFailureKind.UNAVAILABLE:
            logger.warning("No rates available for %s: %s", asset_id, failure.message or failure.kind)
            return None
        raise failure.to_error()

    def cached_asset_ids(self) -> list[AssetId]:
        return self.coordinator.cached_asset_ids()

    def rate(self, asset_id: str, currency: str) -> Decimal:
        code = self._currencies(currency)[0]
        entry = self.get_by_id(asset_id, [code])
        if entry is None:
            raise ProviderUnavailable(self.coordinator.fetcher.provider_name)
        try:
            return entry.rates[code]
        except KeyError as exc:
            raise AssetNotFound([asset_id]) from exc

    def _currencies(self, currencies: Currencies) -> list[CurrencyCode]:
        return parse_currencies(currencies, default=self.default_currency)

    @staticmethod
    def _raise_if_rate_limited(result: RateQueryResult) -> None:
        # Partial results are returned as-is; throttling only surfaces when it left nothing to return.
        if result.rates:
            return
        for failure in result.unresolved.values():
            if failure.kind is FetchFailureKind.RATE_LIMITED:
                raise failure.to_error()


def build_default_service(settings: AppSettings | None = None) -> RateService:
    settings = settings or config()
    store = JsonRateStore(path=settings.rates_file)
    coordinator = RateCacheCoordinator(
        store=store,
        fetcher=CoinGeckoRateFetcher(
            client=CoinGeckoClient(
                api_key=settings.coingecko_api_key,
                base_url=settings.coingecko_base_url,
                timeout=settings.coingecko_timeout_seconds,
            )
        ),
        ttl=timedelta(seconds=settings.rate_cache_ttl_seconds),
    )
    return RateService(coordinator, default_currency=settings.default_currency)


__all__ = ["RateService", "build_default_service"]
