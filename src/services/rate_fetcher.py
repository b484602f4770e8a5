from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Protocol

from config import config
from domain.rates import AssetId, CurrencyCode

from .coingecko_client import CoinGeckoAPIError, CoinGeckoClient
from .rate_types import FetchFailure, FetchFailureKind, FetchResult

logger = logging.getLogger(__name__)


class RateFetcher(Protocol):
    provider_name: str

    def fetch(self, asset_ids: Iterable[AssetId], currencies: Iterable[CurrencyCode]) -> FetchResult: ...


class CoinGeckoRateFetcher(RateFetcher):
    """Turns CoinGecko ``simple/price`` responses into per-asset rate maps.

    Provider errors never escape as exceptions; they come back as tagged
    ``FetchFailure`` entries so the caller can decide what to absorb.
    """

    def __init__(
        self,
        *,
        client: CoinGeckoClient | None = None,
        provider_name: str = "CoinGecko",
    ) -> None:
        if client is None:
            settings = config()
            client = CoinGeckoClient(
                api_key=settings.coingecko_api_key,
                base_url=settings.coingecko_base_url,
                timeout=settings.coingecko_timeout_seconds,
            )
        self.client = client
        self.provider_name = provider_name

    def fetch(self, asset_ids: Iterable[AssetId], currencies: Iterable[CurrencyCode]) -> FetchResult:
        ids = sorted(set(asset_ids))
        codes = sorted(set(currencies))
        if not ids or not codes:
            return FetchResult()

        try:
            payload = self.client.get_simple_price(ids=ids, vs_currencies=codes)
        except CoinGeckoAPIError as exc:
            kind = self._classify(exc.status_code)
            logger.warning(
                "%s fetch failed for %s (%s): status=%s %s",
                self.provider_name,
                ",".join(ids),
                ",".join(codes),
                exc.status_code,
                exc,
            )
            failure = FetchFailure(kind=kind, asset_ids=frozenset(ids), provider=self.provider_name, message=str(exc))
            return FetchResult(failures=[failure])

        rates: dict[AssetId, dict[CurrencyCode, Decimal]] = {}
        not_found: list[AssetId] = []
        for asset_id in ids:
            raw = payload.get(asset_id)
            if not isinstance(raw, dict):
                not_found.append(asset_id)
                continue
            # A known asset may still lack some currencies; the map can be empty.
            rates[asset_id] = self._parse_asset_rates(asset_id, raw, codes)

        failures: list[FetchFailure] = []
        if not_found:
            logger.info("%s returned no rates for: %s", self.provider_name, ", ".join(not_found))
            failures.append(
                FetchFailure(
                    kind=FetchFailureKind.NOT_FOUND,
                    asset_ids=frozenset(not_found),
                    provider=self.provider_name,
                    message="asset missing from provider response",
                )
            )
        return FetchResult(rates=rates, failures=failures)

    @staticmethod
    def _classify(status_code: int | None) -> FetchFailureKind:
        if status_code == 429:
            return FetchFailureKind.RATE_LIMITED
        if status_code == 404:
            return FetchFailureKind.NOT_FOUND
        return FetchFailureKind.UNAVAILABLE

    def _parse_asset_rates(
        self, asset_id: str, raw: dict[str, Any], currencies: list[CurrencyCode]
    ) -> dict[CurrencyCode, Decimal]:
        parsed: dict[CurrencyCode, Decimal] = {}
        for currency in currencies:
            value = raw.get(currency)
            if value is None:
                continue
            rate = self._to_decimal(value)
            if rate is None or not rate.is_finite() or rate < 0:
                logger.warning("Dropping invalid %s rate for %s: %r", currency, asset_id, value)
                continue
            parsed[currency] = rate
        return parsed

    @staticmethod
    def _to_decimal(value: Any) -> Decimal | None:
        if isinstance(value, bool):
            return None
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return None


__all__ = ["CoinGeckoRateFetcher", "RateFetcher"]
