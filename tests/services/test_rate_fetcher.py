from __future__ import annotations

from decimal import Decimal
from typing import Any, Sequence, cast

import pytest

from services.coingecko_client import CoinGeckoAPIError, CoinGeckoClient
from services.rate_fetcher import CoinGeckoRateFetcher
from services.rate_types import FetchFailureKind
from tests.constants import BITCOIN, ETHEREUM, SOLANA


class _StubClient:
    def __init__(self, payload: dict[str, Any] | None = None, *, error: CoinGeckoAPIError | None = None) -> None:
        self.payload = payload or {}
        self.error = error
        self.calls: list[tuple[list[str], list[str]]] = []

    def get_simple_price(self, *, ids: Sequence[str], vs_currencies: Sequence[str]) -> dict[str, Any]:
        self.calls.append((list(ids), list(vs_currencies)))
        if self.error is not None:
            raise self.error
        return self.payload


def _fetcher(client: _StubClient) -> CoinGeckoRateFetcher:
    return CoinGeckoRateFetcher(client=cast(CoinGeckoClient, client))


def test_fetch_converts_payload_into_rate_maps() -> None:
    client = _StubClient(
        {
            BITCOIN: {"usd": 50000, "eur": 45000.5, "last_updated_at": 1_700_000_000},
            ETHEREUM: {"usd": 3000},
        }
    )

    result = _fetcher(client).fetch([ETHEREUM, BITCOIN, BITCOIN], ["usd", "eur"])

    assert client.calls == [([BITCOIN, ETHEREUM], ["eur", "usd"])]
    assert result.rates == {
        BITCOIN: {"usd": Decimal("50000"), "eur": Decimal("45000.5")},
        ETHEREUM: {"usd": Decimal("3000")},
    }
    assert result.failures == []


def test_assets_missing_from_response_are_reported_not_found() -> None:
    client = _StubClient({BITCOIN: {"usd": 50000}, SOLANA: "unknown"})

    result = _fetcher(client).fetch([BITCOIN, ETHEREUM, SOLANA], ["usd"])

    assert set(result.rates) == {BITCOIN}
    assert len(result.failures) == 1
    failure = result.failures[0]
    assert failure.kind is FetchFailureKind.NOT_FOUND
    assert failure.asset_ids == {ETHEREUM, SOLANA}
    assert result.failure_for(ETHEREUM) is failure
    assert result.failure_for(BITCOIN) is None


def test_known_asset_without_requested_currencies_returns_empty_map() -> None:
    client = _StubClient({BITCOIN: {"last_updated_at": 1_700_000_000}})

    result = _fetcher(client).fetch([BITCOIN], ["usd", "xyz"])

    assert result.rates == {BITCOIN: {}}
    assert result.failures == []


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (429, FetchFailureKind.RATE_LIMITED),
        (404, FetchFailureKind.NOT_FOUND),
        (500, FetchFailureKind.UNAVAILABLE),
        (None, FetchFailureKind.UNAVAILABLE),
    ],
)
def test_client_errors_are_classified(status_code: int | None, expected: FetchFailureKind) -> None:
    client = _StubClient(error=CoinGeckoAPIError("boom", status_code=status_code))

    result = _fetcher(client).fetch([BITCOIN, ETHEREUM], ["usd"])

    assert result.rates == {}
    assert len(result.failures) == 1
    assert result.failures[0].kind is expected
    assert result.failures[0].asset_ids == {BITCOIN, ETHEREUM}
    assert result.failures[0].provider == "CoinGecko"


def test_invalid_values_are_dropped() -> None:
    client = _StubClient({BITCOIN: {"usd": -1, "eur": "abc", "gbp": True, "jpy": 7_500_000, "chf": float("inf")}})

    result = _fetcher(client).fetch([BITCOIN], ["usd", "eur", "gbp", "jpy", "chf"])

    assert result.rates == {BITCOIN: {"jpy": Decimal("7500000")}}


def test_only_requested_currencies_are_kept() -> None:
    client = _StubClient({BITCOIN: {"usd": 50000, "eur": 45000}})

    result = _fetcher(client).fetch([BITCOIN], ["usd"])

    assert result.rates == {BITCOIN: {"usd": Decimal("50000")}}


def test_empty_request_does_not_call_provider() -> None:
    client = _StubClient()

    result = _fetcher(client).fetch([], ["usd"])

    assert client.calls == []
    assert result.rates == {}
    assert result.failures == []
