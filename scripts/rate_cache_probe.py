# flake8: noqa E402
# Run via uv for access to dev deps, e.g.:
# uv run scripts/rate_cache_probe.py --asset bitcoin --vs usd --vs usd,eur
from __future__ import annotations

import argparse
import sys
from datetime import timedelta
from pathlib import Path
from typing import Iterable

# Ensure the src directory is importable when the script is invoked via uv/python directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from config import config
from domain.rates import AssetId, CurrencyCode
from services.coingecko_client import CoinGeckoClient
from services.rate_cache import RateCacheCoordinator
from services.rate_fetcher import CoinGeckoRateFetcher
from services.rate_service import RateService
from services.rate_store import JsonRateStore
from services.rate_types import FetchResult


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Probe rate cache hits and fetches against CoinGecko.")
    parser.add_argument("--asset", default="bitcoin", help="CoinGecko asset id (default: bitcoin).")
    parser.add_argument(
        "--vs",
        action="append",
        dest="queries",
        help="Currencies to query, comma-separated. Can be repeated; defaults to usd, usd, usd,eur.",
    )
    parser.add_argument("--ttl", type=int, default=60, help="Cache TTL in seconds (default 60).")
    parser.add_argument(
        "--store-file",
        default=str(PROJECT_ROOT / ".cache" / "rate_cache_probe" / "rates.json"),
        help="File to persist JsonRateStore data (default: .cache/rate_cache_probe/rates.json).",
    )
    return parser.parse_args()


class LoggingCoinGeckoRateFetcher(CoinGeckoRateFetcher):
    def __init__(self, *args, **kwargs) -> None:  # type: ignore[no-untyped-def]
        super().__init__(*args, **kwargs)
        self.fetch_count = 0

    def fetch(self, asset_ids: Iterable[AssetId], currencies: Iterable[CurrencyCode]) -> FetchResult:
        asset_ids = list(asset_ids)
        currencies = list(currencies)
        self.fetch_count += 1
        print(f"[fetcher] fetch #{self.fetch_count} for {','.join(asset_ids)} in {','.join(sorted(currencies))}")
        return super().fetch(asset_ids, currencies)


def main() -> None:
    args = parse_args()
    queries: list[str] = args.queries or ["usd", "usd", "usd,eur"]

    settings = config()
    fetcher = LoggingCoinGeckoRateFetcher(
        client=CoinGeckoClient(api_key=settings.coingecko_api_key, base_url=settings.coingecko_base_url)
    )
    store = JsonRateStore(path=Path(args.store_file))
    coordinator = RateCacheCoordinator(store=store, fetcher=fetcher, ttl=timedelta(seconds=args.ttl))
    service = RateService(coordinator)

    print(f"Using store at {store.path}")
    for idx, currencies in enumerate(queries, start=1):
        before_fetches = fetcher.fetch_count
        entry = service.get_by_id(args.asset, currencies)
        status = "cache-hit" if fetcher.fetch_count == before_fetches else "fetched"
        rates = entry.rates if entry is not None else {}
        print(f"[request {idx}] {args.asset} in {currencies} => {rates} ({status})")


if __name__ == "__main__":
    main()
