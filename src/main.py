from __future__ import annotations

import argparse
import logging
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Iterable, Sequence

from config import config
from domain.rates import CachedRate
from services.rate_errors import RateCacheError
from services.rate_refresh import RateRefreshTask
from services.rate_service import RateService, build_default_service
from services.rate_types import RateQueryResult
from utils.formatting import format_decimal
from utils.portfolio_summary import compute_portfolio_summary, render_portfolio_summary


def parse_holding(raw: str) -> tuple[str, Decimal]:
    asset_id, sep, quantity_raw = raw.partition("=")
    if not sep or not asset_id:
        raise argparse.ArgumentTypeError(f"holding must look like ASSET=QUANTITY, got {raw!r}")
    try:
        quantity = Decimal(quantity_raw)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"invalid quantity in {raw!r}") from exc
    return asset_id.strip(), quantity


def render_rates(entries: Iterable[CachedRate]) -> None:
    for entry in entries:
        rates_text = " ".join(f"{currency}={format_decimal(rate)}" for currency, rate in sorted(entry.rates.items()))
        updated = entry.last_updated.isoformat() if entry.last_updated else "never"
        print(f"{entry.asset_id}: {rates_text} (updated {updated})")


def render_unresolved(result: RateQueryResult) -> None:
    for asset_id, kind in result.unresolved_kinds().items():
        print(f"{asset_id}: unresolved ({kind})")


def run_get(service: RateService, asset_ids: list[str], currencies: str | None) -> None:
    if len(asset_ids) == 1:
        entry = service.get_by_id(asset_ids[0], currencies)
        if entry is None:
            print(f"{asset_ids[0]}: no rates available")
            return
        render_rates([entry])
        return

    result = service.get_by_ids(asset_ids, currencies)
    render_rates(result.rates)
    render_unresolved(result)


def run_refresh(service: RateService, *, loop: bool, interval_seconds: int, currencies: str | None) -> None:
    task = RateRefreshTask(service, interval=timedelta(seconds=interval_seconds), currencies=currencies)
    if loop:
        task.run_forever()
        return
    task.refresh_once()


def main(argv: Sequence[str] | None = None) -> None:
    settings = config()
    parser = argparse.ArgumentParser(description="Query and refresh cached CoinGecko exchange rates.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log cache decisions at INFO level.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    get_parser = subparsers.add_parser("get", help="Rates for one or more comma-separated asset ids.")
    get_parser.add_argument("asset_ids", help="e.g. bitcoin or bitcoin,ethereum")
    get_parser.add_argument("--vs", dest="currencies", help="Comma-separated currencies (default from settings).")

    all_parser = subparsers.add_parser("all", help="Rates for every cached asset.")
    all_parser.add_argument("--vs", dest="currencies")

    refresh_parser = subparsers.add_parser("refresh", help="Refresh every cached asset.")
    refresh_parser.add_argument("--loop", action="store_true", help="Keep refreshing on a fixed interval.")
    refresh_parser.add_argument("--interval", type=int, default=settings.rate_refresh_interval_seconds)
    refresh_parser.add_argument("--vs", dest="currencies")

    value_parser = subparsers.add_parser("value", help="Value holdings given as ASSET=QUANTITY.")
    value_parser.add_argument("holdings", nargs="+", type=parse_holding)
    value_parser.add_argument("--vs", dest="currency", default=settings.default_currency)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    service = build_default_service(settings)
    try:
        if args.command == "get":
            run_get(service, [part.strip() for part in args.asset_ids.split(",") if part.strip()], args.currencies)
        elif args.command == "all":
            result = service.get_all(args.currencies)
            render_rates(result.rates)
            render_unresolved(result)
        elif args.command == "refresh":
            run_refresh(service, loop=args.loop, interval_seconds=args.interval, currencies=args.currencies)
        elif args.command == "value":
            holdings: dict[str, Decimal] = {}
            for asset_id, quantity in args.holdings:
                holdings[asset_id] = holdings.get(asset_id, Decimal("0")) + quantity
            summary = compute_portfolio_summary(holdings, rate_provider=service, currency=args.currency)
            render_portfolio_summary(summary)
    except RateCacheError as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main()
