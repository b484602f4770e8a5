from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping, Sequence

from domain.pricing import RateProvider
from services.rate_errors import AssetNotFound, ProviderUnavailable

from .formatting import format_decimal, format_money, format_percent

logger = logging.getLogger(__name__)


@dataclass
class AssetValuation:
    asset_id: str
    quantity: Decimal
    rate: Decimal
    value: Decimal


@dataclass
class PortfolioSummary:
    currency: str
    assets: list[AssetValuation] = field(default_factory=list)
    unpriced: list[str] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((asset.value for asset in self.assets), Decimal("0"))

    def share_of(self, asset: AssetValuation) -> Decimal:
        total = self.total
        if total == 0:
            return Decimal("0")
        return asset.value / total


def compute_portfolio_summary(
    holdings: Mapping[str, Decimal],
    *,
    rate_provider: RateProvider,
    currency: str,
) -> PortfolioSummary:
    """Value positive holdings in ``currency``.

    Assets the provider does not know, or cannot price right now, are listed in
    ``unpriced`` instead of failing the whole summary. Rate limiting propagates.
    """
    summary = PortfolioSummary(currency=currency.lower())

    for asset_id, quantity in sorted(holdings.items(), key=lambda item: item[0]):
        if quantity <= 0:
            continue
        try:
            rate = rate_provider.rate(asset_id, summary.currency)
        except (AssetNotFound, ProviderUnavailable) as exc:
            logger.warning("Cannot price %s in %s: %s", asset_id, summary.currency, exc)
            summary.unpriced.append(asset_id)
            continue
        summary.assets.append(
            AssetValuation(
                asset_id=asset_id,
                quantity=quantity,
                rate=rate,
                value=quantity * rate,
            )
        )

    return summary


def render_portfolio_summary(summary: PortfolioSummary) -> None:
    print(f"Portfolio value ({summary.currency.upper()}):")
    if not summary.assets:
        print("  (empty)")
    else:
        rows: list[tuple[str, str, str, str]] = []
        for asset in summary.assets:
            rows.append(
                (
                    asset.asset_id,
                    format_decimal(asset.quantity),
                    format_money(asset.value, summary.currency),
                    format_percent(summary.share_of(asset)),
                )
            )

        labels = ("Asset", "Quantity", "Value", "Share")
        widths = [max(len(label), max(len(row[idx]) for row in rows)) for idx, label in enumerate(labels)]
        header = _format_row(labels, widths)

        lines = [header, "-" * len(header)]
        for row in rows:
            lines.append(_format_row(row, widths))
        lines.append("-" * len(header))
        lines.append(f"Total: {format_money(summary.total, summary.currency)}")
        print("\n".join(lines))

    if summary.unpriced:
        print(f"Unpriced assets: {', '.join(summary.unpriced)}")


def _format_row(cells: Sequence[str], widths: Sequence[int]) -> str:
    first = f"{cells[0]:<{widths[0]}}"
    rest = " ".join(f"{cell:>{width}}" for cell, width in zip(cells[1:], widths[1:]))
    return f"{first} {rest}"
