from __future__ import annotations

from decimal import Decimal
from typing import Protocol


class RateProvider(Protocol):
    """Lookup interface for asset→currency rates."""

    def rate(self, asset_id: str, currency: str) -> Decimal: ...
