from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from domain.rates import CachedRate, CurrencyCode

from .rate_types import Usability


def is_usable(
    entry: CachedRate | None,
    requested_currencies: Iterable[CurrencyCode],
    ttl: timedelta,
    now: datetime,
) -> Usability:
    """Decide whether ``entry`` can answer a query for ``requested_currencies``.

    The TTL boundary is inclusive: an entry exactly ``ttl`` old is still fresh.
    """
    requested = frozenset(requested_currencies)
    if entry is None:
        return Usability(fresh=False, missing_currencies=requested)

    fresh = entry.last_updated is not None and now - entry.last_updated <= ttl
    missing = requested - entry.currencies()
    return Usability(fresh=fresh, missing_currencies=frozenset(missing))


__all__ = ["is_usable"]
