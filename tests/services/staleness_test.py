from __future__ import annotations

from datetime import timedelta

from services.staleness import is_usable
from tests.constants import BITCOIN, NOW, TTL
from tests.helpers.rate_fakes import cached


def test_absent_entry_is_missing_every_requested_currency() -> None:
    usability = is_usable(None, ["usd", "eur"], TTL, NOW)

    assert not usability.fresh
    assert usability.missing_currencies == {"usd", "eur"}
    assert not usability.usable


def test_entry_exactly_ttl_old_is_fresh() -> None:
    entry = cached(BITCOIN, {"usd": 1}, NOW - TTL)

    usability = is_usable(entry, ["usd"], TTL, NOW)

    assert usability.fresh
    assert usability.usable


def test_entry_older_than_ttl_is_stale() -> None:
    entry = cached(BITCOIN, {"usd": 1}, NOW - TTL - timedelta(microseconds=1))

    usability = is_usable(entry, ["usd"], TTL, NOW)

    assert not usability.fresh
    assert usability.missing_currencies == frozenset()
    assert not usability.usable


def test_fresh_entry_reports_missing_currencies() -> None:
    entry = cached(BITCOIN, {"usd": 1, "gbp": 1}, NOW - timedelta(seconds=30))

    usability = is_usable(entry, ["usd", "eur"], TTL, NOW)

    assert usability.fresh
    assert usability.missing_currencies == {"eur"}
    assert not usability.usable


def test_entry_without_timestamp_is_stale() -> None:
    entry = cached(BITCOIN, {"usd": 1}, None)

    assert not is_usable(entry, ["usd"], TTL, NOW).fresh
