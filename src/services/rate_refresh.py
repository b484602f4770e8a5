from __future__ import annotations

import logging
import threading
from datetime import timedelta

from .rate_errors import RateCacheError
from .rate_service import RateService
from .rate_types import RateQueryResult

logger = logging.getLogger(__name__)


class RateRefreshTask:
    """Periodically refreshes every cached asset through the regular batch query."""

    def __init__(self, service: RateService, *, interval: timedelta, currencies: str | None = None) -> None:
        if interval <= timedelta(0):
            msg = "interval must be positive"
            raise ValueError(msg)
        self.service = service
        self.interval = interval
        self.currencies = currencies

    def refresh_once(self) -> RateQueryResult | None:
        logger.info("Starting scheduled rate refresh...")
        try:
            asset_ids = self.service.cached_asset_ids()
            if not asset_ids:
                logger.info("No coins to refresh")
                return None
            logger.info("Refreshing rates for %d coins...", len(asset_ids))
            result = self.service.get_by_ids(asset_ids, self.currencies)
        except RateCacheError as exc:
            logger.error("Error during scheduled rate refresh: %s", exc)
            return None

        logger.info(
            "Rate refresh completed: %d resolved, %d unresolved",
            len(result.rates),
            len(result.unresolved),
        )
        return result

    def run_forever(self, stop_event: threading.Event | None = None) -> None:
        stop = stop_event or threading.Event()
        while not stop.is_set():
            self.refresh_once()
            stop.wait(self.interval.total_seconds())


__all__ = ["RateRefreshTask"]
