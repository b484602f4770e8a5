from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from domain.rates import RatesSnapshot

from .rate_errors import StoreUnavailable

logger = logging.getLogger(__name__)


class RateStore(Protocol):
    def load(self) -> RatesSnapshot: ...

    def save(self, snapshot: RatesSnapshot) -> None: ...


class JsonRateStore(RateStore):
    """Keeps the whole snapshot in one JSON file, rewritten on every save."""

    def __init__(self, *, path: Path) -> None:
        self.path = path

    def load(self) -> RatesSnapshot:
        try:
            if not self.path.exists():
                return RatesSnapshot()
            raw = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise StoreUnavailable(self.path, str(exc)) from exc

        if not raw.strip():
            return RatesSnapshot()

        try:
            return RatesSnapshot.model_validate_json(raw)
        except ValidationError as exc:
            raise StoreUnavailable(self.path, f"malformed rates file ({exc.error_count()} errors)") from exc

    def save(self, snapshot: RatesSnapshot) -> None:
        # Readers only ever see the previous or the new file, never a half-written one.
        temp_path = self.path.with_name(f"{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(snapshot.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
            temp_path.replace(self.path)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise StoreUnavailable(self.path, str(exc), operation="write") from exc
        logger.debug("Saved %d cached rates to %s", len(snapshot.rates), self.path)


__all__ = ["JsonRateStore", "RateStore"]
