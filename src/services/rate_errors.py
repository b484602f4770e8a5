from __future__ import annotations

from pathlib import Path
from typing import Iterable


class RateCacheError(Exception):
    """Base class for errors surfaced to rate query callers."""


class AssetNotFound(RateCacheError):
    def __init__(self, asset_ids: Iterable[str]) -> None:
        self.asset_ids = sorted(asset_ids)
        joined = ", ".join(self.asset_ids)
        super().__init__(
            f"Invalid asset: {joined}. Please check the correct name for the asset you're trying to use."
        )


class RateLimitExceeded(RateCacheError):
    def __init__(self, provider: str | None = None) -> None:
        self.provider = provider
        if provider:
            message = f"Rate limit exceeded for {provider} API. Please try again later."
        else:
            message = "Rate limit exceeded. Please try again later."
        super().__init__(message)


class StoreUnavailable(RateCacheError):
    def __init__(self, path: Path, reason: str, *, operation: str = "read") -> None:
        self.path = path
        self.operation = operation
        super().__init__(f"Rate store at {path} is unavailable for {operation}: {reason}")


class ProviderUnavailable(RateCacheError):
    def __init__(self, provider: str, reason: str | None = None) -> None:
        self.provider = provider
        message = f"{provider} API is unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


__all__ = [
    "AssetNotFound",
    "ProviderUnavailable",
    "RateCacheError",
    "RateLimitExceeded",
    "StoreUnavailable",
]
