"""Domain models and types for the rate cache.

This package contains in-memory (Pydantic) models describing cached exchange
rates and the snapshot they are persisted in, plus the lookup protocol used by
valuation code. They do not know about HTTP or files.
"""

__all__ = [
    "pricing",
    "rates",
]
