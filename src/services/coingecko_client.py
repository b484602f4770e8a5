from __future__ import annotations

from typing import Any, Sequence

import requests
from requests import Response

# API docs: https://docs.coingecko.com/reference/simple-price


class CoinGeckoAPIError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, payload: Any | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class CoinGeckoClient:
    """Minimal CoinGecko API client covering the endpoints needed by the rate cache."""

    def __init__(
        self,
        *,
        api_key: str = "",
        base_url: str = "https://api.coingecko.com/api/v3",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def get_simple_price(self, *, ids: Sequence[str], vs_currencies: Sequence[str]) -> dict[str, Any]:
        """Return the raw ``{asset_id: {currency: price, ...}}`` payload."""
        if not ids:
            msg = "ids must contain at least one asset"
            raise ValueError(msg)
        if not vs_currencies:
            msg = "vs_currencies must contain at least one currency"
            raise ValueError(msg)

        params = {
            "ids": ",".join(ids),
            "vs_currencies": ",".join(vs_currencies),
            "include_last_updated_at": "true",
        }
        return self._request("GET", "/simple/price", params=params)

    def _request(self, method: str, path: str, *, params: dict[str, Any] | None = None) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        headers = {"x-cg-api-key": self.api_key} if self.api_key else {}
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                timeout=self.timeout,
                headers=headers,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            resp = exc.response
            status_code = getattr(resp, "status_code", None)
            message, error_payload = self._extract_error(resp)
            raise CoinGeckoAPIError(message, status_code=status_code, payload=error_payload) from exc
        except requests.RequestException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            raise CoinGeckoAPIError("CoinGecko API request failed", status_code=status_code) from exc

        try:
            payload_raw = response.json()
        except ValueError as exc:
            raise CoinGeckoAPIError("CoinGecko API returned invalid JSON", payload=response.text) from exc

        if not isinstance(payload_raw, dict):
            raise CoinGeckoAPIError("CoinGecko API returned unexpected payload type", payload=payload_raw)

        payload: dict[str, Any] = payload_raw
        status = payload.get("status")
        if isinstance(status, dict) and status.get("error_code"):
            raise CoinGeckoAPIError(
                status.get("error_message") or "CoinGecko API error",
                status_code=int(status["error_code"]),
                payload=payload,
            )

        return payload

    @staticmethod
    def _extract_error(response: Response | None) -> tuple[str, Any | None]:
        message = "CoinGecko API request failed"
        payload: Any | None = None
        if response is None:
            return message, payload

        try:
            payload = response.json()
            if isinstance(payload, dict):
                status = payload.get("status")
                if isinstance(status, dict) and status.get("error_message"):
                    message = status["error_message"]
                elif isinstance(payload.get("error"), str):
                    message = payload["error"]
        except ValueError:
            payload = response.text
        return message, payload


__all__ = ["CoinGeckoAPIError", "CoinGeckoClient"]
