from __future__ import annotations

from typing import Any

import requests


class LedgerApiError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, payload: Any | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class LedgerApiClient:
    """Read-only client for the dashboard backend collections."""

    def __init__(
        self,
        *,
        base_url: str = "http://127.0.0.1:8124",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url:
            msg = "base_url must be provided"
            raise ValueError(msg)

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def get_transactions(self) -> Any:
        return self._request("GET", "/api/transactions")

    def get_holdings(self) -> Any:
        return self._request("GET", "/api/crypto_holdings")

    def get_catalog(self) -> Any:
        return self._request("GET", "/api/product_list")

    def get_capital(self) -> Any:
        return self._request("GET", "/api/capital_items")

    def get_crypto_prices(self, *, symbols: str, vs_currency: str) -> Any:
        if not symbols:
            msg = "symbols must be provided"
            raise ValueError(msg)
        params = {"vs_currency": vs_currency.lower(), "symbols": symbols.lower()}
        return self._request("GET", "/api/crypto_prices", params=params)

    def _request(self, method: str, path: str, *, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                timeout=self.timeout,
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            resp = exc.response
            status_code = getattr(resp, "status_code", None)
            error_payload: Any | None = None
            message = f"Backend request {path} failed"
            if resp is not None:
                try:
                    error_payload = resp.json()
                    detail = error_payload.get("detail") if isinstance(error_payload, dict) else None
                    if isinstance(detail, str) and detail:
                        message = detail
                except ValueError:
                    error_payload = resp.text
            raise LedgerApiError(message, status_code=status_code, payload=error_payload) from exc
        except requests.RequestException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            raise LedgerApiError(f"Backend request {path} failed", status_code=status_code) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise LedgerApiError(f"Backend returned invalid JSON for {path}", payload=response.text) from exc


__all__ = ["LedgerApiClient", "LedgerApiError"]
