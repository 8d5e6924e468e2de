from __future__ import annotations

from unittest.mock import Mock

import pytest
import requests

from services.ledger_api_client import LedgerApiClient, LedgerApiError


def _mock_response(payload: object, status_code: int = 200) -> Mock:
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = "payload"
    response.raise_for_status.return_value = None
    return response


def test_get_transactions_hits_collection_endpoint() -> None:
    session = Mock()
    session.request.return_value = _mock_response([{"id": 1}])

    client = LedgerApiClient(base_url="http://backend/", session=session, timeout=3)
    payload = client.get_transactions()

    assert payload == [{"id": 1}]
    args = session.request.call_args.args
    kwargs = session.request.call_args.kwargs
    assert args == ("GET", "http://backend/api/transactions")
    assert kwargs["timeout"] == 3
    assert kwargs["headers"] == {"Accept": "application/json"}


@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("get_holdings", "/api/crypto_holdings"),
        ("get_catalog", "/api/product_list"),
        ("get_capital", "/api/capital_items"),
    ],
)
def test_collection_endpoints(method: str, path: str) -> None:
    session = Mock()
    session.request.return_value = _mock_response({})

    getattr(LedgerApiClient(base_url="http://backend", session=session), method)()

    assert session.request.call_args.args[1] == f"http://backend{path}"


def test_get_crypto_prices_lowercases_params() -> None:
    session = Mock()
    session.request.return_value = _mock_response({"btc": {"idr": 1}})

    LedgerApiClient(session=session).get_crypto_prices(symbols="BTC", vs_currency="IDR")

    assert session.request.call_args.kwargs["params"] == {"vs_currency": "idr", "symbols": "btc"}


def test_get_crypto_prices_requires_symbols() -> None:
    with pytest.raises(ValueError):
        LedgerApiClient(session=Mock()).get_crypto_prices(symbols="", vs_currency="idr")


def test_http_error_uses_backend_detail() -> None:
    error_response = _mock_response({"detail": "database locked"}, status_code=503)
    response = _mock_response({})
    response.raise_for_status.side_effect = requests.HTTPError(response=error_response)
    session = Mock()
    session.request.return_value = response

    with pytest.raises(LedgerApiError) as excinfo:
        LedgerApiClient(session=session).get_transactions()

    assert str(excinfo.value) == "database locked"
    assert excinfo.value.status_code == 503
    assert excinfo.value.payload == {"detail": "database locked"}


def test_connection_error_is_wrapped() -> None:
    session = Mock()
    session.request.side_effect = requests.ConnectionError("refused")

    with pytest.raises(LedgerApiError, match="/api/crypto_holdings"):
        LedgerApiClient(session=session).get_holdings()


def test_invalid_json_is_wrapped() -> None:
    response = _mock_response(None)
    response.json.side_effect = ValueError("no json")
    session = Mock()
    session.request.return_value = response

    with pytest.raises(LedgerApiError, match="invalid JSON"):
        LedgerApiClient(session=session).get_catalog()


def test_base_url_is_required() -> None:
    with pytest.raises(ValueError):
        LedgerApiClient(base_url="")
