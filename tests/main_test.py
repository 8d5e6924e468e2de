from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import Mock

import pytest

from main import main
from services.dashboard import DashboardService


def test_main_renders_dashboard_from_files(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    transactions = tmp_path / "transactions.json"
    transactions.write_text(
        json.dumps(
            [
                {"id": 1, "type": "income", "date": "2025-03-01", "amount": "40.000.000", "product_id": "P1"},
                {"id": 2, "type": "expense", "date": "2025-03-02", "amount": 10_000_000},
                {"id": 3, "type": "investment", "date": "2025-01-10", "amount": 1_000_000, "note": "DCA"},
            ]
        ),
        encoding="utf-8",
    )
    holdings = tmp_path / "holdings.json"
    holdings.write_text(
        json.dumps(
            {
                "holdings": [
                    {
                        "symbol": "BTC",
                        "buys": [{"id": "b1", "date": "2025-01-10", "invested_idr": 1_000_000, "amount": 0.01}],
                    }
                ]
            }
        ),
        encoding="utf-8",
    )
    capital = tmp_path / "capital.json"
    capital.write_text(json.dumps({"initialModal": 25_000_000, "periode": 25, "residu": 0}), encoding="utf-8")
    catalog_csv = tmp_path / "products.csv"
    catalog_csv.write_text("product_id,name\nP1,Widget\n", encoding="utf-8")

    main(
        [
            "--transactions",
            str(transactions),
            "--holdings",
            str(holdings),
            "--capital",
            str(capital),
            "--catalog-csv",
            str(catalog_csv),
            "--price",
            "200000000",
        ]
    )

    out = capsys.readouterr().out
    assert "Net profit:      Rp 29.000.000" in out
    assert "ROI:             116.00%" in out
    assert "widget" in out
    assert "DCA" in out
    assert "Report " in out


def test_main_keeps_json_catalog_when_csv_is_missing(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    transactions = tmp_path / "transactions.json"
    transactions.write_text(
        json.dumps([{"id": 1, "type": "income", "date": "2025-03-01", "amount": 5_000, "product_id": "P1"}]),
        encoding="utf-8",
    )
    catalog = tmp_path / "catalog.json"
    catalog.write_text(json.dumps([{"product_id": "P1", "name": "Widget"}]), encoding="utf-8")

    main(
        [
            "--transactions",
            str(transactions),
            "--catalog",
            str(catalog),
            "--catalog-csv",
            str(tmp_path / "absent.csv"),
            "--price",
            "1",
        ]
    )

    out = capsys.readouterr().out
    assert "widget" in out
    assert "unknown product" not in out


def test_main_unsubscribes_even_when_rendering_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    close = Mock()
    monkeypatch.setattr(DashboardService, "close", close)
    monkeypatch.setattr("main.render_year_report", Mock(side_effect=RuntimeError("render failed")))

    with pytest.raises(RuntimeError, match="render failed"):
        main(["--price", "1"])

    close.assert_called_once_with()
