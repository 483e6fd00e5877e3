"""Integration tests for the high-value lapsed CLI.

Runs the command from a record-store JSON export through to the JSON and
CSV outputs.
"""

import json

import pandas as pd
import pytest

from high_value_lapsed.cli import high_value_lapsed_cli


@pytest.fixture
def export_json(tmp_path):
    """Twelve paying customers plus one who only ever cancelled."""
    customers = []
    orders = []
    items = []
    for i in range(1, 13):
        cid = f"C{i:02d}"
        customers.append(
            {
                "customer_id": cid,
                "name": f"Customer {i}",
                "email": f"{cid.lower()}@example.com",
                "registered_at": "2021-01-01T00:00:00+00:00",
            }
        )
        orders.append(
            {
                "order_id": f"O{i:02d}",
                "customer_id": cid,
                "status": "completed",
                # C01 and C02 lapsed; everyone else bought last month
                "created_at": "2023-05-01T12:00:00Z" if i <= 2 else "2024-05-15T12:00:00Z",
            }
        )
        items.append(
            {
                "item_id": f"I{i:02d}",
                "order_id": f"O{i:02d}",
                "product_id": "SKU-1",
                "quantity": 1,
                "unit_price": 1000 - 50 * i,
            }
        )

    customers.append(
        {
            "customer_id": "X1",
            "name": "Window Shopper",
            "email": "x1@example.com",
            "registered_at": "2021-01-01T00:00:00+00:00",
        }
    )
    orders.append(
        {
            "order_id": "OX1",
            "customer_id": "X1",
            "status": "cancelled",
            "created_at": "2022-01-01T00:00:00Z",
        }
    )
    items.append(
        {"item_id": "IX1", "order_id": "OX1", "quantity": 10, "unit_price": 9999}
    )

    path = tmp_path / "export.json"
    path.write_text(
        json.dumps({"customers": customers, "orders": orders, "order_items": items}),
        encoding="utf-8",
    )
    return path


def test_cli_writes_json_to_stdout(export_json, capsys):
    exit_code = high_value_lapsed_cli(
        [str(export_json), "--reference-date", "2024-06-30T00:00:00+00:00"]
    )

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["qualifying_customers"] == 12
    assert payload["top_decile_count"] == 2
    assert [r["customer_id"] for r in payload["records"]] == ["C01", "C02"]
    assert payload["records"][0]["total_spend"] == "950.00"


def test_cli_output_is_deterministic(export_json, capsys):
    args = [str(export_json), "--reference-date", "2024-06-30T00:00:00+00:00"]
    high_value_lapsed_cli(args)
    first = capsys.readouterr().out
    high_value_lapsed_cli(args)
    second = capsys.readouterr().out
    assert first == second


def test_cli_writes_csv(export_json, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    exit_code = high_value_lapsed_cli(
        [
            str(export_json),
            "--reference-date",
            "2024-06-30T00:00:00+00:00",
            "--top-percent",
            "25",
            "--output",
            "out/report.csv",
        ]
    )

    assert exit_code == 0
    df = pd.read_csv(tmp_path / "out" / "report.csv")
    assert df["customer_id"].tolist() == ["C01", "C02"]
    assert df["spend_rank"].tolist() == [1, 2]


def test_cli_recency_window_option(export_json, capsys):
    exit_code = high_value_lapsed_cli(
        [
            str(export_json),
            "--reference-date",
            "2024-06-30T00:00:00+00:00",
            "--recency-window",
            "30D",
        ]
    )
    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["recency_window"] == "30D"
    assert [r["customer_id"] for r in payload["records"]] == ["C01", "C02"]


def test_cli_reference_date_from_environment(export_json, capsys, monkeypatch):
    monkeypatch.setenv("HVL_REFERENCE_DATE", "2024-06-30T00:00:00+00:00")
    assert high_value_lapsed_cli([str(export_json)]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["reference_date"] == "2024-06-30T00:00:00+00:00"


def test_cli_accepts_date_only_reference(export_json, capsys):
    exit_code = high_value_lapsed_cli([str(export_json), "--reference-date", "2024-06-30"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["reference_date"] == "2024-06-30T00:00:00+00:00"
    assert payload["cutoff"] == "2023-12-30T00:00:00+00:00"
    assert [r["customer_id"] for r in payload["records"]] == ["C01", "C02"]


def test_cli_zero_top_percent_rejected_with_env_date(export_json, capsys, monkeypatch):
    monkeypatch.setenv("HVL_REFERENCE_DATE", "2024-06-30T00:00:00+00:00")
    monkeypatch.setenv("HVL_TOP_PERCENT", "20")
    assert high_value_lapsed_cli([str(export_json), "--top-percent", "0"]) == 2
    assert capsys.readouterr().out == ""


def test_cli_rejects_bad_window(export_json, capsys):
    exit_code = high_value_lapsed_cli(
        [str(export_json), "--reference-date", "2024-06-30", "--recency-window", "0M"]
    )
    assert exit_code == 2
    assert capsys.readouterr().out == ""


def test_cli_rejects_integrity_errors(tmp_path, capsys):
    path = tmp_path / "broken.json"
    path.write_text(
        json.dumps(
            {
                "customers": [],
                "orders": [],
                "order_items": [{"order_id": "O1", "quantity": 1, "unit_price": 5}],
            }
        ),
        encoding="utf-8",
    )
    assert high_value_lapsed_cli([str(path), "--reference-date", "2024-06-30"]) == 2
    assert capsys.readouterr().out == ""


def test_cli_rejects_output_outside_cwd(export_json, tmp_path, monkeypatch):
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    with pytest.raises(ValueError, match="must reside within"):
        high_value_lapsed_cli(
            [
                str(export_json),
                "--reference-date",
                "2024-06-30T00:00:00+00:00",
                "--output",
                str(tmp_path / "elsewhere.json"),
            ]
        )


def test_cli_missing_input_file(tmp_path, capsys):
    missing = tmp_path / "nope.json"
    assert high_value_lapsed_cli([str(missing), "--reference-date", "2024-06-30"]) == 2
    assert capsys.readouterr().out == ""


def test_cli_malformed_json(tmp_path, capsys):
    path = tmp_path / "broken.json"
    path.write_text('{"customers": [', encoding="utf-8")
    assert high_value_lapsed_cli([str(path), "--reference-date", "2024-06-30"]) == 2
    assert capsys.readouterr().out == ""


def test_cli_oversized_input(export_json, capsys, monkeypatch):
    monkeypatch.setattr("high_value_lapsed.foundation.sources.MAX_INPUT_BYTES", 16)
    assert high_value_lapsed_cli([str(export_json), "--reference-date", "2024-06-30"]) == 2
    assert capsys.readouterr().out == ""
