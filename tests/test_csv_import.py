"""Tests for transaction and Goodreads CSV uploads."""

import pytest

import csv_import
from hub_api import ApiError, AuthError

HEADER = "transaction_date,symbol,transaction_type,quantity,price\n"


@pytest.fixture
def tx_csv(tmp_path):
    path = tmp_path / "trades.csv"
    path.write_text(HEADER + "2026-01-02,VWRL,BUY,10,98.5\n2026-02-03,VWRL,SELL,2,101\n\n", encoding="utf-8")
    return path


def test_read_csv_header_normalizes(tmp_path):
    path = tmp_path / "x.csv"
    path.write_text("\ufeffTransaction Date, Symbol ,transaction-type\n", encoding="utf-8")
    assert csv_import.read_csv_header(path) == ["transaction_date", "symbol", "transaction_type"]


def test_count_data_rows_skips_blank_lines(tx_csv):
    assert csv_import.count_data_rows(tx_csv) == 2


@pytest.mark.parametrize("result,expected", [
    ({"imported": 4}, "Imported 4 transactions"),
    ({"message": "Imported 4 transactions."}, "Imported 4 transactions"),
    ({"error": "Import failed", "message": "2 rows invalid"}, "Import failed. 2 rows invalid"),
    ({"error": "Bad file", "invalid_symbols": ["XXXX", "YYYY"]}, "Bad file. Invalid symbols: XXXX, YYYY"),
    (None, "Import finished"),
])
def test_format_import_result(result, expected):
    assert csv_import.format_import_result(result) == expected


def test_format_import_result_truncates_row_errors():
    errors = [f"Row {i}: bad price" for i in range(2, 15)]
    msg = csv_import.format_import_result({"error": "Validation failed", "row_errors": errors})
    assert msg.startswith("Validation failed. Row errors: Row 2: bad price")
    assert "Row 11: bad price" in msg
    assert "Row 12: bad price" not in msg
    assert msg.endswith("(+3 more)")


def test_import_transactions_success(hub, tx_csv, capsys):
    hub.portfolios.import_transactions.return_value = {"success": True, "imported": 2,
                                                       "message": "Imported 2 transactions"}
    count, msg = csv_import.import_transactions(hub, "p1", tx_csv, "replace")
    assert count == 2
    assert msg == "Imported 2 transactions"
    hub.portfolios.import_transactions.assert_called_once_with("p1", tx_csv, "replace")
    out = capsys.readouterr().out
    assert "[Import] Uploading 2 rows to portfolio p1 (replace)" in out


def test_import_transactions_unsuccessful_response_counts_zero(hub, tx_csv):
    hub.portfolios.import_transactions.return_value = {"success": False, "imported": 3, "error": "Rolled back"}
    count, msg = csv_import.import_transactions(hub, "p1", tx_csv)
    assert count == 0
    assert msg == "Rolled back"


def test_import_transactions_api_error_uses_payload(hub, tx_csv):
    payload = {"success": False, "error": "Validation failed", "row_errors": ["Row 3: unknown type"]}
    hub.portfolios.import_transactions.side_effect = ApiError("Validation failed", 400, payload)
    count, msg = csv_import.import_transactions(hub, "p1", tx_csv)
    assert count == 0
    assert msg == "Validation failed. Row errors: Row 3: unknown type"


def test_import_transactions_rejects_bad_input(hub, tmp_path, tx_csv):
    assert csv_import.import_transactions(hub, "p1", tx_csv, "merge")[0] == 0
    assert "File not found" in csv_import.import_transactions(hub, "p1", tmp_path / "missing.csv")[1]

    txt = tmp_path / "trades.txt"
    txt.write_text(HEADER)
    assert csv_import.import_transactions(hub, "p1", txt)[1] == "Only .csv files can be imported"

    empty = tmp_path / "empty.csv"
    empty.write_text("\n\n")
    assert csv_import.import_transactions(hub, "p1", empty)[1] == "CSV file is empty"
    hub.portfolios.import_transactions.assert_not_called()


def test_import_goodreads_message(hub, tmp_path):
    path = tmp_path / "goodreads_library_export.csv"
    path.write_text("Book Id,Title,Author\n1,Dune,Frank Herbert\n")
    hub.reading.import_goodreads.return_value = {"imported": 40, "skipped": 2, "errors": ["row 7"]}
    count, msg = csv_import.import_goodreads(hub, path)
    assert count == 40
    assert msg == "Imported 40 books, skipped 2 (1 errors)"


def test_import_goodreads_api_error(hub, tmp_path):
    path = tmp_path / "library.csv"
    path.write_text("Book Id,Title\n1,Dune\n")
    hub.reading.import_goodreads.side_effect = ApiError("Unsupported export", 400)
    assert csv_import.import_goodreads(hub, path) == (0, "Goodreads import failed: Unsupported export")


def test_non_utf8_file_is_rejected_before_upload(hub, tmp_path):
    path = tmp_path / "trades.csv"
    path.write_bytes("symbol,quantity\nCAF\xe9,1\n".encode("latin-1"))
    assert csv_import.import_transactions(hub, "p1", path) == (0, "CSV file must be UTF-8 text")
    hub.portfolios.import_transactions.assert_not_called()


def test_expired_session_propagates_from_imports(hub, tx_csv):
    hub.portfolios.import_transactions.side_effect = AuthError("Token expired", 401)
    with pytest.raises(AuthError):
        csv_import.import_transactions(hub, "p1", tx_csv)

    hub.reading.import_goodreads.side_effect = AuthError("Token expired", 401)
    with pytest.raises(AuthError):
        csv_import.import_goodreads(hub, tx_csv)
