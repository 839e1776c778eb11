"""
CSV uploads for transactions and Goodreads libraries.
The backend parses and validates the file; this module checks it is a readable CSV,
uploads it, and turns the response (imported count, invalid symbols, row errors)
into a message for the dashboard banner or the terminal.
"""

import csv
from pathlib import Path
from typing import Optional

from hub_api import ApiError, AuthError, Hub

IMPORT_MODES = ("append", "replace")
MAX_LISTED_ERRORS = 10


def _normalize_header(s: str) -> str:
    return s.strip().lower().replace(" ", "_").replace("-", "_")


def read_csv_header(path: Path) -> list[str]:
    """Normalized header row of a CSV file ([] when empty)."""
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        for row in csv.reader(f):
            if any(cell.strip() for cell in row):
                return [_normalize_header(c) for c in row]
    return []


def count_data_rows(path: Path) -> int:
    """Non-blank rows after the header."""
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        rows = [r for r in csv.reader(f) if any(cell.strip() for cell in r)]
    return max(len(rows) - 1, 0)


def format_import_result(result: Optional[dict]) -> str:
    """One banner-sized message from an import response or error payload."""
    result = result or {}
    parts = []
    msg = result.get("message") or result.get("error") or ""
    if result.get("error") and result.get("message") and result["error"] != result["message"]:
        msg = f"{result['error']}. {result['message']}"
    if msg:
        parts.append(msg.rstrip("."))
    elif result.get("imported") is not None:
        parts.append(f"Imported {result['imported']} transactions")

    invalid = result.get("invalid_symbols") or []
    if invalid:
        parts.append("Invalid symbols: " + ", ".join(invalid))
    row_errors = result.get("row_errors") or []
    if row_errors:
        shown = row_errors[:MAX_LISTED_ERRORS]
        more = len(row_errors) - len(shown)
        text = "; ".join(shown)
        if more > 0:
            text += f" (+{more} more)"
        parts.append("Row errors: " + text)
    return ". ".join(parts) if parts else "Import finished"


def _check_file(path: Path) -> Optional[str]:
    if not path.exists():
        return f"File not found: {path}"
    if path.suffix.lower() != ".csv":
        return "Only .csv files can be imported"
    try:
        header = read_csv_header(path)
        count_data_rows(path)
    except (UnicodeDecodeError, csv.Error):
        return "CSV file must be UTF-8 text"
    if not header:
        return "CSV file is empty"
    return None


def import_transactions(hub: Hub, portfolio_id: str, csv_path: Path, mode: str = "append") -> tuple[int, str]:
    """
    Upload a transaction CSV to a portfolio.
    Returns (imported_count, message); imported_count is 0 when nothing was imported.
    """
    csv_path = Path(csv_path)
    if mode not in IMPORT_MODES:
        return 0, f"Unknown import mode '{mode}' (use append or replace)"
    problem = _check_file(csv_path)
    if problem:
        return 0, problem

    print(f"[Import] Uploading {count_data_rows(csv_path)} rows to portfolio {portfolio_id} ({mode})")
    try:
        result = hub.portfolios.import_transactions(portfolio_id, csv_path, mode) or {}
    except AuthError:
        raise
    except ApiError as e:
        payload = e.payload if isinstance(e.payload, dict) else {"error": e.message}
        return 0, format_import_result(payload)

    imported = int(result.get("imported") or 0)
    if result.get("success") is False:
        imported = 0
    print(f"[Import] {imported} transactions imported")
    return imported, format_import_result(result)


def import_goodreads(hub: Hub, csv_path: Path) -> tuple[int, str]:
    """Upload a Goodreads library export. Returns (imported_count, message)."""
    csv_path = Path(csv_path)
    problem = _check_file(csv_path)
    if problem:
        return 0, problem
    try:
        result = hub.reading.import_goodreads(csv_path) or {}
    except AuthError:
        raise
    except ApiError as e:
        return 0, f"Goodreads import failed: {e.message}"
    imported = int(result.get("imported") or 0)
    skipped = int(result.get("skipped") or 0)
    msg = f"Imported {imported} books"
    if skipped:
        msg += f", skipped {skipped}"
    errors = result.get("errors") or []
    if errors:
        msg += f" ({len(errors)} errors)"
    print(f"[Import] Goodreads: {msg}")
    return imported, msg


def main():
    import argparse
    import os
    from hub_manager import get_effective_settings, load_config, make_hub

    p = argparse.ArgumentParser(description="Upload a transaction CSV to a Home Ledger portfolio")
    p.add_argument("csv_path", type=Path, help="Path to the CSV file")
    p.add_argument("--portfolio", "-p", required=True, help="Portfolio ID")
    p.add_argument("--mode", "-m", choices=IMPORT_MODES, default="append",
                   help="append to or replace the portfolio's transactions")
    p.add_argument("--config", "-c", type=Path, default=None, help="Path to config.json (default: same dir)")
    args = p.parse_args()
    base = Path(__file__).resolve().parent
    config_path = args.config or Path(os.environ.get("HOME_LEDGER_CONFIG") or base / "config.json")
    hub = make_hub(get_effective_settings(load_config(config_path)))
    imported, msg = import_transactions(hub, args.portfolio, args.csv_path, args.mode)
    print(msg)
    return 0 if imported else 1


if __name__ == "__main__":
    exit(main())
