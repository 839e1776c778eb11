"""
Home Ledger manager - configuration, page data loading and Excel export.
Each loader fans its API calls out over a small thread pool and returns a plain dict
for dashboard.py to render. Nothing is cached: every page load re-fetches.

  python hub_manager.py --summary           # Print net worth summary
  python hub_manager.py --export out.xlsx   # Write a workbook snapshot
"""

import argparse
import json
import os
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from formatting import calculate_nice_ticks, format_currency, format_percentage
from hub_api import ApiError, AuthError, Hub, HubClient, DEFAULT_TIMEOUT
import metrics

# Load .env so the API URL/token can live outside config.json
try:
    from dotenv import load_dotenv
    _base = Path(__file__).resolve().parent
    load_dotenv(_base / ".env")
except ImportError:
    pass

DEFAULT_SETTINGS = {
    "api_url": "http://localhost:8080/api/v1",
    "api_token": "",
    "base_currency": "GBP",
    "request_timeout": DEFAULT_TIMEOUT,
    "renewal_warning_days": metrics.RENEWAL_WARNING_DAYS,
    "export_path": "home_ledger_export.xlsx",
}
HISTORY_WORKBOOK = "home_ledger_history.xlsx"
FETCH_WORKERS = 6


def load_config(config_path: Path) -> dict:
    """Load configuration from JSON; a missing file means defaults only."""
    config_path = Path(config_path)
    if not config_path.exists():
        return {}
    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


def get_effective_settings(config: dict) -> dict:
    """
    Merge defaults, config.json and environment. Env vars take precedence so the
    API token never has to be written into config.json.
    """
    settings = dict(DEFAULT_SETTINGS)
    settings.update({k: v for k, v in (config or {}).items() if v is not None})
    if os.environ.get("HOME_LEDGER_API_URL"):
        settings["api_url"] = os.environ["HOME_LEDGER_API_URL"]
    if os.environ.get("HOME_LEDGER_API_TOKEN"):
        settings["api_token"] = os.environ["HOME_LEDGER_API_TOKEN"]
    if os.environ.get("HOME_LEDGER_CURRENCY"):
        settings["base_currency"] = os.environ["HOME_LEDGER_CURRENCY"].upper()
    if os.environ.get("HOME_LEDGER_TIMEOUT"):
        try:
            settings["request_timeout"] = float(os.environ["HOME_LEDGER_TIMEOUT"])
        except ValueError:
            print(f"[Config] Ignoring invalid HOME_LEDGER_TIMEOUT={os.environ['HOME_LEDGER_TIMEOUT']!r}")
    return settings


def make_hub(settings: dict, token: str = None) -> Hub:
    """Build the API wrappers; a session token (from /login) overrides the configured one."""
    client = HubClient(
        settings["api_url"],
        token=token or settings.get("api_token", ""),
        timeout=float(settings.get("request_timeout") or DEFAULT_TIMEOUT),
    )
    return Hub(client)


def fetch_all(calls: dict[str, Callable], label: str = "Hub") -> tuple[dict, dict]:
    """
    Run named zero-argument API calls concurrently.
    Returns (results, errors): failed calls are absent from results and their
    ApiError message is in errors. AuthError is re-raised so the caller can
    send the user to /login.
    """
    results, errors = {}, {}
    if not calls:
        return results, errors
    with ThreadPoolExecutor(max_workers=min(FETCH_WORKERS, len(calls))) as pool:
        futures = {name: pool.submit(fn) for name, fn in calls.items()}
        for name, fut in futures.items():
            try:
                results[name] = fut.result()
            except AuthError:
                raise
            except ApiError as e:
                print(f"[{label}] Failed to load {name}: {e}")
                errors[name] = str(e)
    return results, errors


def _error_banner(errors: dict) -> str:
    return "Some data could not be loaded from the server." if errors else ""


# ── Page loaders ──

def get_overview_data(hub: Hub) -> dict:
    results, errors = fetch_all({
        "summary": hub.dashboard.summary,
        "allocation": hub.dashboard.allocation,
        "movers": hub.dashboard.top_movers,
        "events": hub.reports.upcoming_events,
    }, label="Overview")
    allocation = results.get("allocation") or {}
    return {
        "summary": results.get("summary") or {},
        "allocation_by_type": metrics.allocation_rows(allocation.get("by_type") or []),
        "allocation_by_portfolio": metrics.allocation_rows(allocation.get("by_portfolio") or []),
        "movers": results.get("movers") or {"gainers": [], "losers": []},
        "events": results.get("events") or {},
        "error": _error_banner(errors),
    }


def get_portfolios_data(hub: Hub) -> dict:
    try:
        portfolios = hub.portfolios.list_all()
    except AuthError:
        raise
    except ApiError as e:
        print(f"[Portfolios] Failed to load: {e}")
        return {"portfolios": [], "summaries": {}, "error": "Failed to load portfolios."}
    calls = {p["id"]: (lambda pid=p["id"]: hub.portfolios.summary(pid)) for p in portfolios if p.get("id")}
    summaries, errors = fetch_all(calls, label="Portfolios")
    return {"portfolios": portfolios, "summaries": summaries, "error": _error_banner(errors)}


def get_portfolio_detail_data(hub: Hub, portfolio_id: str, page: int = 1) -> dict:
    results, errors = fetch_all({
        "portfolio": lambda: hub.portfolios.get(portfolio_id),
        "holdings": lambda: hub.portfolios.holdings(portfolio_id),
        "cash_accounts": lambda: hub.portfolios.cash_accounts(portfolio_id),
        "transactions": lambda: hub.portfolios.transactions(portfolio_id, page=page),
    }, label="Portfolio")
    holdings = results.get("holdings") or []
    cash = results.get("cash_accounts") or []
    return {
        "portfolio": results.get("portfolio"),
        "holdings": holdings,
        "totals": metrics.portfolio_totals(holdings),
        "cash_accounts": cash,
        "cash": metrics.cash_totals(cash),
        "transactions": results.get("transactions") or {"data": [], "page": 1, "total_pages": 1},
        "error": _error_banner(errors),
    }


def get_holdings_data(hub: Hub, portfolio_id: str = "") -> dict:
    results, errors = fetch_all({
        "holdings": hub.portfolios.all_holdings,
        "portfolios": hub.portfolios.list_all,
        "cash_accounts": hub.portfolios.all_cash_accounts,
    }, label="Holdings")
    holdings = results.get("holdings") or []
    if portfolio_id:
        holdings = [h for h in holdings if h.get("portfolio_id") == portfolio_id]
    cash = results.get("cash_accounts") or []
    return {
        "holdings": holdings,
        "portfolios": results.get("portfolios") or [],
        "selected_portfolio": portfolio_id,
        "totals": metrics.portfolio_totals(holdings),
        "by_type": metrics.count_by_type(holdings),
        "cash_accounts": cash,
        "cash": metrics.cash_totals(cash),
        "error": _error_banner(errors),
    }


def get_charts_data(hub: Hub, period: str = "daily", portfolio_id: str = "",
                    start=None, end=None, today: date = None) -> dict:
    if period not in metrics.PERIOD_MAX_DAYS:
        period = "daily"
    start_d, end_d = metrics.clamp_date_range(period, start, end, today)
    results, errors = fetch_all({
        "portfolios": hub.portfolios.list_all,
        "performance": lambda: hub.dashboard.performance(
            period, portfolio_id or None, start_d.isoformat(), end_d.isoformat()),
        "holdings": hub.portfolios.all_holdings,
    }, label="Charts")

    holdings = results.get("holdings") or []
    if portfolio_id:
        holdings = [h for h in holdings if h.get("portfolio_id") == portfolio_id]

    def _start_price(symbol):
        try:
            return (hub.assets.historical_price(symbol, start_d.isoformat()) or {}).get("price")
        except AuthError:
            raise
        except ApiError:
            # No price for that day: row falls back to current values
            return None

    symbols = {(h.get("asset") or {}).get("symbol") for h in holdings}
    symbols.discard(None)
    symbols.discard("")
    price_calls = {s: (lambda s=s: _start_price(s)) for s in symbols}
    start_prices, _ = fetch_all(price_calls, label="Charts")
    changes = [
        metrics.holding_price_change(h, start_prices.get((h.get("asset") or {}).get("symbol")))
        for h in holdings
    ]

    rows = metrics.merge_performance(results.get("performance"))
    return {
        "period": period,
        "periods": metrics.PERIODS,
        "portfolio_id": portfolio_id,
        "portfolios": results.get("portfolios") or [],
        "start": start_d.isoformat(),
        "end": end_d.isoformat(),
        "min_start": (end_d - timedelta(days=metrics.PERIOD_MAX_DAYS[period])).isoformat(),
        "max_end": (today or date.today()).isoformat(),
        "performance": results.get("performance"),
        "rows": rows,
        "series": metrics.chart_series_names(rows),
        "axis": metrics.chart_axis(rows),
        "holding_changes": changes,
        "error": _error_banner(errors),
    }


def get_price_data(hub: Hub, symbol: str, period: str = "1mo") -> dict:
    results, errors = fetch_all({
        "details": lambda: hub.assets.details(symbol),
        "history": lambda: hub.assets.history(symbol, period),
    }, label="Prices")
    history = results.get("history") or []
    closes = [float(p["close"]) for p in history if p.get("close") is not None]
    axis = calculate_nice_ticks(min(closes), max(closes)) if closes else calculate_nice_ticks(0, 0)
    return {
        "symbol": symbol.upper(),
        "period": period,
        "details": results.get("details") or {},
        "history": history,
        "axis": axis,
        "error": _error_banner(errors),
    }


def _load_people(hub: Hub, label: str) -> list:
    """Household members for the owner and covered-person pickers; [] when unavailable."""
    try:
        return list(hub.people.list_all() or [])
    except AuthError:
        raise
    except ApiError as e:
        print(f"[{label}] Failed to load people: {e}")
        return []


def get_insurance_data(hub: Hub, warn_days: int = metrics.RENEWAL_WARNING_DAYS) -> dict:
    try:
        policies = hub.insurance.list_all()
    except AuthError:
        raise
    except ApiError as e:
        print(f"[Insurance] Failed to load: {e}")
        return {"policies": [], "people": [], "annual_total": 0.0, "error": "Failed to load insurance policies."}
    for p in policies:
        days = p.get("days_until_renewal")
        if days is None:
            days = metrics.days_until(p.get("renewal_date"))
        p["_badge"] = metrics.renewal_badge(days, bool(p.get("is_expired")), warn_days)
        p["_annual"] = metrics.annual_premium(p.get("premium_amount"), p.get("premium_frequency"))
    return {
        "policies": policies,
        "annual_total": sum(p["_annual"] for p in policies if not p.get("is_expired")),
        "people": _load_people(hub, "Insurance"),
        "error": "",
    }


def get_properties_data(hub: Hub) -> dict:
    try:
        props = hub.properties.list_all()
    except AuthError:
        raise
    except ApiError as e:
        print(f"[Properties] Failed to load: {e}")
        return {"properties": [], "people": [], "total_value": 0.0, "total_equity": 0.0,
                "error": "Failed to load properties."}
    for p in props:
        p["_equity"] = metrics.property_equity(p)
        p["_ownership_total"] = metrics.ownership_total(p.get("owners"))
    return {
        "properties": props,
        "total_value": sum(float(p.get("current_value") or 0) for p in props),
        "total_equity": sum(p["_equity"] for p in props if p["_equity"] is not None),
        "people": _load_people(hub, "Properties"),
        "error": "",
    }


def get_pets_data(hub: Hub) -> dict:
    results, errors = fetch_all({
        "pets": hub.pets.list_all,
        "policies": hub.insurance.list_all,
    }, label="Pets")
    pets = results.get("pets") or []
    for p in pets:
        p["_age"] = metrics.pet_age(p.get("date_of_birth"))
    pet_policies = [p for p in results.get("policies") or [] if p.get("policy_type") == "pet"]
    return {"pets": pets, "policies": pet_policies, "error": _error_banner(errors)}


def get_bills_data(hub: Hub, mode: str = "active") -> dict:
    try:
        bills = hub.household.bills(include_inactive=mode == "all")
    except AuthError:
        raise
    except ApiError as e:
        print(f"[Bills] Failed to load: {e}")
        return {"bills": [], "filter": mode, "monthly_total": 0.0, "overdue_count": 0,
                "error": "Failed to load bills."}
    for b in bills:
        days = b.get("days_until_due")
        if days is None:
            days = metrics.days_until(b.get("next_due_date"))
        b["_badge"] = metrics.due_badge(days)
        b["_monthly"] = metrics.bill_monthly(b)
    return {
        "bills": metrics.filter_bills(bills, mode),
        "filter": mode,
        "monthly_total": metrics.bills_monthly_total(bills),
        "overdue_count": len(metrics.filter_bills(bills, "overdue")),
        "error": "",
    }


def get_maintenance_data(hub: Hub, show_all: bool = False) -> dict:
    results, errors = fetch_all({
        "tasks": lambda: hub.household.maintenance_tasks(include_inactive=show_all),
        "logs": lambda: hub.household.maintenance_logs(limit=10),
    }, label="Maintenance")
    tasks = results.get("tasks") or []
    for t in tasks:
        days = t.get("days_until_due")
        if days is None:
            days = metrics.days_until(t.get("next_due_date"))
        t["_badge"] = metrics.due_badge(days)
    tasks.sort(key=lambda t: (t.get("next_due_date") is None, str(t.get("next_due_date") or "")))
    return {
        "tasks": tasks,
        "logs": results.get("logs") or [],
        "show_all": show_all,
        "overdue_count": sum(1 for t in tasks if t.get("is_overdue")),
        "error": _error_banner(errors),
    }


def get_recipes_data(hub: Hub, search: str = "", favourites_only: bool = False) -> dict:
    try:
        recipes = hub.cooking.recipes(search=search or None, favourites_only=favourites_only)
    except AuthError:
        raise
    except ApiError as e:
        print(f"[Recipes] Failed to load: {e}")
        return {"recipes": [], "search": search, "favourites_only": favourites_only,
                "error": "Failed to load recipes."}
    return {"recipes": recipes, "search": search, "favourites_only": favourites_only, "error": ""}


def get_reading_data(hub: Hub, search: str = "") -> dict:
    results, errors = fetch_all({
        "books": lambda: hub.reading.books(search=search or None),
        "lists": hub.reading.lists,
    }, label="Reading")
    books = results.get("books") or []
    for b in books:
        b["_progress"] = metrics.reading_progress(b.get("current_page"), b.get("page_count"))
    return {
        "books": books,
        "lists": results.get("lists") or [],
        "search": search,
        "error": _error_banner(errors),
    }


def get_snippets_data(hub: Hub, language: str = "", search: str = "") -> dict:
    try:
        snippets = hub.coding.snippets(language=language or None, search=search or None)
    except AuthError:
        raise
    except ApiError as e:
        print(f"[Snippets] Failed to load: {e}")
        return {"snippets": [], "language": language, "search": search, "languages": [],
                "error": "Failed to load snippets."}
    languages = sorted({s.get("language") for s in snippets if s.get("language")})
    return {"snippets": snippets, "language": language, "search": search, "languages": languages, "error": ""}


def get_reports_data(hub: Hub) -> dict:
    results, errors = fetch_all({
        "net_worth": hub.reports.net_worth,
        "coverage": hub.reports.insurance_coverage,
        "allocation": hub.reports.asset_allocation,
        "events": hub.reports.upcoming_events,
    }, label="Reports")
    return {
        "net_worth": results.get("net_worth") or {},
        "coverage": results.get("coverage") or {},
        "allocation": results.get("allocation") or {},
        "events": results.get("events") or {},
        "error": _error_banner(errors),
    }


def get_export_snapshot(hub: Hub) -> dict:
    results, _ = fetch_all({
        "summary": hub.dashboard.summary,
        "holdings": hub.portfolios.all_holdings,
        "bills": lambda: hub.household.bills(include_inactive=True),
        "policies": hub.insurance.list_all,
    }, label="Export")
    return {
        "summary": results.get("summary") or {},
        "holdings": results.get("holdings") or [],
        "bills": results.get("bills") or [],
        "policies": results.get("policies") or [],
    }


# ── Excel export / audit trail ──

_HEADER_FONT = Font(bold=True, color="FFFFFF")
_HEADER_FILL = PatternFill("solid", fgColor="1F2937")


def _write_sheet(ws, headers: list, rows: list[list]) -> None:
    ws.append(headers)
    for cell in ws[1]:
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
    for r in rows:
        ws.append(r)
    for i, h in enumerate(headers, start=1):
        width = max([len(str(h))] + [len(str(r[i - 1])) for r in rows if i - 1 < len(r) and r[i - 1] is not None])
        ws.column_dimensions[get_column_letter(i)].width = min(width + 2, 50)


def export_workbook(path: Path, snapshot: dict) -> Path:
    """Write Summary / Holdings / Bills / Policies sheets for the given snapshot."""
    path = Path(path)
    wb = Workbook()
    wb.remove(wb.active)

    summary = snapshot.get("summary") or {}
    ws = wb.create_sheet("Summary")
    _write_sheet(ws, ["Metric", "Value"], [
        ["Exported", datetime.now().strftime("%Y-%m-%d %H:%M")],
        ["Currency", summary.get("currency", "")],
        ["Net Worth", summary.get("total_net_worth", 0)],
        ["Investments", summary.get("investments", 0)],
        ["Cash", summary.get("cash", 0)],
        ["Fixed Assets", summary.get("fixed_assets", 0)],
    ])

    holdings = snapshot.get("holdings") or []
    ws = wb.create_sheet("Holdings")
    rows = []
    for h in holdings:
        asset = h.get("asset") or {}
        qty = float(h.get("quantity") or 0)
        cost = qty * float(h.get("average_cost") or 0)
        value = float(h.get("current_value") or 0)
        rows.append([
            h.get("portfolio_name", ""),
            asset.get("symbol", ""),
            asset.get("name", ""),
            qty,
            round(cost, 2),
            round(value, 2),
            round(value - cost, 2),
        ])
    totals = metrics.portfolio_totals(holdings)
    rows.append(["Total", "", "", "", round(totals["total_cost"], 2), round(totals["total_value"], 2),
                 round(totals["gain"], 2)])
    _write_sheet(ws, ["Portfolio", "Symbol", "Name", "Quantity", "Cost", "Value", "Gain/Loss"], rows)
    ws.cell(ws.max_row, 1).font = Font(bold=True)

    bills = snapshot.get("bills") or []
    ws = wb.create_sheet("Bills")
    _write_sheet(ws, ["Name", "Category", "Amount", "Frequency", "Monthly", "Next Due", "Active"], [
        [
            b.get("name", ""),
            b.get("category", ""),
            float(b.get("amount") or 0),
            b.get("frequency", ""),
            round(metrics.bill_monthly(b), 2),
            (b.get("next_due_date") or "")[:10],
            "Yes" if b.get("is_active") else "No",
        ]
        for b in bills
    ])

    policies = snapshot.get("policies") or []
    ws = wb.create_sheet("Policies")
    _write_sheet(ws, ["Policy", "Type", "Provider", "Premium", "Frequency", "Annual", "Renewal"], [
        [
            p.get("policy_name", ""),
            p.get("policy_type", ""),
            p.get("provider", ""),
            float(p.get("premium_amount") or 0),
            p.get("premium_frequency", ""),
            round(metrics.annual_premium(p.get("premium_amount"), p.get("premium_frequency")), 2),
            (p.get("renewal_date") or "")[:10],
        ]
        for p in policies
    ])

    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    return path


def append_history_log(base: Path, action: str, details: str = "") -> None:
    """Append a row to the History sheet of the audit workbook (created on first write)."""
    wb_path = Path(base) / HISTORY_WORKBOOK
    try:
        wb = load_workbook(wb_path) if wb_path.exists() else Workbook()
        if "History" in wb.sheetnames:
            ws = wb["History"]
        else:
            if not wb_path.exists():
                ws = wb.active
                ws.title = "History"
            else:
                ws = wb.create_sheet("History", 0)
            ws.append(["Date", "Action", "Details"])
        ws.append([datetime.now().strftime("%Y-%m-%d %H:%M"), action, details])
        wb.save(wb_path)
    except Exception as e:
        print(f"[History] Write failed: {e}")


def format_summary_lines(summary: dict) -> list[str]:
    cur = summary.get("currency") or "GBP"
    lines = [
        f"Net worth:    {format_currency(summary.get('total_net_worth', 0), cur)}",
        f"Investments:  {format_currency(summary.get('investments', 0), cur)}",
        f"Cash:         {format_currency(summary.get('cash', 0), cur)}",
        f"Fixed assets: {format_currency(summary.get('fixed_assets', 0), cur)}",
    ]
    for key, label in (("change_day", "Day"), ("change_week", "Week"), ("change_month", "Month"),
                       ("change_year", "Year")):
        if summary.get(key) is not None:
            lines.append(f"  {label:<6} {format_percentage(summary[key])}")
    return lines


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Home Ledger manager")
    parser.add_argument("--summary", action="store_true", help="Print the net worth summary")
    parser.add_argument("--export", type=Path, metavar="FILE", help="Write an Excel snapshot to FILE")
    parser.add_argument("--config", "-c", type=Path, default=None, help="Path to config.json")
    args = parser.parse_args(argv)

    base = Path(__file__).resolve().parent
    config_path = args.config or Path(os.environ.get("HOME_LEDGER_CONFIG") or base / "config.json")
    settings = get_effective_settings(load_config(config_path))
    hub = make_hub(settings)

    if not args.summary and not args.export:
        parser.print_help()
        return 1
    try:
        if args.summary:
            for line in format_summary_lines(hub.dashboard.summary() or {}):
                print(line)
        if args.export:
            out = export_workbook(args.export, get_export_snapshot(hub))
            print(f"Exported workbook: {out}")
    except ApiError as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
