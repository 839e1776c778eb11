"""
Derived display metrics over already-fetched API data.
Gain/loss, equity, countdowns, progress and chart series. Pure functions, recomputed per render.
"""

from datetime import date, timedelta
from typing import Optional

import pandas as pd

from formatting import calculate_nice_ticks, parse_date

# Longest range the backend will aggregate for each performance period
PERIOD_MAX_DAYS = {
    "daily": 30,
    "weekly": 182,
    "monthly": 730,
    "yearly": 3650,
}
PERIODS = [
    {"value": "daily", "label": "Daily", "description": "Max 30 days"},
    {"value": "weekly", "label": "Weekly", "description": "Max 26 weeks"},
    {"value": "monthly", "label": "Monthly", "description": "Max 2 years"},
    {"value": "yearly", "label": "Yearly", "description": "Max 10 years"},
]

# Payments per year for each bill / premium frequency
FREQUENCY_PER_YEAR = {
    "weekly": 52,
    "fortnightly": 26,
    "monthly": 12,
    "quarterly": 4,
    "annually": 1,
    "annual": 1,
    "yearly": 1,
    "one_time": 0,
}

RENEWAL_WARNING_DAYS = 30


def _num(v) -> float:
    if v is None or v == "":
        return 0.0
    try:
        return float(v)
    except (TypeError, ValueError):
        return 0.0


def percent_change(start, end) -> float:
    """Percent move from start to end; 0 when there is no positive base."""
    start, end = _num(start), _num(end)
    if start <= 0:
        return 0.0
    return (end - start) / start * 100


def holding_price_change(holding: dict, start_price) -> dict:
    """Price and value movement of one holding since start_price (None when unknown)."""
    asset = holding.get("asset") or {}
    qty = _num(holding.get("quantity"))
    end_price = asset.get("last_price")
    if start_price is None:
        return {
            "holding": holding,
            "start_price": None,
            "end_price": end_price or None,
            "start_value": None,
            "end_value": holding.get("current_value") or None,
            "price_change": None,
            "price_change_pct": None,
            "value_change": None,
            "value_change_pct": None,
        }
    start_price = _num(start_price)
    end_price = _num(end_price)
    start_value = start_price * qty
    end_value = end_price * qty
    return {
        "holding": holding,
        "start_price": start_price,
        "end_price": end_price,
        "start_value": start_value,
        "end_value": end_value,
        "price_change": end_price - start_price,
        "price_change_pct": percent_change(start_price, end_price),
        "value_change": end_value - start_value,
        "value_change_pct": percent_change(start_value, end_value),
    }


def portfolio_totals(holdings: list[dict]) -> dict:
    """Sum current value and cost basis; gain and gain % over cost."""
    total_value = sum(_num(h.get("current_value")) for h in holdings)
    total_cost = sum(_num(h.get("quantity")) * _num(h.get("average_cost")) for h in holdings)
    gain = total_value - total_cost
    return {
        "total_value": total_value,
        "total_cost": total_cost,
        "gain": gain,
        "gain_pct": gain / total_cost * 100 if total_cost > 0 else 0.0,
        "count": len(holdings),
    }


def count_by_type(holdings: list[dict]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for h in holdings:
        t = ((h.get("asset") or {}).get("asset_type") or "OTHER").upper()
        counts[t] = counts.get(t, 0) + 1
    return counts


def cash_totals(accounts: list[dict]) -> dict:
    """Total balance and mean interest rate across accounts that carry one."""
    balance = sum(_num(a.get("balance")) for a in accounts)
    rated = [_num(a.get("interest_rate")) for a in accounts if a.get("interest_rate")]
    return {
        "balance": balance,
        "avg_rate": sum(rated) / len(rated) if rated else 0.0,
    }


def property_equity(prop: dict) -> Optional[float]:
    """Backend equity when supplied, else value minus mortgage when both are known."""
    if prop.get("equity") is not None:
        return _num(prop["equity"])
    value, mortgage = prop.get("current_value"), prop.get("mortgage_balance")
    if value and mortgage:
        return _num(value) - _num(mortgage)
    return None


def ownership_total(owners: list[dict]) -> float:
    """Sum of co-owner percentages. Display only: nothing requires 100."""
    return sum(_num(o.get("ownership_percentage")) for o in owners or [])


def days_until(target, today: date = None) -> Optional[int]:
    d = parse_date(target)
    if d is None:
        return None
    return (d - (today or date.today())).days


def renewal_badge(days: Optional[int], is_expired: bool = False,
                  warn_days: int = RENEWAL_WARNING_DAYS) -> Optional[tuple[str, str]]:
    """(label, level) for an insurance renewal countdown; None when there is no date."""
    if is_expired:
        return "Expired", "danger"
    if days is None:
        return None
    if days < 0:
        return f"{abs(days)}d overdue", "danger"
    level = "warning" if days <= warn_days else "ok"
    if days == 0:
        return "Today", level
    return f"{days}d to renewal", level


def due_badge(days: Optional[int], warn_days: int = 7) -> Optional[tuple[str, str]]:
    """(label, level) for bills and maintenance tasks."""
    if days is None:
        return None
    if days < 0:
        return f"{abs(days)}d overdue", "danger"
    if days == 0:
        return "Due today", "warning"
    return f"Due in {days}d", "warning" if days <= warn_days else "ok"


def monthly_equivalent(amount, frequency: str) -> float:
    per_year = FREQUENCY_PER_YEAR.get((frequency or "monthly").lower(), 12)
    return _num(amount) * per_year / 12


def annual_premium(amount, frequency: str) -> float:
    per_year = FREQUENCY_PER_YEAR.get((frequency or "annually").lower(), 1)
    return _num(amount) * per_year


def bill_monthly(bill: dict) -> float:
    if bill.get("monthly_equivalent") is not None:
        return _num(bill["monthly_equivalent"])
    return monthly_equivalent(bill.get("amount"), bill.get("frequency"))


def bills_monthly_total(bills: list[dict]) -> float:
    return sum(bill_monthly(b) for b in bills)


def filter_bills(bills: list[dict], mode: str) -> list[dict]:
    """'overdue' / 'active' / anything else returns every bill."""
    if mode == "overdue":
        return [b for b in bills if b.get("is_overdue")]
    if mode == "active":
        return [b for b in bills if b.get("is_active")]
    return list(bills)


def reading_progress(current_page, page_count) -> int:
    pages = _num(page_count)
    if pages <= 0:
        return 0
    pct = _num(current_page) / pages * 100
    return int(round(min(max(pct, 0.0), 100.0)))


def allocation_rows(items: list[dict]) -> list[dict]:
    """Fill in percentage of total where the backend left it out; largest first."""
    total = sum(_num(i.get("value")) for i in items)
    rows = []
    for i in items:
        pct = i.get("percentage")
        if pct is None:
            pct = _num(i.get("value")) / total * 100 if total > 0 else 0.0
        rows.append({"name": i.get("name", ""), "value": _num(i.get("value")), "percentage": _num(pct)})
    rows.sort(key=lambda r: -r["value"])
    return rows


def pet_age(date_of_birth, today: date = None) -> str:
    dob = parse_date(date_of_birth)
    if dob is None:
        return "—"
    today = today or date.today()
    months = (today.year - dob.year) * 12 + (today.month - dob.month)
    if today.day < dob.day:
        months -= 1
    if months < 0:
        return "—"
    years, months = divmod(months, 12)
    if years == 0:
        return f"{months}m"
    return f"{years}y {months}m" if months else f"{years}y"


def _shift_months(d: date, months: int) -> date:
    y, m = divmod(d.month - 1 + months, 12)
    year, month = d.year + y, m + 1
    # Clamp day for short months (31 Mar - 1 month -> 28/29 Feb)
    for day in (d.day, 30, 29, 28):
        try:
            return date(year, month, day)
        except ValueError:
            continue
    return date(year, month, 28)


def default_date_range(period: str, today: date = None) -> tuple[date, date]:
    """Default chart window: 30 days / 6 months / 2 years / 10 years back from today."""
    today = today or date.today()
    if period == "weekly":
        start = _shift_months(today, -6)
    elif period == "monthly":
        start = _shift_months(today, -24)
    elif period == "yearly":
        start = _shift_months(today, -120)
    else:
        start = today - timedelta(days=30)
    return start, today


def clamp_date_range(period: str, start, end, today: date = None) -> tuple[date, date]:
    """
    Keep a user-picked range inside what the period allows: end no later than
    today, start no earlier than end minus the period limit and no later than end.
    Missing or unparseable bounds fall back to the period default.
    """
    today = today or date.today()
    default_start, default_end = default_date_range(period, today)
    end_d = parse_date(end) or default_end
    if end_d > today:
        end_d = today
    start_d = parse_date(start) or default_start
    earliest = end_d - timedelta(days=PERIOD_MAX_DAYS.get(period, 30))
    if start_d < earliest:
        start_d = earliest
    if start_d > end_d:
        start_d = end_d
    return start_d, end_d


def _series_frame(points: list[dict], name: str) -> pd.DataFrame:
    df = pd.DataFrame(points)[["date", "value"]]
    df = df.drop_duplicates(subset="date", keep="last")
    return df.rename(columns={"value": name}).set_index("date")


def merge_performance(performance: Optional[dict]) -> list[dict]:
    """
    Chart rows keyed by date: {"date", "total", <portfolio name>: value, ...}.
    With several portfolios each series is outer-joined on date.
    """
    if not performance:
        return []
    points = performance.get("data_points") or []
    portfolios = performance.get("portfolios") or []

    frames = []
    if points:
        frames.append(_series_frame(points, "total"))
    if len(portfolios) > 1:
        for p in portfolios:
            dps = p.get("data_points") or []
            if dps:
                frames.append(_series_frame(dps, p.get("name", "")))
    if not frames:
        return []

    df = pd.concat(frames, axis=1, join="outer").sort_index()
    rows = []
    for dt, row in df.iterrows():
        entry = {"date": str(dt)}
        for col, val in row.items():
            if pd.notna(val):
                entry[col] = float(val)
        rows.append(entry)
    return rows


def chart_series_names(rows: list[dict]) -> list[str]:
    names = []
    for r in rows:
        for k in r:
            if k != "date" and k not in names:
                names.append(k)
    return names


def chart_axis(rows: list[dict], target_tick_count: int = 5) -> dict:
    """Nice y-axis for the chart rows, padded 5% either side of the positive values."""
    values = [v for r in rows for k, v in r.items() if k != "date" and isinstance(v, (int, float)) and v > 0]
    raw_min = min(values) if values else 0
    raw_max = max(values) if values else 0
    return calculate_nice_ticks(raw_min * 0.95, raw_max * 1.05, target_tick_count)
