"""
Display formatting helpers for Home Ledger pages.
Currency strings (full and compact K/M/B), percentages, dates and chart-axis ticks.
"""

import math
import sys
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

CURRENCY_SYMBOLS = {
    "GBP": "£",
    "USD": "$",
    "EUR": "€",
}

# Symbols for the full formatter only (compact keeps to GBP/USD/EUR)
_FULL_SYMBOLS = dict(CURRENCY_SYMBOLS, JPY="¥", INR="₹", CAD="CA$", AUD="A$")

NICE_STEPS = (1, 2, 2.5, 5, 10)
FALLBACK_TICKS = {"domain": [0, 100], "ticks": [0, 25, 50, 75, 100]}

# Smallest step allowed relative to the larger input magnitude
_MIN_RELATIVE_STEP = 1e-9
MAX_TICK_COUNT = 50


def format_currency(value, currency: str = "GBP") -> str:
    """Full currency string with two decimals, e.g. -1234.5 GBP -> '-£1,234.50'."""
    if value is None:
        return "—"
    code = (currency or "").upper()
    v = float(value)
    sign = "-" if v < 0 else ""
    symbol = _FULL_SYMBOLS.get(code)
    if symbol is None:
        return f"{sign}{code} {abs(v):,.2f}".strip()
    return f"{sign}{symbol}{abs(v):,.2f}"


def format_currency_compact(value, currency: str = "GBP") -> str:
    """Abbreviate large amounts with K/M/B for axis labels and tight cards."""
    v = float(value)
    abs_v = abs(v)
    if abs_v >= 1_000_000_000:
        scaled, suffix = v / 1_000_000_000, "B"
    elif abs_v >= 1_000_000:
        scaled, suffix = v / 1_000_000, "M"
    elif abs_v >= 1_000:
        scaled, suffix = v / 1_000, "K"
    else:
        return format_currency(v, currency)

    if scaled % 1 == 0:
        formatted = str(int(scaled))
    else:
        # Exact halves round away from zero (1250 -> 1.3K)
        formatted = str(Decimal(scaled).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
    symbol = CURRENCY_SYMBOLS.get((currency or "").upper(), "")
    return f"{symbol}{formatted}{suffix}"


def format_percentage(value, decimals: int = 2, signed: bool = True) -> str:
    """'+12.34%' / '-3.10%'; '—' for None."""
    if value is None:
        return "—"
    v = float(value)
    if signed:
        return f"{v:+.{decimals}f}%"
    return f"{v:.{decimals}f}%"


def change_color(value) -> str:
    """CSS colour variable for a gain (success), loss (danger) or flat value."""
    if value is None or value == 0:
        return "var(--text-muted)"
    return "var(--success)" if value > 0 else "var(--danger)"


def parse_date(value) -> Optional[date]:
    """Accept date, datetime, 'YYYY-MM-DD' or ISO timestamps from the API."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(s[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def format_date(value, fmt: str = "%d %b %Y") -> str:
    d = parse_date(value)
    return d.strftime(fmt) if d else "—"


def _tick_decimals(step: float) -> int:
    """Decimal places needed so rounded ticks stay distinct (never fewer than 2)."""
    return max(2, -math.floor(math.log10(step)) + 1)


def calculate_nice_ticks(min_value: float, max_value: float, target_tick_count: int = 5) -> dict:
    """
    Round axis domain and tick list for a chart.

    The step is the smallest of 1/2/2.5/5/10 times the order of magnitude of
    (max - min) / (target_tick_count - 1) that covers that raw step. The domain
    is min rounded down and max rounded up to multiples of the step.
    target_tick_count is clamped to 2..MAX_TICK_COUNT.
    Returns {"domain": [nice_min, nice_max], "ticks": [...]}.

    Raises ValueError for non-finite bounds, or when the rounded domain would
    not fit in a float.
    """
    lo, hi = float(min_value), float(max_value)
    if not (math.isfinite(lo) and math.isfinite(hi)):
        raise ValueError(f"Tick bounds must be finite, got {min_value!r}, {max_value!r}")
    if lo > hi:
        lo, hi = hi, lo
    if lo == hi or hi == 0:
        return {"domain": list(FALLBACK_TICKS["domain"]), "ticks": list(FALLBACK_TICKS["ticks"])}

    intervals = min(max(int(target_tick_count) - 1, 1), MAX_TICK_COUNT - 1)
    # Halve before subtracting so spans near the float limit stay finite
    raw_step = (hi / 2 - lo / 2) / intervals * 2
    raw_step = max(raw_step, max(abs(lo), abs(hi)) * _MIN_RELATIVE_STEP, sys.float_info.min)
    if not math.isfinite(raw_step):
        raise ValueError("Tick range is too large")

    magnitude = 10 ** math.floor(math.log10(raw_step))
    step = magnitude
    for multiplier in NICE_STEPS:
        if multiplier * magnitude >= raw_step:
            step = multiplier * magnitude
            break
    if not math.isfinite(step):
        raise ValueError("Tick range is too large")

    first = math.floor(lo / step)
    last = math.ceil(hi / step)
    # Float division can land one step inside the data range
    if first * step > lo:
        first -= 1
    if last * step < hi:
        last += 1
    nice_min, nice_max = first * step, last * step
    if not (math.isfinite(nice_min) and math.isfinite(nice_max)):
        raise ValueError("Tick range is too large")

    decimals = _tick_decimals(step)
    ticks = [round((first + i) * step, decimals) for i in range(last - first + 1)]
    return {"domain": [nice_min, nice_max], "ticks": ticks}
