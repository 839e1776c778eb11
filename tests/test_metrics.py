"""Tests for derived metrics: gains, equity, badges, date ranges and chart rows."""

from datetime import date

import pytest

import metrics

TODAY = date(2026, 10, 19)


def test_percent_change():
    assert metrics.percent_change(100, 110) == pytest.approx(10)
    assert metrics.percent_change(200, 150) == pytest.approx(-25)
    assert metrics.percent_change(0, 50) == 0
    assert metrics.percent_change(None, 50) == 0


def test_holding_price_change_with_start_price():
    holding = {"quantity": 10, "current_value": 120, "asset": {"symbol": "VWRL", "last_price": 12}}
    c = metrics.holding_price_change(holding, 10)
    assert c["start_value"] == pytest.approx(100)
    assert c["end_value"] == pytest.approx(120)
    assert c["price_change"] == pytest.approx(2)
    assert c["price_change_pct"] == pytest.approx(20)
    assert c["value_change"] == pytest.approx(20)
    assert c["holding"] is holding


def test_holding_price_change_without_start_price():
    holding = {"quantity": 10, "current_value": 120, "asset": {"last_price": 12}}
    c = metrics.holding_price_change(holding, None)
    assert c["start_price"] is None
    assert c["price_change"] is None
    assert c["value_change_pct"] is None
    assert c["end_value"] == 120


def test_portfolio_totals():
    holdings = [
        {"current_value": 150, "quantity": 10, "average_cost": 10},
        {"current_value": "50", "quantity": "5", "average_cost": "12"},
    ]
    t = metrics.portfolio_totals(holdings)
    assert t["total_value"] == pytest.approx(200)
    assert t["total_cost"] == pytest.approx(160)
    assert t["gain"] == pytest.approx(40)
    assert t["gain_pct"] == pytest.approx(25)
    assert t["count"] == 2


def test_portfolio_totals_empty():
    t = metrics.portfolio_totals([])
    assert t["gain_pct"] == 0.0
    assert t["count"] == 0


def test_count_by_type_and_cash_totals():
    holdings = [{"asset": {"asset_type": "etf"}}, {"asset": {"asset_type": "ETF"}}, {"asset": {}}]
    assert metrics.count_by_type(holdings) == {"ETF": 2, "OTHER": 1}
    cash = metrics.cash_totals([
        {"balance": 1000, "interest_rate": 4.0},
        {"balance": 500, "interest_rate": 5.0},
        {"balance": 250},
    ])
    assert cash["balance"] == pytest.approx(1750)
    assert cash["avg_rate"] == pytest.approx(4.5)


def test_property_equity():
    assert metrics.property_equity({"equity": 5000}) == 5000
    assert metrics.property_equity({"current_value": 300000, "mortgage_balance": 120000}) == 180000
    assert metrics.property_equity({"current_value": 300000}) is None


def test_ownership_total_is_not_enforced():
    owners = [{"ownership_percentage": 60}, {"ownership_percentage": "30"}]
    assert metrics.ownership_total(owners) == pytest.approx(90)
    assert metrics.ownership_total(None) == 0


def test_days_until():
    assert metrics.days_until("2026-10-29", TODAY) == 10
    assert metrics.days_until("2026-10-09", TODAY) == -10
    assert metrics.days_until(None, TODAY) is None


@pytest.mark.parametrize("days,expired,expected", [
    (None, False, None),
    (None, True, ("Expired", "danger")),
    (-3, False, ("3d overdue", "danger")),
    (0, False, ("Today", "warning")),
    (10, False, ("10d to renewal", "warning")),
    (45, False, ("45d to renewal", "ok")),
])
def test_renewal_badge(days, expired, expected):
    assert metrics.renewal_badge(days, expired) == expected


@pytest.mark.parametrize("days,expected", [
    (None, None),
    (-2, ("2d overdue", "danger")),
    (0, ("Due today", "warning")),
    (3, ("Due in 3d", "warning")),
    (20, ("Due in 20d", "ok")),
])
def test_due_badge(days, expected):
    assert metrics.due_badge(days) == expected


def test_monthly_equivalent_by_frequency():
    assert metrics.monthly_equivalent(120, "annually") == pytest.approx(10)
    assert metrics.monthly_equivalent(100, "quarterly") == pytest.approx(100 / 3)
    assert metrics.monthly_equivalent(52, "weekly") == pytest.approx(52 * 52 / 12)
    assert metrics.monthly_equivalent(50, "one_time") == 0
    assert metrics.monthly_equivalent(80, "Monthly") == pytest.approx(80)


def test_bills_monthly_total_prefers_backend_value():
    bills = [{"monthly_equivalent": 40, "amount": 999, "frequency": "weekly"},
             {"amount": 120, "frequency": "annually"}]
    assert metrics.bills_monthly_total(bills) == pytest.approx(50)


def test_annual_premium():
    assert metrics.annual_premium(25, "monthly") == pytest.approx(300)
    assert metrics.annual_premium(400, None) == pytest.approx(400)


def test_filter_bills():
    bills = [{"id": 1, "is_active": True, "is_overdue": True},
             {"id": 2, "is_active": True, "is_overdue": False},
             {"id": 3, "is_active": False, "is_overdue": False}]
    assert [b["id"] for b in metrics.filter_bills(bills, "overdue")] == [1]
    assert [b["id"] for b in metrics.filter_bills(bills, "active")] == [1, 2]
    assert [b["id"] for b in metrics.filter_bills(bills, "all")] == [1, 2, 3]


def test_reading_progress():
    assert metrics.reading_progress(50, 200) == 25
    assert metrics.reading_progress(250, 200) == 100
    assert metrics.reading_progress(10, 0) == 0
    assert metrics.reading_progress(1, 3) == 33


def test_allocation_rows_fills_percentages_and_sorts():
    rows = metrics.allocation_rows([{"name": "Bonds", "value": 30}, {"name": "Equity", "value": 70}])
    assert [r["name"] for r in rows] == ["Equity", "Bonds"]
    assert rows[0]["percentage"] == pytest.approx(70)
    kept = metrics.allocation_rows([{"name": "Cash", "value": 10, "percentage": 12.5}])
    assert kept[0]["percentage"] == 12.5


def test_pet_age():
    assert metrics.pet_age("2023-08-10", TODAY) == "3y 2m"
    assert metrics.pet_age("2026-05-20", TODAY) == "4m"
    assert metrics.pet_age("2022-10-01", TODAY) == "4y"
    assert metrics.pet_age(None, TODAY) == "—"


def test_shift_months_clamps_day():
    assert metrics._shift_months(date(2026, 3, 31), -1) == date(2026, 2, 28)
    assert metrics._shift_months(date(2026, 1, 15), -24) == date(2024, 1, 15)


def test_default_date_range():
    assert metrics.default_date_range("daily", TODAY) == (date(2026, 9, 19), TODAY)
    assert metrics.default_date_range("weekly", TODAY) == (date(2026, 4, 19), TODAY)
    assert metrics.default_date_range("monthly", TODAY) == (date(2024, 10, 19), TODAY)
    assert metrics.default_date_range("yearly", TODAY) == (date(2016, 10, 19), TODAY)


def test_clamp_date_range_caps_end_and_span():
    start, end = metrics.clamp_date_range("daily", "2026-01-01", "2026-12-31", TODAY)
    assert end == TODAY
    assert start == date(2026, 9, 19)


def test_clamp_date_range_start_not_after_end():
    start, end = metrics.clamp_date_range("monthly", "2026-10-10", "2026-10-01", TODAY)
    assert start == end == date(2026, 10, 1)


def test_clamp_date_range_bad_input_uses_default():
    assert metrics.clamp_date_range("daily", "garbage", None, TODAY) == (date(2026, 9, 19), TODAY)
    # Six calendar months is one day longer than the 182-day weekly limit here
    assert metrics.clamp_date_range("weekly", None, None, TODAY) == (date(2026, 4, 20), TODAY)


@pytest.mark.parametrize("period", list(metrics.PERIOD_MAX_DAYS))
def test_clamp_date_range_within_period_limit(period):
    start, end = metrics.clamp_date_range(period, "1990-01-01", "2030-01-01", TODAY)
    assert end <= TODAY
    assert start <= end
    assert (end - start).days <= metrics.PERIOD_MAX_DAYS[period]


def _performance():
    return {
        "data_points": [{"date": "2026-10-02", "value": 110}, {"date": "2026-10-01", "value": 100}],
        "portfolios": [
            {"id": "p1", "name": "ISA", "data_points": [{"date": "2026-10-01", "value": 60}]},
            {"id": "p2", "name": "SIPP", "data_points": [{"date": "2026-10-02", "value": 50}]},
        ],
    }


def test_merge_performance_outer_joins_by_date():
    rows = metrics.merge_performance(_performance())
    assert rows == [
        {"date": "2026-10-01", "total": 100.0, "ISA": 60.0},
        {"date": "2026-10-02", "total": 110.0, "SIPP": 50.0},
    ]
    assert metrics.chart_series_names(rows) == ["total", "ISA", "SIPP"]


def test_merge_performance_single_portfolio_only_total():
    perf = _performance()
    perf["portfolios"] = perf["portfolios"][:1]
    rows = metrics.merge_performance(perf)
    assert metrics.chart_series_names(rows) == ["total"]


def test_merge_performance_duplicate_dates_keep_last():
    perf = {"data_points": [{"date": "2026-10-01", "value": 1}, {"date": "2026-10-01", "value": 2}]}
    assert metrics.merge_performance(perf) == [{"date": "2026-10-01", "total": 2.0}]


def test_merge_performance_empty():
    assert metrics.merge_performance(None) == []
    assert metrics.merge_performance({"data_points": [], "portfolios": []}) == []


def test_chart_axis_pads_positive_values():
    axis = metrics.chart_axis(metrics.merge_performance(_performance()))
    assert axis["domain"][0] <= 50 * 0.95
    assert axis["domain"][1] >= 110 * 1.05
    assert metrics.chart_axis([]) == {"domain": [0, 100], "ticks": [0, 25, 50, 75, 100]}
