"""Dashboard rendering: HTML pages for Home Ledger, built from the page-data dicts in hub_manager."""

import json
from datetime import date
from decimal import Decimal
from urllib.parse import quote

from markupsafe import escape

from formatting import (
    change_color,
    format_currency,
    format_currency_compact,
    format_date,
    format_percentage,
)

NAV = [
    ("overview", "/", "Overview"),
    ("portfolios", "/portfolios", "Portfolios"),
    ("holdings", "/holdings", "Holdings"),
    ("charts", "/charts", "Charts"),
    ("insurance", "/insurance", "Insurance"),
    ("properties", "/properties", "Properties"),
    ("pets", "/pets", "Pets"),
    ("bills", "/bills", "Bills"),
    ("maintenance", "/maintenance", "Maintenance"),
    ("recipes", "/recipes", "Recipes"),
    ("reading", "/reading", "Reading"),
    ("snippets", "/snippets", "Snippets"),
    ("reports", "/reports", "Reports"),
]

SERIES_COLORS = ["#d4a017", "#34d399", "#60a5fa", "#f87171", "#a78bfa", "#fbbf24", "#22d3ee", "#fb923c"]

_BADGE_COLORS = {
    "danger": "background:rgba(248,113,113,0.15);color:var(--danger);",
    "warning": "background:rgba(251,191,36,0.15);color:var(--warning);",
    "ok": "background:var(--success-glow);color:var(--success);",
}

_CSS = """
:root {
  --bg-primary: #09090b;
  --bg-secondary: #111114;
  --bg-card: #161619;
  --bg-input: #1a1a1f;
  --border-subtle: rgba(255,255,255,0.06);
  --text-primary: #f1f5f9;
  --text-secondary: #94a3b8;
  --text-muted: #64748b;
  --accent-primary: #d4a017;
  --accent-glow: rgba(212,160,23,0.15);
  --success: #34d399;
  --success-glow: rgba(52,211,153,0.15);
  --danger: #f87171;
  --warning: #fbbf24;
  --radius: 12px;
  --mono: 'JetBrains Mono', monospace;
}
* { box-sizing:border-box; margin:0; padding:0; }
body { font-family:'Inter',-apple-system,BlinkMacSystemFont,sans-serif; background:var(--bg-primary);
  color:var(--text-primary); min-height:100vh; line-height:1.6; display:flex; }
.sidebar { position:fixed; left:0; top:0; bottom:0; width:180px; background:var(--bg-secondary);
  border-right:1px solid var(--border-subtle); padding:20px 12px; overflow-y:auto; }
.sidebar h1 { font-size:1.05rem; color:var(--accent-primary); margin-bottom:20px; padding-left:8px; }
.nav-item { display:block; padding:8px 10px; border-radius:8px; color:var(--text-muted);
  text-decoration:none; font-size:0.88rem; }
.nav-item:hover { color:var(--text-secondary); background:rgba(255,255,255,0.04); }
.nav-item.active { color:var(--accent-primary); background:var(--accent-glow); }
main { margin-left:180px; padding:28px 32px; flex:1; max-width:1280px; }
.page-title { font-size:1.5rem; font-weight:700; }
.page-sub { color:var(--text-muted); margin-bottom:20px; }
.card { background:var(--bg-card); border:1px solid var(--border-subtle); border-radius:var(--radius);
  padding:18px 20px; margin-bottom:16px; }
.card-title { font-weight:600; margin-bottom:10px; }
.grid { display:grid; grid-template-columns:repeat(auto-fit, minmax(220px, 1fr)); gap:16px; margin-bottom:16px; }
.stat .label { color:var(--text-muted); font-size:0.8rem; }
.stat .value { font-size:1.4rem; font-weight:700; font-family:var(--mono); }
table { width:100%; border-collapse:collapse; font-size:0.86rem; }
th { text-align:left; color:var(--text-muted); font-weight:500; padding:6px 8px; border-bottom:1px solid var(--border-subtle); }
td { padding:7px 8px; border-bottom:1px solid var(--border-subtle); }
.num, .mono { font-family:var(--mono); text-align:right; }
.hint { color:var(--text-muted); font-size:0.8rem; }
.badge { display:inline-block; padding:2px 8px; border-radius:6px; font-size:0.75rem; font-weight:600; }
.banner { padding:10px 14px; border-radius:8px; margin-bottom:16px; font-size:0.88rem; }
.banner.saved { background:var(--success-glow); color:var(--success); }
.banner.error { background:rgba(248,113,113,0.12); color:var(--danger); }
form.inline { display:inline; }
input, select, textarea { background:var(--bg-input); border:1px solid var(--border-subtle); color:var(--text-primary);
  border-radius:6px; padding:6px 8px; font-size:0.85rem; }
button { background:var(--accent-primary); color:#09090b; border:none; border-radius:6px; padding:6px 12px;
  font-weight:600; cursor:pointer; font-size:0.85rem; }
button.secondary { background:transparent; color:var(--text-secondary); border:1px solid var(--border-subtle); }
button.danger { background:transparent; color:var(--danger); border:1px solid rgba(248,113,113,0.3); padding:2px 8px; }
.form-row { display:flex; flex-wrap:wrap; gap:8px; align-items:center; }
.progress { background:var(--bg-input); border-radius:4px; height:6px; width:120px; display:inline-block; vertical-align:middle; }
.progress > span { display:block; height:6px; border-radius:4px; background:var(--accent-primary); }
pre { background:var(--bg-input); padding:10px; border-radius:8px; overflow-x:auto; font-family:var(--mono); font-size:0.8rem; }
"""


def _e(value) -> str:
    return str(escape("" if value is None else value))


def _json(data) -> str:
    return json.dumps(data).replace("</", "<\\/")


def _badge(badge) -> str:
    if not badge:
        return ""
    label, level = badge
    return f'<span class="badge" style="{_BADGE_COLORS.get(level, "")}">{_e(label)}</span>'


def _delete_button(action: str, confirm: str = "Delete this item?") -> str:
    return (
        f'<form class="inline" method="post" action="{_e(action)}" '
        f'onsubmit="return confirm(\'{_e(confirm)}\')"><button type="submit" class="danger">x</button></form>'
    )


def _stat(label: str, value: str, color: str = "") -> str:
    style = f' style="color:{color}"' if color else ""
    return f'<div class="card stat"><div class="label">{_e(label)}</div><div class="value"{style}>{value}</div></div>'


def _money_change(value, currency: str) -> str:
    if value is None:
        return '<span class="hint">—</span>'
    sign = "+" if value > 0 else ""
    return f'<span style="color:{change_color(value)}">{sign}{_e(format_currency(value, currency))}</span>'


def _pct_change(value) -> str:
    if value is None:
        return '<span class="hint">—</span>'
    return f'<span style="color:{change_color(value)}">{_e(format_percentage(value))}</span>'


def render_layout(title: str, active: str, body: str, saved: str = "", error: str = "",
                  extra_head: str = "", demo_mode: bool = False) -> str:
    nav = "".join(
        f'<a class="nav-item{" active" if key == active else ""}" href="{href}">{label}</a>'
        for key, href, label in NAV
    )
    banners = ""
    if demo_mode:
        banners += '<div class="banner error">Demo mode: changes are disabled.</div>'
    if saved:
        banners += f'<div class="banner saved">{_e(saved)}</div>'
    if error:
        banners += f'<div class="banner error">{_e(error)}</div>'
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width,initial-scale=1.0">
<title>{_e(title)} · Home Ledger</title>
<link href="https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600;700&family=JetBrains+Mono:wght@400;600&display=swap" rel="stylesheet">
<style>{_CSS}</style>
{extra_head}
</head>
<body>
<nav class="sidebar"><h1>Home Ledger</h1>{nav}
<a class="nav-item" href="/export">Export Excel</a>
<a class="nav-item" href="/logout">Sign out</a></nav>
<main>
{banners}
{body}
</main>
</body>
</html>"""


def render_login_page(error: str = "", pin_required: bool = False, backend_login: bool = True) -> str:
    error_html = f'<p class="banner error">{_e(error)}</p>' if error else ""
    pin_field = (
        '<input type="password" name="pin" placeholder="PIN" maxlength="20" style="width:100%;margin-bottom:10px;">'
        if pin_required else ""
    )
    creds = (
        '<input type="email" name="email" placeholder="Email" style="width:100%;margin-bottom:10px;">'
        '<input type="password" name="password" placeholder="Password" style="width:100%;margin-bottom:16px;">'
        if backend_login else ""
    )
    return f"""<!DOCTYPE html><html lang="en"><head><meta charset="UTF-8">
<meta name="viewport" content="width=device-width,initial-scale=1.0"><title>Home Ledger</title>
<style>{_CSS}
.auth-screen {{ display:flex; align-items:center; justify-content:center; min-height:100vh; width:100%; }}
.auth-box {{ background:var(--bg-card); border:1px solid var(--border-subtle); border-radius:16px; padding:40px;
  text-align:center; max-width:360px; width:90%; }}
.auth-box h1 {{ font-size:1.4rem; margin-bottom:8px; color:var(--accent-primary); }}
.auth-box button {{ width:100%; padding:10px; }}
</style></head><body><div class="auth-screen"><div class="auth-box">
<h1>Home Ledger</h1><p class="hint" style="margin-bottom:16px;">Sign in to continue</p>
<form method="post" action="/login">{pin_field}{creds}<button type="submit">Sign in</button></form>{error_html}
</div></div></body></html>"""


# ── Overview ──

def render_overview(data: dict, saved: str = "", demo_mode: bool = False) -> str:
    s = data.get("summary") or {}
    cur = s.get("currency") or "GBP"
    stats = "".join([
        _stat("Net Worth", _e(format_currency(s.get("total_net_worth", 0), cur))),
        _stat("Investments", _e(format_currency_compact(s.get("investments", 0), cur))),
        _stat("Cash", _e(format_currency_compact(s.get("cash", 0), cur))),
        _stat("Fixed Assets", _e(format_currency_compact(s.get("fixed_assets", 0), cur))),
    ])
    changes = "".join(
        f'<td>{label}</td><td class="num">{_pct_change(s.get(key))}</td>'
        for key, label in (("change_day", "Day"), ("change_week", "Week"),
                           ("change_month", "Month"), ("change_year", "Year"))
    )

    alloc_rows = "".join(
        f'<tr><td>{_e(a["name"])}</td><td class="num">{_e(format_currency(a["value"], cur))}</td>'
        f'<td class="num">{a["percentage"]:.1f}%</td></tr>'
        for a in data.get("allocation_by_type") or []
    ) or '<tr><td colspan="3" class="hint">No allocation data</td></tr>'

    portfolio_rows = "".join(
        f'<tr><td><a href="/portfolios/{quote(str(p.get("id", "")))}" style="color:var(--text-primary)">{_e(p.get("name"))}</a></td>'
        f'<td class="num">{_e(format_currency(p.get("total_value", 0), cur))}</td>'
        f'<td class="num">{_pct_change(p.get("unrealised_pct"))}</td></tr>'
        for p in s.get("portfolio_summary") or []
    )

    movers = data.get("movers") or {}

    def _mover_rows(items):
        return "".join(
            f'<tr><td>{_e(m.get("symbol"))}</td><td class="hint">{_e(m.get("name"))}</td>'
            f'<td class="num">{_e(format_currency(m.get("price", 0), cur))}</td>'
            f'<td class="num">{_pct_change(m.get("change_pct"))}</td></tr>'
            for m in items or []
        ) or '<tr><td colspan="4" class="hint">None today</td></tr>'

    events = (data.get("events") or {}).get("events") or []
    event_rows = "".join(
        f'<tr><td>{_e(format_date(ev.get("date")))}</td><td>{_e(ev.get("title") or ev.get("name"))}</td>'
        f'<td class="hint">{_e(ev.get("type") or ev.get("event_type"))}</td></tr>'
        for ev in events[:10]
    ) or '<tr><td colspan="3" class="hint">Nothing coming up</td></tr>'

    body = f"""<div class="page-title">Overview</div>
<div class="page-sub">Household net worth at a glance</div>
<div class="grid">{stats}</div>
<div class="card"><div class="card-title">Change</div><table><tr>{changes}</tr></table></div>
<div class="grid" style="grid-template-columns:repeat(auto-fit, minmax(380px, 1fr));">
  <div class="card"><div class="card-title">Allocation by type</div>
    <table><thead><tr><th>Type</th><th class="num">Value</th><th class="num">Share</th></tr></thead><tbody>{alloc_rows}</tbody></table>
    <p class="hint" style="margin-top:8px;">Due to rounding, percentages may not add up to exactly 100%.</p></div>
  <div class="card"><div class="card-title">Portfolios</div>
    <table><thead><tr><th>Name</th><th class="num">Value</th><th class="num">Unrealised</th></tr></thead><tbody>{portfolio_rows}</tbody></table></div>
  <div class="card"><div class="card-title">Top gainers</div><table><tbody>{_mover_rows(movers.get("gainers"))}</tbody></table></div>
  <div class="card"><div class="card-title">Top losers</div><table><tbody>{_mover_rows(movers.get("losers"))}</tbody></table></div>
</div>
<div class="card"><div class="card-title">Upcoming events</div><table><tbody>{event_rows}</tbody></table></div>"""
    return render_layout("Overview", "overview", body, saved, data.get("error", ""), demo_mode=demo_mode)


# ── Portfolios ──

def render_portfolios(data: dict, saved: str = "", demo_mode: bool = False) -> str:
    summaries = data.get("summaries") or {}
    rows = ""
    for p in data.get("portfolios") or []:
        pid = str(p.get("id", ""))
        sm = summaries.get(pid) or {}
        cur = p.get("currency") or "GBP"
        rows += (
            f'<tr><td><a href="/portfolios/{quote(pid)}" style="color:var(--text-primary)">{_e(p.get("name"))}</a></td>'
            f'<td>{_e(p.get("type"))}</td><td>{_e(cur)}</td>'
            f'<td class="num">{_e(format_currency(sm.get("total_value", 0), cur))}</td>'
            f'<td class="num">{_money_change(sm.get("unrealised_gain"), cur)}</td>'
            f'<td class="num">{_pct_change(sm.get("unrealised_pct"))}</td>'
            f'<td class="num">{sm.get("holdings_count", 0)}</td>'
            f'<td>{_delete_button(f"/portfolios/{quote(pid)}/delete", "Delete this portfolio and all its holdings?")}</td></tr>'
        )
    if not rows:
        rows = '<tr><td colspan="8" class="hint">No portfolios yet</td></tr>'
    body = f"""<div class="page-title">Portfolios</div>
<div class="page-sub">Investment accounts and their unrealised gains</div>
<div class="card"><table><thead><tr><th>Name</th><th>Type</th><th>Currency</th><th class="num">Value</th>
<th class="num">Gain/Loss</th><th class="num">%</th><th class="num">Holdings</th><th></th></tr></thead><tbody>{rows}</tbody></table></div>
<div class="card"><div class="card-title">Add portfolio</div>
<form method="post" action="/portfolios" class="form-row">
  <input name="name" placeholder="Name" required>
  <select name="type"><option value="GIA">GIA</option><option value="ISA">ISA</option><option value="SIPP">SIPP</option>
  <option value="LISA">LISA</option><option value="JISA">JISA</option><option value="CRYPTO">Crypto</option>
  <option value="SAVINGS">Savings</option><option value="OTHER">Other</option></select>
  <input name="currency" value="GBP" size="4">
  <input name="description" placeholder="Description">
  <button type="submit">Add</button>
</form></div>"""
    return render_layout("Portfolios", "portfolios", body, saved, data.get("error", ""), demo_mode=demo_mode)


def render_portfolio_detail(data: dict, saved: str = "", demo_mode: bool = False) -> str:
    p = data.get("portfolio") or {}
    pid = quote(str(p.get("id", "")))
    cur = p.get("currency") or "GBP"
    totals = data.get("totals") or {}

    holding_rows = ""
    for h in data.get("holdings") or []:
        asset = h.get("asset") or {}
        holding_rows += (
            f'<tr><td><a href="/prices/{quote(str(asset.get("symbol", "")))}" style="color:var(--text-primary)">{_e(asset.get("symbol"))}</a></td>'
            f'<td class="hint">{_e(asset.get("name"))}</td>'
            f'<td class="num">{float(h.get("quantity") or 0):,.4g}</td>'
            f'<td class="num">{_e(format_currency(h.get("average_cost"), asset.get("currency") or cur))}</td>'
            f'<td class="num">{_e(format_currency(asset.get("last_price"), asset.get("currency") or cur))}</td>'
            f'<td class="num">{_e(format_currency(h.get("current_value"), cur))}</td>'
            f'<td class="num">{_money_change(h.get("gain_loss"), cur)} {_pct_change(h.get("gain_loss_pct"))}</td>'
            f'<td>{_delete_button("/holdings/" + quote(str(h.get("id", ""))) + "/delete?portfolio=" + pid)}</td></tr>'
        )
    if not holding_rows:
        holding_rows = '<tr><td colspan="8" class="hint">No holdings</td></tr>'

    cash_rows = "".join(
        f'<tr><td>{_e(a.get("account_name"))}</td><td>{_e(a.get("institution"))}</td><td>{_e(a.get("account_type"))}</td>'
        f'<td class="num">{_e(format_currency(a.get("balance"), a.get("currency") or cur))}</td>'
        f'<td class="num">{float(a.get("interest_rate") or 0):.2f}%</td></tr>'
        for a in data.get("cash_accounts") or []
    )

    txs = data.get("transactions") or {}
    tx_rows = "".join(
        f'<tr><td>{_e(format_date(t.get("transaction_date")))}</td><td>{_e(t.get("transaction_type"))}</td>'
        f'<td>{_e((t.get("asset") or {}).get("symbol") or t.get("symbol"))}</td>'
        f'<td class="num">{_e(t.get("quantity") if t.get("quantity") is not None else "")}</td>'
        f'<td class="num">{_e(format_currency(t.get("total_amount"), t.get("currency") or cur))}</td>'
        f'<td>{_delete_button("/transactions/" + quote(str(t.get("id", ""))) + "/delete?portfolio=" + pid)}</td></tr>'
        for t in txs.get("data") or []
    ) or '<tr><td colspan="6" class="hint">No transactions</td></tr>'
    page, pages = int(txs.get("page") or 1), int(txs.get("total_pages") or 1)
    pager = ""
    if page > 1:
        pager += f'<a href="/portfolios/{pid}?page={page - 1}" class="hint">&larr; Newer</a> '
    if page < pages:
        pager += f'<a href="/portfolios/{pid}?page={page + 1}" class="hint">Older &rarr;</a>'

    today = date.today().isoformat()
    stats = "".join([
        _stat("Value", _e(format_currency(totals.get("total_value", 0), cur))),
        _stat("Cost", _e(format_currency(totals.get("total_cost", 0), cur))),
        _stat("Gain/Loss", _e(format_currency(totals.get("gain", 0), cur)), change_color(totals.get("gain"))),
        _stat("Return", _e(format_percentage(totals.get("gain_pct", 0))), change_color(totals.get("gain_pct"))),
        _stat("Cash", _e(format_currency((data.get("cash") or {}).get("balance", 0), cur))),
    ])
    body = f"""<div class="page-title">{_e(p.get("name") or "Portfolio")}</div>
<div class="page-sub">{_e(p.get("type"))} · {_e(cur)} · <a href="/portfolios" class="hint">All portfolios</a></div>
<div class="grid">{stats}</div>
<div class="card"><div class="card-title">Holdings</div>
<table><thead><tr><th>Symbol</th><th>Name</th><th class="num">Qty</th><th class="num">Avg cost</th><th class="num">Price</th>
<th class="num">Value</th><th class="num">Gain/Loss</th><th></th></tr></thead><tbody>{holding_rows}</tbody></table>
<form method="post" action="/portfolios/{pid}/holdings" class="form-row" style="margin-top:12px;">
  <input name="symbol" placeholder="Symbol" required size="8">
  <input name="quantity" placeholder="Quantity" required size="8">
  <input name="average_cost" placeholder="Average cost" size="10">
  <input type="date" name="purchased_at" max="{today}">
  <button type="submit">Add holding</button>
</form></div>
<div class="card"><div class="card-title">Cash accounts</div>
<table><thead><tr><th>Account</th><th>Institution</th><th>Type</th><th class="num">Balance</th><th class="num">Rate</th></tr></thead>
<tbody>{cash_rows or '<tr><td colspan="5" class="hint">No cash accounts</td></tr>'}</tbody></table></div>
<div class="card"><div class="card-title">Transactions</div>
<table><thead><tr><th>Date</th><th>Type</th><th>Symbol</th><th class="num">Qty</th><th class="num">Amount</th><th></th></tr></thead>
<tbody>{tx_rows}</tbody></table><div style="margin-top:8px;">{pager}</div>
<form method="post" action="/portfolios/{pid}/transactions" class="form-row" style="margin-top:12px;">
  <select name="transaction_type"><option>BUY</option><option>SELL</option><option>DIVIDEND</option><option>INTEREST</option>
  <option>FEE</option><option>TRANSFER_IN</option><option>TRANSFER_OUT</option></select>
  <input name="symbol" placeholder="Symbol" size="8">
  <input name="quantity" placeholder="Qty" size="6">
  <input name="price" placeholder="Price" size="8">
  <input name="total_amount" placeholder="Total" size="8">
  <input type="date" name="transaction_date" value="{today}" max="{today}" required>
  <button type="submit">Add transaction</button>
</form></div>
<div class="card"><div class="card-title">Import transactions (CSV)</div>
<p class="hint" style="margin-bottom:8px;">Columns: transaction_date, symbol, transaction_type, quantity, price</p>
<form method="post" action="/portfolios/{pid}/import" enctype="multipart/form-data" class="form-row">
  <input type="file" name="file" accept=".csv" required>
  <select name="mode"><option value="append">Append</option><option value="replace">Replace all</option></select>
  <button type="submit">Upload</button>
</form></div>"""
    return render_layout(p.get("name") or "Portfolio", "portfolios", body, saved, data.get("error", ""),
                         demo_mode=demo_mode)


def render_holdings(data: dict, currency: str = "GBP", saved: str = "", demo_mode: bool = False) -> str:
    totals = data.get("totals") or {}
    selected = data.get("selected_portfolio") or ""
    options = '<option value="">All portfolios</option>' + "".join(
        f'<option value="{_e(p.get("id"))}"{" selected" if str(p.get("id")) == selected else ""}>{_e(p.get("name"))}</option>'
        for p in data.get("portfolios") or []
    )
    rows = "".join(
        f'<tr><td>{_e((h.get("asset") or {}).get("symbol"))}</td><td class="hint">{_e(h.get("portfolio_name"))}</td>'
        f'<td>{_e((h.get("asset") or {}).get("asset_type"))}</td>'
        f'<td class="num">{float(h.get("quantity") or 0):,.4g}</td>'
        f'<td class="num">{_e(format_currency(h.get("current_value"), currency))}</td>'
        f'<td class="num">{_money_change(h.get("gain_loss"), currency)}</td>'
        f'<td class="num">{_pct_change(h.get("gain_loss_pct"))}</td></tr>'
        for h in data.get("holdings") or []
    ) or '<tr><td colspan="7" class="hint">No holdings</td></tr>'
    by_type = ", ".join(f"{_e(k)}: {v}" for k, v in sorted((data.get("by_type") or {}).items()))
    cash = data.get("cash") or {}
    stats = "".join([
        _stat("Total value", _e(format_currency(totals.get("total_value", 0), currency))),
        _stat("Total cost", _e(format_currency(totals.get("total_cost", 0), currency))),
        _stat("Gain/Loss", _e(format_percentage(totals.get("gain_pct", 0))), change_color(totals.get("gain_pct"))),
        _stat("Cash", _e(format_currency(cash.get("balance", 0), currency))),
        _stat("Avg cash rate", _e(format_percentage(cash.get("avg_rate", 0), signed=False))),
    ])
    body = f"""<div class="page-title">Holdings</div>
<div class="page-sub">Every position across portfolios</div>
<form method="get" action="/holdings" class="form-row" style="margin-bottom:16px;">
<select name="portfolio" onchange="this.form.submit()">{options}</select></form>
<div class="grid">{stats}</div>
<div class="card"><div class="card-title">Positions <span class="hint">{by_type}</span></div>
<table><thead><tr><th>Symbol</th><th>Portfolio</th><th>Type</th><th class="num">Qty</th><th class="num">Value</th>
<th class="num">Gain/Loss</th><th class="num">%</th></tr></thead><tbody>{rows}</tbody></table></div>"""
    return render_layout("Holdings", "holdings", body, saved, data.get("error", ""), demo_mode=demo_mode)


# ── Charts ──

def _js_number(value) -> str:
    """Text JavaScript's String(v) gives for a number: 1025.0 -> "1025", 1e-05 -> "0.00001"."""
    v = float(value)
    if v.is_integer() and abs(v) < 1e21:
        return str(int(v))
    if 1e-6 <= abs(v) < 1e21:
        return format(Decimal(repr(v)), "f")
    mantissa, exponent = repr(v).split("e")
    return f"{mantissa}e{int(exponent):+d}"


def _chart_script(canvas_id: str, labels: list, datasets: list, axis: dict, currency: str) -> str:
    ticks = axis.get("ticks") or []
    step = ticks[1] - ticks[0] if len(ticks) > 1 else None
    config = {
        "type": "line",
        "data": {"labels": labels, "datasets": datasets},
        "options": {
            "responsive": True,
            "maintainAspectRatio": False,
            "interaction": {"mode": "index", "intersect": False},
            "plugins": {"legend": {"labels": {"color": "#94a3b8"}}},
            "scales": {
                "x": {"ticks": {"color": "#64748b", "maxTicksLimit": 10}, "grid": {"color": "rgba(255,255,255,0.04)"}},
                "y": {
                    "min": axis["domain"][0],
                    "max": axis["domain"][1],
                    "ticks": {"color": "#64748b", "stepSize": step},
                    "grid": {"color": "rgba(255,255,255,0.04)"},
                },
            },
        },
    }
    tick_labels = {_js_number(t): format_currency_compact(t, currency) for t in ticks}
    return f"""<script>
(function() {{
  var cfg = {_json(config)};
  var labels = {_json(tick_labels)};
  cfg.options.scales.y.ticks.callback = function(v) {{ return labels[String(v)] || v; }};
  new Chart(document.getElementById("{canvas_id}"), cfg);
}})();
</script>"""


def _date_label(d: str, period: str) -> str:
    if period in ("daily", "weekly"):
        return format_date(d, "%d %b")
    if period == "monthly":
        return format_date(d if len(d) > 7 else d + "-01", "%b %y")
    return d


def render_charts(data: dict, currency: str = "GBP", saved: str = "", demo_mode: bool = False) -> str:
    period = data.get("period", "daily")
    rows = data.get("rows") or []
    series = data.get("series") or []
    labels = [_date_label(r["date"], period) for r in rows]
    datasets = [
        {
            "label": "Total" if name == "total" else name,
            "data": [r.get(name) for r in rows],
            "borderColor": SERIES_COLORS[i % len(SERIES_COLORS)],
            "borderWidth": 3 if name == "total" else 1.5,
            "pointRadius": 0,
            "spanGaps": True,
        }
        for i, name in enumerate(series)
    ]
    period_buttons = "".join(
        f'<a href="/charts?period={p["value"]}&portfolio={quote(data.get("portfolio_id") or "")}" '
        f'class="nav-item{" active" if p["value"] == period else ""}" style="display:inline-block" '
        f'title="{_e(p["description"])}">{_e(p["label"])}</a>'
        for p in data.get("periods") or []
    )
    portfolio_options = '<option value="">All portfolios</option>' + "".join(
        f'<option value="{_e(p.get("id"))}"{" selected" if str(p.get("id")) == data.get("portfolio_id") else ""}>{_e(p.get("name"))}</option>'
        for p in data.get("portfolios") or []
    )

    perf = data.get("performance") or {}
    summary = ""
    if perf:
        summary = "".join([
            _stat("Start", _e(format_currency(perf.get("start_value", 0), currency))),
            _stat("End", _e(format_currency(perf.get("end_value", 0), currency))),
            _stat("Change", _e(format_currency(perf.get("change", 0), currency)), change_color(perf.get("change"))),
            _stat("Change %", _e(format_percentage(perf.get("change_pct", 0))), change_color(perf.get("change_pct"))),
        ])

    change_rows = ""
    for c in data.get("holding_changes") or []:
        h = c["holding"]
        asset = h.get("asset") or {}
        ccy = asset.get("currency") or currency
        change_rows += (
            f'<tr><td>{_e(asset.get("symbol"))}</td><td class="hint">{_e(h.get("portfolio_name"))}</td>'
            f'<td class="num">{_e(format_currency(c["start_price"], ccy))}</td>'
            f'<td class="num">{_e(format_currency(c["end_price"], ccy))}</td>'
            f'<td class="num">{_pct_change(c["price_change_pct"])}</td>'
            f'<td class="num">{_e(format_currency(c["end_value"], currency))}</td>'
            f'<td class="num">{_money_change(c["value_change"], currency)}</td></tr>'
        )
    if not change_rows:
        change_rows = '<tr><td colspan="7" class="hint">No holdings</td></tr>'

    chart = (
        '<div style="position:relative;height:320px;"><canvas id="perf-chart"></canvas></div>'
        + _chart_script("perf-chart", labels, datasets, data.get("axis") or {"domain": [0, 100], "ticks": []}, currency)
        if rows else '<p class="hint">No performance data for this range.</p>'
    )
    body = f"""<div class="page-title">Performance Charts</div>
<div class="page-sub">Track your portfolio performance over time</div>
<div class="card">
  <div class="form-row" style="margin-bottom:10px;">{period_buttons}</div>
  <form method="get" action="/charts" class="form-row">
    <input type="hidden" name="period" value="{_e(period)}">
    <select name="portfolio">{portfolio_options}</select>
    <input type="date" name="start" value="{_e(data.get("start"))}" min="{_e(data.get("min_start"))}" max="{_e(data.get("end"))}">
    <input type="date" name="end" value="{_e(data.get("end"))}" max="{_e(data.get("max_end"))}">
    <button type="submit" class="secondary">Apply</button>
  </form>
</div>
<div class="grid">{summary}</div>
<div class="card">{chart}</div>
<div class="card"><div class="card-title">Holdings over range</div>
<table><thead><tr><th>Symbol</th><th>Portfolio</th><th class="num">Start price</th><th class="num">Price</th>
<th class="num">Price %</th><th class="num">Value</th><th class="num">Value change</th></tr></thead><tbody>{change_rows}</tbody></table></div>"""
    head = '<script src="https://cdn.jsdelivr.net/npm/chart.js@4.4.0/dist/chart.umd.min.js"></script>'
    return render_layout("Charts", "charts", body, saved, data.get("error", ""), extra_head=head, demo_mode=demo_mode)


def render_prices(data: dict, saved: str = "", demo_mode: bool = False) -> str:
    d = data.get("details") or {}
    cur = d.get("currency") or "USD"
    history = data.get("history") or []
    labels = [format_date(p.get("date"), "%d %b") for p in history]
    datasets = [{
        "label": "Close",
        "data": [p.get("close") for p in history],
        "borderColor": SERIES_COLORS[0],
        "borderWidth": 2,
        "pointRadius": 0,
    }]
    periods = "".join(
        f'<a class="nav-item{" active" if p == data.get("period") else ""}" style="display:inline-block" '
        f'href="/prices/{quote(data.get("symbol", ""))}?period={p}">{p}</a>'
        for p in ("1mo", "3mo", "6mo", "1y", "5y")
    )
    chart = (
        '<div style="position:relative;height:300px;"><canvas id="price-chart"></canvas></div>'
        + _chart_script("price-chart", labels, datasets, data.get("axis"), cur)
        if history else '<p class="hint">No price history.</p>'
    )
    body = f"""<div class="page-title">{_e(data.get("symbol"))} <span class="hint">{_e(d.get("name"))}</span></div>
<div class="page-sub">{_e(d.get("exchange"))} · {_e(d.get("quote_type"))}</div>
<div class="grid">
{_stat("Price", _e(format_currency(d.get("price"), cur)))}
{_stat("Change", _e(format_currency(d.get("change"), cur)), change_color(d.get("change")))}
{_stat("Change %", _e(format_percentage(d.get("change_pct"))), change_color(d.get("change_pct")))}
</div>
<div class="card"><div class="form-row" style="margin-bottom:10px;">{periods}</div>{chart}</div>"""
    head = '<script src="https://cdn.jsdelivr.net/npm/chart.js@4.4.0/dist/chart.umd.min.js"></script>'
    return render_layout(data.get("symbol") or "Prices", "holdings", body, saved, data.get("error", ""),
                         extra_head=head, demo_mode=demo_mode)


# ── Household ──

def _person_name(person: dict) -> str:
    """'First Last' from a person record, falling back to a flat person_name or the id."""
    full = " ".join(x for x in (person.get("first_name"), person.get("last_name")) if x)
    return full or person.get("person_name") or person.get("name") or str(person.get("person_id") or "")


def _people_options(people: list) -> str:
    return '<option value="">Choose person</option>' + "".join(
        f'<option value="{_e(p.get("id"))}">{_e(_person_name(p))}</option>' for p in people
    )


COVERAGE_TYPES = (("PRIMARY", "Primary"), ("NAMED", "Named"), ("DEPENDENT", "Dependent"))
OWNERSHIP_TYPES = (("SOLE", "Sole Owner"), ("JOINT_TENANTS", "Joint Tenants"), ("TENANTS_IN_COMMON", "Tenants in Common"))


def render_insurance(data: dict, currency: str = "GBP", saved: str = "", demo_mode: bool = False) -> str:
    people_options = _people_options(data.get("people") or [])
    coverage_options = "".join(f'<option value="{v}">{label}</option>' for v, label in COVERAGE_TYPES)
    rows = ""
    for p in data.get("policies") or []:
        ccy = p.get("currency") or currency
        policy_path = "/insurance/" + quote(str(p.get("id", "")))
        covered = ""
        for cp in p.get("covered_people") or []:
            kind = f' <span class="hint">({_e(str(cp["coverage_type"]).lower())})</span>' if cp.get("coverage_type") else ""
            remove = _delete_button(policy_path + "/covered/" + quote(str(cp.get("person_id", ""))) + "/delete",
                                    "Remove this person from the policy?")
            covered += f'<span class="badge">{_e(_person_name(cp.get("person") or cp))}{kind} {remove}</span> '
        if not covered:
            covered = '<span class="hint">Nobody covered yet</span>'
        rows += (
            f'<tr><td>{_e(p.get("policy_name"))}</td><td>{_e(p.get("policy_type"))}</td><td>{_e(p.get("provider"))}</td>'
            f'<td class="num">{_e(format_currency(p.get("premium_amount"), ccy))} <span class="hint">{_e(p.get("premium_frequency"))}</span></td>'
            f'<td class="num">{_e(format_currency(p.get("_annual"), ccy))}</td>'
            f'<td class="num">{_e(format_currency_compact(p.get("cover_amount") or 0, ccy))}</td>'
            f'<td>{_e(format_date(p.get("renewal_date")))} {_badge(p.get("_badge"))}</td>'
            f'<td>{_delete_button(policy_path + "/delete", "Delete this policy?")}</td></tr>'
            f'<tr><td colspan="8"><span class="hint">Covered:</span> {covered}'
            f'<form method="post" action="{_e(policy_path)}/covered" class="inline">'
            f'<select name="person_id">{people_options}</select> <select name="coverage_type">{coverage_options}</select> '
            f'<button type="submit">Add</button></form></td></tr>'
        )
    if not rows:
        rows = '<tr><td colspan="8" class="hint">No policies</td></tr>'
    policy_types = "".join(
        f'<option value="{t}">{t.replace("_", " ").title()}</option>'
        for t in ("home", "contents", "buildings", "car", "life", "health", "travel", "pet", "income_protection", "other")
    )
    body = f"""<div class="page-title">Insurance</div>
<div class="page-sub">Policies, premiums and renewals</div>
<div class="grid">{_stat("Annual premiums", _e(format_currency(data.get("annual_total", 0), currency)))}
{_stat("Policies", str(len(data.get("policies") or [])))}</div>
<div class="card"><table><thead><tr><th>Policy</th><th>Type</th><th>Provider</th><th class="num">Premium</th>
<th class="num">Annual</th><th class="num">Cover</th><th>Renewal</th><th></th></tr></thead><tbody>{rows}</tbody></table></div>
<div class="card"><div class="card-title">Add policy</div>
<form method="post" action="/insurance" class="form-row">
  <input name="policy_name" placeholder="Policy name" required>
  <select name="policy_type">{policy_types}</select>
  <input name="provider" placeholder="Provider">
  <input name="premium_amount" placeholder="Premium" size="8">
  <select name="premium_frequency"><option value="monthly">Monthly</option><option value="quarterly">Quarterly</option>
  <option value="annually">Annually</option></select>
  <input name="cover_amount" placeholder="Cover" size="10">
  <label class="hint">Renews <input type="date" name="renewal_date"></label>
  <button type="submit">Add</button>
</form></div>"""
    return render_layout("Insurance", "insurance", body, saved, data.get("error", ""), demo_mode=demo_mode)


def render_properties(data: dict, currency: str = "GBP", saved: str = "", demo_mode: bool = False) -> str:
    people_options = _people_options(data.get("people") or [])
    ownership_options = "".join(f'<option value="{v}">{label}</option>' for v, label in OWNERSHIP_TYPES)
    cards = ""
    for p in data.get("properties") or []:
        ccy = p.get("currency") or currency
        prop_path = "/properties/" + quote(str(p.get("id", "")))
        owners = "".join(
            f'<li>{_e(_person_name(o.get("person") or o))} '
            f'<span class="hint">({_e(o.get("ownership_percentage"))}%)</span> '
            f'{_delete_button(prop_path + "/owners/" + quote(str(o.get("person_id", ""))) + "/delete", "Remove this owner?")}</li>'
            for o in p.get("owners") or []
        )
        owner_block = (
            f'<ul style="margin:6px 0 0 18px;">{owners}</ul>'
            f'<p class="hint">Total ownership: {p.get("_ownership_total", 0):g}%</p>' if owners else ""
        )
        equity = p.get("_equity")
        address = ", ".join(x for x in (p.get("address_line1"), p.get("city"), p.get("postcode")) if x)
        cards += f"""<div class="card">
  <div class="card-title">{_e(p.get("name"))} <span class="hint">{_e(p.get("property_type"))}</span>
  <span style="float:right">{_delete_button(prop_path + "/delete", "Delete this property?")}</span></div>
  <p class="hint">{_e(address)}</p>
  <table><tr><td>Value</td><td class="num">{_e(format_currency(p.get("current_value"), ccy))}</td></tr>
  <tr><td>Mortgage</td><td class="num">{_e(format_currency(p.get("mortgage_balance"), ccy))}</td></tr>
  <tr><td>Equity</td><td class="num" style="color:{change_color(equity)}">{_e(format_currency(equity, ccy))}</td></tr></table>
  {owner_block}
  <form method="post" action="{_e(prop_path)}/owners" class="form-row" style="margin-top:8px;">
    <select name="person_id">{people_options}</select>
    <input name="ownership_percentage" placeholder="%" size="4" value="100">
    <select name="ownership_type">{ownership_options}</select>
    <button type="submit">Add owner</button>
  </form>
</div>"""
    if not cards:
        cards = '<div class="card hint">No properties</div>'
    body = f"""<div class="page-title">Properties</div>
<div class="page-sub">Homes, rentals and mortgages</div>
<div class="grid">{_stat("Total value", _e(format_currency(data.get("total_value", 0), currency)))}
{_stat("Total equity", _e(format_currency(data.get("total_equity", 0), currency)))}</div>
<div class="grid" style="grid-template-columns:repeat(auto-fit, minmax(320px, 1fr));">{cards}</div>
<div class="card"><div class="card-title">Add property</div>
<form method="post" action="/properties" class="form-row">
  <input name="name" placeholder="Name" required>
  <select name="property_type"><option value="house">House</option><option value="flat">Flat</option>
  <option value="land">Land</option><option value="commercial">Commercial</option><option value="other">Other</option></select>
  <input name="address_line1" placeholder="Address">
  <input name="postcode" placeholder="Postcode" size="8">
  <input name="current_value" placeholder="Current value" size="10">
  <input name="mortgage_balance" placeholder="Mortgage balance" size="10">
  <button type="submit">Add</button>
</form></div>"""
    return render_layout("Properties", "properties", body, saved, data.get("error", ""), demo_mode=demo_mode)


def render_pets(data: dict, saved: str = "", demo_mode: bool = False) -> str:
    policies = {str(p.get("id")): p.get("policy_name") for p in data.get("policies") or []}
    rows = "".join(
        f'<tr><td>{_e(p.get("name"))}</td><td>{_e(p.get("pet_type"))}</td><td>{_e(p.get("breed"))}</td>'
        f'<td>{_e(p.get("_age"))}</td><td>{_e(p.get("vet_name"))}</td>'
        f'<td class="hint">{_e(policies.get(str(p.get("insurance_policy_id")), ""))}</td>'
        f'<td>{_delete_button("/pets/" + quote(str(p.get("id", ""))) + "/delete", "Delete this pet?")}</td></tr>'
        for p in data.get("pets") or []
    ) or '<tr><td colspan="7" class="hint">No pets yet</td></tr>'
    policy_options = '<option value="">No insurance</option>' + "".join(
        f'<option value="{_e(pid)}">{_e(name)}</option>' for pid, name in policies.items()
    )
    body = f"""<div class="page-title">Pets</div>
<div class="page-sub">Manage your furry, feathered, and scaly family members</div>
<div class="card"><table><thead><tr><th>Name</th><th>Type</th><th>Breed</th><th>Age</th><th>Vet</th><th>Insurance</th><th></th></tr></thead>
<tbody>{rows}</tbody></table></div>
<div class="card"><div class="card-title">Add pet</div>
<form method="post" action="/pets" class="form-row">
  <input name="name" placeholder="Name" required>
  <select name="pet_type"><option value="dog">Dog</option><option value="cat">Cat</option><option value="bird">Bird</option>
  <option value="fish">Fish</option><option value="rabbit">Rabbit</option><option value="reptile">Reptile</option><option value="other">Other</option></select>
  <input name="breed" placeholder="Breed">
  <label class="hint">Born <input type="date" name="date_of_birth" max="{date.today().isoformat()}"></label>
  <input name="vet_name" placeholder="Vet">
  <select name="insurance_policy_id">{policy_options}</select>
  <button type="submit">Add</button>
</form></div>"""
    return render_layout("Pets", "pets", body, saved, data.get("error", ""), demo_mode=demo_mode)


def render_bills(data: dict, currency: str = "GBP", saved: str = "", demo_mode: bool = False) -> str:
    mode = data.get("filter", "active")
    filters = "".join(
        f'<a class="nav-item{" active" if m == mode else ""}" style="display:inline-block" href="/bills?filter={m}">{m.title()}</a>'
        for m in ("active", "overdue", "all")
    )
    rows = ""
    for b in data.get("bills") or []:
        bid = quote(str(b.get("id", "")))
        ccy = b.get("currency") or currency
        rows += (
            f'<tr><td>{_e(b.get("name"))}</td><td>{_e(b.get("category"))}</td><td>{_e(b.get("provider"))}</td>'
            f'<td class="num">{_e(format_currency(b.get("amount"), ccy))}</td><td>{_e(b.get("frequency"))}</td>'
            f'<td class="num">{_e(format_currency(b.get("_monthly"), ccy))}</td>'
            f'<td>{_e(format_date(b.get("next_due_date")))} {_badge(b.get("_badge"))}</td>'
            f'<td><form class="inline" method="post" action="/bills/{bid}/pay"><button type="submit" class="secondary">Paid</button></form> '
            f'{_delete_button(f"/bills/{bid}/delete", "Are you sure you want to delete this bill?")}</td></tr>'
        )
    if not rows:
        rows = '<tr><td colspan="8" class="hint">No bills</td></tr>'
    frequencies = "".join(
        f'<option value="{f}"{" selected" if f == "monthly" else ""}>{f.replace("_", " ").title()}</option>'
        for f in ("weekly", "fortnightly", "monthly", "quarterly", "annually", "one_time")
    )
    body = f"""<div class="page-title">Bills</div>
<div class="page-sub">Track and manage recurring bills</div>
<div class="grid">{_stat("Monthly total", _e(format_currency(data.get("monthly_total", 0), currency)))}
{_stat("Overdue", str(data.get("overdue_count", 0)), "var(--danger)" if data.get("overdue_count") else "")}</div>
<div class="form-row" style="margin-bottom:12px;">{filters}</div>
<div class="card"><table><thead><tr><th>Name</th><th>Category</th><th>Provider</th><th class="num">Amount</th><th>Frequency</th>
<th class="num">Monthly</th><th>Next due</th><th></th></tr></thead><tbody>{rows}</tbody></table></div>
<div class="card"><div class="card-title">Add bill</div>
<form method="post" action="/bills" class="form-row">
  <input name="name" placeholder="Name" required>
  <select name="category"><option value="utilities">Utilities</option><option value="housing">Housing</option>
  <option value="insurance">Insurance</option><option value="tax">Tax</option><option value="other">Other</option></select>
  <input name="amount" placeholder="Amount" size="8" required>
  <select name="frequency">{frequencies}</select>
  <input name="provider" placeholder="Provider">
  <input name="due_day" placeholder="Due day" size="4">
  <button type="submit">Add</button>
</form></div>"""
    return render_layout("Bills", "bills", body, saved, data.get("error", ""), demo_mode=demo_mode)


def render_maintenance(data: dict, currency: str = "GBP", saved: str = "", demo_mode: bool = False) -> str:
    today = date.today().isoformat()
    rows = ""
    for t in data.get("tasks") or []:
        tid = quote(str(t.get("id", "")))
        rows += (
            f'<tr><td>{_e(t.get("name"))}</td><td>{_e(t.get("category"))}</td><td>{_e(t.get("priority"))}</td>'
            f'<td>{_e(t.get("frequency"))}</td><td>{_e(format_date(t.get("last_completed_date")))}</td>'
            f'<td>{_e(format_date(t.get("next_due_date")))} {_badge(t.get("_badge"))}</td>'
            f'<td class="num">{_e(format_currency(t.get("estimated_cost"), currency)) if t.get("estimated_cost") is not None else ""}</td>'
            f'<td><form class="inline form-row" method="post" action="/maintenance/{tid}/complete">'
            f'<input type="date" name="completed_date" value="{today}" max="{today}">'
            f'<input name="cost" placeholder="Cost" size="6"><button type="submit" class="secondary">Done</button></form> '
            f'{_delete_button(f"/maintenance/{tid}/delete", "Delete this task?")}</td></tr>'
        )
    if not rows:
        rows = '<tr><td colspan="8" class="hint">No maintenance tasks</td></tr>'
    logs = "".join(
        f'<tr><td>{_e(format_date(lg.get("completed_date")))}</td><td>{_e(lg.get("task_name"))}</td>'
        f'<td>{_e(lg.get("provider"))}</td>'
        f'<td class="num">{_e(format_currency(lg.get("cost"), lg.get("currency") or currency)) if lg.get("cost") is not None else ""}</td></tr>'
        for lg in data.get("logs") or []
    ) or '<tr><td colspan="4" class="hint">Nothing logged yet</td></tr>'
    toggle = (
        '<a href="/maintenance" class="hint">Show active only</a>' if data.get("show_all")
        else '<a href="/maintenance?all=1" class="hint">Show all</a>'
    )
    body = f"""<div class="page-title">Maintenance</div>
<div class="page-sub">Recurring jobs around the house · {toggle}</div>
<div class="grid">{_stat("Tasks", str(len(data.get("tasks") or [])))}
{_stat("Overdue", str(data.get("overdue_count", 0)), "var(--danger)" if data.get("overdue_count") else "")}</div>
<div class="card"><table><thead><tr><th>Task</th><th>Category</th><th>Priority</th><th>Frequency</th><th>Last done</th>
<th>Next due</th><th class="num">Est. cost</th><th></th></tr></thead><tbody>{rows}</tbody></table></div>
<div class="card"><div class="card-title">Add task</div>
<form method="post" action="/maintenance" class="form-row">
  <input name="name" placeholder="Task" required>
  <select name="category"><option value="hvac">HVAC</option><option value="plumbing">Plumbing</option>
  <option value="electrical">Electrical</option><option value="exterior">Exterior</option><option value="garden">Garden</option>
  <option value="appliances">Appliances</option><option value="other">Other</option></select>
  <select name="priority"><option value="low">Low</option><option value="medium" selected>Medium</option><option value="high">High</option></select>
  <input name="frequency_months" placeholder="Every N months" size="6">
  <label class="hint">Next due <input type="date" name="next_due_date"></label>
  <input name="estimated_cost" placeholder="Est. cost" size="8">
  <button type="submit">Add</button>
</form></div>
<div class="card"><div class="card-title">Recent work</div><table><tbody>{logs}</tbody></table></div>"""
    return render_layout("Maintenance", "maintenance", body, saved, data.get("error", ""), demo_mode=demo_mode)


# ── Hobbies ──

def render_recipes(data: dict, saved: str = "", demo_mode: bool = False) -> str:
    cards = ""
    for r in data.get("recipes") or []:
        rid = quote(str(r.get("id", "")))
        total_time = (r.get("prep_time_minutes") or 0) + (r.get("cook_time_minutes") or 0)
        star = "★" if r.get("is_favourite") else "☆"
        cards += f"""<div class="card">
  <div class="card-title">{_e(r.get("title") or r.get("name"))}
  <form class="inline" method="post" action="/recipes/{rid}/favourite"><button type="submit" class="secondary" title="Favourite">{star}</button></form></div>
  <p class="hint">{_e(r.get("cuisine"))} {f"· {total_time} min" if total_time else ""} {f"· serves {_e(r.get('servings'))}" if r.get("servings") else ""}</p>
  <p class="hint">Cooked {int(r.get("times_cooked") or 0)} times{f" · last {_e(format_date(r.get('last_cooked_at')))}" if r.get("last_cooked_at") else ""}</p>
  <div class="form-row" style="margin-top:8px;">
  <form class="inline" method="post" action="/recipes/{rid}/cook"><button type="submit" class="secondary">Cooked it</button></form>
  {_delete_button(f"/recipes/{rid}/delete", "Delete this recipe?")}
  {f'<a class="hint" href="{_e(r.get("source_url"))}" target="_blank" rel="noopener">Source</a>' if r.get("source_url") else ""}
  </div>
</div>"""
    if not cards:
        cards = '<div class="card hint">No recipes found</div>'
    fav_checked = " checked" if data.get("favourites_only") else ""
    body = f"""<div class="page-title">Recipes</div>
<div class="page-sub">Your cookbook</div>
<form method="get" action="/recipes" class="form-row" style="margin-bottom:16px;">
  <input name="search" placeholder="Search recipes" value="{_e(data.get("search"))}">
  <label class="hint"><input type="checkbox" name="favourites" value="1"{fav_checked}> Favourites</label>
  <button type="submit" class="secondary">Search</button>
</form>
<div class="grid" style="grid-template-columns:repeat(auto-fit, minmax(280px, 1fr));">{cards}</div>
<div class="card"><div class="card-title">Import from URL</div>
<form method="post" action="/recipes/import" class="form-row">
  <input name="url" type="url" placeholder="https://..." size="50" required><button type="submit">Import</button>
</form></div>
<div class="card"><div class="card-title">Add recipe</div>
<form method="post" action="/recipes" class="form-row">
  <input name="title" placeholder="Title" required>
  <input name="cuisine" placeholder="Cuisine">
  <input name="servings" placeholder="Servings" size="4">
  <input name="prep_time_minutes" placeholder="Prep min" size="5">
  <input name="cook_time_minutes" placeholder="Cook min" size="5">
  <button type="submit">Add</button>
</form></div>"""
    return render_layout("Recipes", "recipes", body, saved, data.get("error", ""), demo_mode=demo_mode)


def render_reading(data: dict, saved: str = "", demo_mode: bool = False) -> str:
    rows = ""
    for b in data.get("books") or []:
        pct = b.get("_progress", 0)
        progress = (
            f'<span class="progress"><span style="width:{pct}%"></span></span> <span class="hint">{pct}%</span>'
            if b.get("page_count") and (b.get("current_page") or 0) > 0 else ""
        )
        authors = b.get("authors")
        if isinstance(authors, list):
            authors = ", ".join(authors)
        rows += (
            f'<tr><td>{_e(b.get("title"))}</td><td class="hint">{_e(authors or b.get("author"))}</td>'
            f'<td class="num">{_e(b.get("page_count") or "")}</td><td>{_e(b.get("status") or "")}</td><td>{progress}</td>'
            f'<td>{_delete_button("/reading/books/" + quote(str(b.get("id", ""))) + "/delete", "Remove this book?")}</td></tr>'
        )
    if not rows:
        rows = '<tr><td colspan="6" class="hint">Your library is empty</td></tr>'
    lists = "".join(
        f'<li>{_e(rl.get("name"))} <span class="hint">({int(rl.get("book_count") or 0)} books)</span></li>'
        for rl in data.get("lists") or []
    ) or '<li class="hint">No reading lists</li>'
    body = f"""<div class="page-title">Reading</div>
<div class="page-sub">Library and reading lists</div>
<form method="get" action="/reading" class="form-row" style="margin-bottom:16px;">
  <input name="search" placeholder="Search library" value="{_e(data.get("search"))}"><button type="submit" class="secondary">Search</button>
</form>
<div class="card"><table><thead><tr><th>Title</th><th>Author</th><th class="num">Pages</th><th>Status</th><th>Progress</th><th></th></tr></thead>
<tbody>{rows}</tbody></table></div>
<div class="grid" style="grid-template-columns:repeat(auto-fit, minmax(320px, 1fr));">
<div class="card"><div class="card-title">Reading lists</div><ul style="margin-left:18px;">{lists}</ul></div>
<div class="card"><div class="card-title">Add book</div>
<form method="post" action="/reading/books" class="form-row">
  <input name="title" placeholder="Title" required><input name="author" placeholder="Author">
  <input name="isbn" placeholder="ISBN" size="14"><input name="page_count" placeholder="Pages" size="5">
  <button type="submit">Add</button>
</form></div>
<div class="card"><div class="card-title">Import from Goodreads</div>
<form method="post" action="/reading/import" enctype="multipart/form-data" class="form-row">
  <input type="file" name="file" accept=".csv" required><button type="submit">Upload</button>
</form></div>
</div>"""
    return render_layout("Reading", "reading", body, saved, data.get("error", ""), demo_mode=demo_mode)


def render_snippets(data: dict, saved: str = "", demo_mode: bool = False) -> str:
    lang_options = '<option value="">All languages</option>' + "".join(
        f'<option value="{_e(lang)}"{" selected" if lang == data.get("language") else ""}>{_e(lang)}</option>'
        for lang in data.get("languages") or []
    )
    cards = "".join(
        f"""<div class="card"><div class="card-title">{_e(s.get("title"))} <span class="hint">{_e(s.get("language"))}</span>
<span style="float:right">{_delete_button(f"/snippets/{quote(str(s.get('id', '')))}/delete", "Delete this snippet?")}</span></div>
<p class="hint">{_e(s.get("description"))}</p><pre><code>{_e(s.get("code"))}</code></pre></div>"""
        for s in data.get("snippets") or []
    ) or '<div class="card hint">No snippets</div>'
    body = f"""<div class="page-title">Code Snippets</div>
<div class="page-sub">Reusable bits of code</div>
<form method="get" action="/snippets" class="form-row" style="margin-bottom:16px;">
  <select name="language">{lang_options}</select>
  <input name="search" placeholder="Search" value="{_e(data.get("search"))}">
  <button type="submit" class="secondary">Filter</button>
</form>
{cards}
<div class="card"><div class="card-title">Add snippet</div>
<form method="post" action="/snippets">
  <div class="form-row" style="margin-bottom:8px;"><input name="title" placeholder="Title" required>
  <input name="language" placeholder="Language" size="10"><input name="description" placeholder="Description" size="40"></div>
  <textarea name="code" rows="6" style="width:100%;font-family:var(--mono);" required></textarea>
  <div style="margin-top:8px;"><button type="submit">Add</button></div>
</form></div>"""
    return render_layout("Snippets", "snippets", body, saved, data.get("error", ""), demo_mode=demo_mode)


# ── Reports ──

def render_reports(data: dict, currency: str = "GBP", saved: str = "", demo_mode: bool = False) -> str:
    nw = data.get("net_worth") or {}
    cur = nw.get("currency") or currency

    def _rows(items, value_key="value"):
        return "".join(
            f'<tr><td>{_e(i.get("name") or i.get("category") or i.get("label"))}</td>'
            f'<td class="num">{_e(format_currency(i.get(value_key, 0), cur))}</td>'
            f'<td class="num">{float(i.get("percentage") or 0):.1f}%</td></tr>'
            for i in items or []
        ) or '<tr><td colspan="3" class="hint">No data</td></tr>'

    assets = nw.get("assets") or nw.get("breakdown") or []
    liabilities = nw.get("liabilities") or []

    coverage = data.get("coverage") or {}
    cov_rows = "".join(
        f'<tr><td>{_e(c.get("policy_type") or c.get("type"))}</td><td class="num">{int(c.get("count") or c.get("policy_count") or 0)}</td>'
        f'<td class="num">{_e(format_currency_compact(c.get("total_cover") or c.get("cover_amount") or 0, cur))}</td>'
        f'<td class="num">{_e(format_currency(c.get("annual_premium") or c.get("total_premium") or 0, cur))}</td></tr>'
        for c in coverage.get("by_type") or coverage.get("policies") or []
    ) or '<tr><td colspan="4" class="hint">No policies</td></tr>'
    gaps = "".join(f"<li>{_e(g)}</li>" for g in coverage.get("gaps") or [])

    allocation = data.get("allocation") or {}
    alloc_items = allocation.get("by_type") or allocation.get("allocations") or []

    events = (data.get("events") or {}).get("events") or []
    event_rows = "".join(
        f'<tr><td>{_e(format_date(ev.get("date")))}</td><td>{_e(ev.get("title") or ev.get("name"))}</td>'
        f'<td class="hint">{_e(ev.get("type") or ev.get("event_type"))}</td>'
        f'<td class="num">{_e(format_currency(ev.get("amount"), cur)) if ev.get("amount") is not None else ""}</td></tr>'
        for ev in events
    ) or '<tr><td colspan="4" class="hint">Nothing coming up</td></tr>'

    body = f"""<div class="page-title">Reports</div>
<div class="page-sub">Household-wide breakdowns</div>
<div class="grid">{_stat("Net worth", _e(format_currency(nw.get("net_worth", nw.get("total_net_worth", 0)), cur)))}
{_stat("Total assets", _e(format_currency_compact(nw.get("total_assets", 0), cur)))}
{_stat("Total liabilities", _e(format_currency_compact(nw.get("total_liabilities", 0), cur)))}</div>
<div class="grid" style="grid-template-columns:repeat(auto-fit, minmax(380px, 1fr));">
<div class="card"><div class="card-title">Assets</div><table><tbody>{_rows(assets)}</tbody></table></div>
<div class="card"><div class="card-title">Liabilities</div><table><tbody>{_rows(liabilities)}</tbody></table></div>
<div class="card"><div class="card-title">Asset allocation</div><table><tbody>{_rows(alloc_items)}</tbody></table></div>
<div class="card"><div class="card-title">Insurance coverage</div>
<table><thead><tr><th>Type</th><th class="num">Policies</th><th class="num">Cover</th><th class="num">Premium/yr</th></tr></thead>
<tbody>{cov_rows}</tbody></table>{f'<ul style="margin:8px 0 0 18px;color:var(--warning)">{gaps}</ul>' if gaps else ""}</div>
</div>
<div class="card"><div class="card-title">Upcoming events</div><table><tbody>{event_rows}</tbody></table></div>"""
    return render_layout("Reports", "reports", body, saved, data.get("error", ""), demo_mode=demo_mode)
