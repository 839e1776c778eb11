"""Flask route handlers for the Home Ledger dashboard (Blueprint)."""

import io
import os
import tempfile
from datetime import date, datetime
from pathlib import Path
from urllib.parse import quote

from flask import Blueprint, redirect, request, session

from hub_api import ApiError, AuthError

bp = Blueprint("main", __name__)

# Module-level references, set by init_routes()
CONFIG_PATH = None
BASE = None
AUTH_PIN = ""
DEMO_MODE = False
_deps = {}  # all other dependencies

MAX_TICK_COUNT = 50


def init_routes(config):
    """Inject dependencies from main(). Call before registering blueprint."""
    global CONFIG_PATH, BASE, AUTH_PIN, DEMO_MODE
    CONFIG_PATH = config["CONFIG_PATH"]
    BASE = config["BASE"]
    AUTH_PIN = config.get("AUTH_PIN", "")
    DEMO_MODE = config.get("DEMO_MODE", False)
    _deps.update(config)


# ── Accessor helpers for injected dependencies ──
def settings() -> dict:
    return _deps["settings"]


def currency() -> str:
    return settings().get("base_currency") or "GBP"


def get_hub():
    """API wrappers for this request; the signed-in user's token wins over the configured one."""
    return _deps["make_hub"](settings(), session.get("token"))


def append_history_log(action, details=""):
    return _deps["append_history_log"](action, details)


def _page(render, data, **kwargs):
    return render(data, saved=request.args.get("saved", ""), demo_mode=DEMO_MODE, **kwargs)


def _back(path: str, message: str):
    sep = "&" if "?" in path else "?"
    return redirect(f"{path}{sep}saved={quote(message)}")


def _form_fields(names, numeric=()) -> dict:
    """Non-empty form values; numeric ones parsed to float (commas stripped)."""
    data = {}
    for name in names:
        raw = request.form.get(name, "").strip()
        if not raw:
            continue
        if name in numeric:
            try:
                data[name] = float(raw.replace(",", ""))
            except ValueError:
                raise ValueError(f"{name.replace('_', ' ').capitalize()} must be a number")
        else:
            data[name] = raw
    return data


def _write(path: str, label: str, action, log_details: str = ""):
    """Run a backend write, log it to History and redirect back with a banner."""
    try:
        action()
    except AuthError:
        raise
    except ValueError as e:
        return _back(path, str(e))
    except ApiError as e:
        print(f"[{label}] Save failed: {e}")
        return _back(path, f"Save failed: {e.message}")
    append_history_log(label, log_details)
    return _back(path, label)


# Demo mode: block all write operations
@bp.before_request
def check_demo_mode():
    from flask import jsonify
    if not DEMO_MODE:
        return
    if request.method in ("GET", "HEAD", "OPTIONS"):
        return
    if request.path in ("/login", "/logout"):
        return
    if request.is_json or request.path.startswith("/api/"):
        return jsonify({"success": False, "error": "Demo mode: changes are disabled."}), 403
    return redirect("/?saved=Demo+mode%3A+changes+are+disabled")


def _needs_backend_login() -> bool:
    return not settings().get("api_token") and not session.get("token")


# PIN gate, then backend sign-in when no API token is configured
@bp.before_request
def check_auth():
    from flask import jsonify
    if request.path in ("/login", "/logout") or request.path.startswith("/static"):
        return
    if AUTH_PIN and not session.get("authenticated"):
        if request.path.startswith("/api/"):
            return jsonify({"success": False, "error": "Not signed in"}), 401
        return render_login_page()
    if _needs_backend_login():
        if request.path.startswith("/api/"):
            return
        return redirect("/login")


@bp.errorhandler(AuthError)
def handle_auth_error(e):
    print(f"[Auth] Session rejected by the server: {e}")
    session.pop("token", None)
    session.pop("user", None)
    return redirect("/login")


def render_login_page(error=""):
    return _deps["render_login_page"](
        error=error,
        pin_required=bool(AUTH_PIN) and not session.get("authenticated"),
        backend_login=not settings().get("api_token"),
    )


@bp.route("/login", methods=["GET", "POST"])
def login():
    if request.method == "GET":
        return render_login_page()
    if AUTH_PIN and not session.get("authenticated"):
        if request.form.get("pin", "") != AUTH_PIN:
            return render_login_page(error="Incorrect PIN")
        session["authenticated"] = True
    if not settings().get("api_token"):
        email = request.form.get("email", "").strip()
        password = request.form.get("password", "")
        if not email or not password:
            return render_login_page(error="Email and password are required")
        hub = _deps["make_hub"](settings(), None)
        try:
            result = hub.auth.login(email, password) or {}
        except AuthError:
            return render_login_page(error="Invalid email or password")
        except ApiError as e:
            print(f"[Auth] Login failed: {e}")
            return render_login_page(error=f"Sign-in failed: {e.message}")
        tokens = result.get("tokens") or result
        session["token"] = tokens.get("access_token", "")
        session["user"] = (result.get("user") or {}).get("email", email)
        append_history_log("Signed in", session["user"])
    return redirect("/")


@bp.route("/logout")
def logout():
    if session.get("token"):
        try:
            get_hub().auth.logout()
        except ApiError as e:
            print(f"[Auth] Logout call failed: {e}")
    session.clear()
    return redirect("/login")


# ── Pages ──

@bp.route("/")
def index():
    data = _deps["get_overview_data"](get_hub())
    return _page(_deps["render_overview"], data)


@bp.route("/portfolios")
def portfolios():
    data = _deps["get_portfolios_data"](get_hub())
    return _page(_deps["render_portfolios"], data)


@bp.route("/portfolios/<portfolio_id>")
def portfolio_detail(portfolio_id):
    page = request.args.get("page", 1, type=int)
    data = _deps["get_portfolio_detail_data"](get_hub(), portfolio_id, max(page, 1))
    return _page(_deps["render_portfolio_detail"], data)


@bp.route("/holdings")
def holdings():
    data = _deps["get_holdings_data"](get_hub(), request.args.get("portfolio", ""))
    return _page(_deps["render_holdings"], data, currency=currency())


@bp.route("/charts")
def charts():
    data = _deps["get_charts_data"](
        get_hub(),
        period=request.args.get("period", "daily"),
        portfolio_id=request.args.get("portfolio", ""),
        start=request.args.get("start") or None,
        end=request.args.get("end") or None,
    )
    return _page(_deps["render_charts"], data, currency=currency())


@bp.route("/prices/<symbol>")
def prices(symbol):
    data = _deps["get_price_data"](get_hub(), symbol, request.args.get("period", "1mo"))
    return _page(_deps["render_prices"], data)


@bp.route("/insurance")
def insurance():
    warn = int(settings().get("renewal_warning_days") or 30)
    data = _deps["get_insurance_data"](get_hub(), warn)
    return _page(_deps["render_insurance"], data, currency=currency())


@bp.route("/properties")
def properties():
    data = _deps["get_properties_data"](get_hub())
    return _page(_deps["render_properties"], data, currency=currency())


@bp.route("/pets")
def pets():
    data = _deps["get_pets_data"](get_hub())
    return _page(_deps["render_pets"], data)


@bp.route("/bills")
def bills():
    mode = request.args.get("filter", "active")
    if mode not in ("active", "overdue", "all"):
        mode = "active"
    data = _deps["get_bills_data"](get_hub(), mode)
    return _page(_deps["render_bills"], data, currency=currency())


@bp.route("/maintenance")
def maintenance():
    data = _deps["get_maintenance_data"](get_hub(), show_all=request.args.get("all") == "1")
    return _page(_deps["render_maintenance"], data, currency=currency())


@bp.route("/recipes")
def recipes():
    data = _deps["get_recipes_data"](
        get_hub(), request.args.get("search", "").strip(), request.args.get("favourites") == "1")
    return _page(_deps["render_recipes"], data)


@bp.route("/reading")
def reading():
    data = _deps["get_reading_data"](get_hub(), request.args.get("search", "").strip())
    return _page(_deps["render_reading"], data)


@bp.route("/snippets")
def snippets():
    data = _deps["get_snippets_data"](
        get_hub(), request.args.get("language", ""), request.args.get("search", "").strip())
    return _page(_deps["render_snippets"], data)


@bp.route("/reports")
def reports():
    data = _deps["get_reports_data"](get_hub())
    return _page(_deps["render_reports"], data, currency=currency())


@bp.route("/export")
def export():
    """Download the current snapshot as an Excel workbook."""
    from flask import send_file
    snapshot = _deps["get_export_snapshot"](get_hub())
    name = f"home_ledger_{datetime.now().strftime('%Y%m%d')}.xlsx"
    with tempfile.TemporaryDirectory(prefix="home_ledger_") as tmp:
        out = Path(tmp) / name
        _deps["export_workbook"](out, snapshot)
        buf = io.BytesIO(out.read_bytes())
    append_history_log("Exported workbook", name)
    return send_file(buf, as_attachment=True, download_name=name,
                     mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")


@bp.route("/api/ticks")
def api_ticks():
    """Nice axis ticks for ?min=&max=&count=."""
    from flask import jsonify
    try:
        lo = float(request.args.get("min", "0"))
        hi = float(request.args.get("max", "0"))
        count = int(request.args.get("count", "5"))
        return jsonify(_deps["calculate_nice_ticks"](lo, hi, min(max(count, 2), MAX_TICK_COUNT)))
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400


# ── Portfolio writes ──

@bp.route("/portfolios", methods=["POST"])
def create_portfolio():
    def _do():
        data = _form_fields(["name", "type", "currency", "description"])
        if "currency" in data:
            data["currency"] = data["currency"].upper()
        get_hub().portfolios.create(data)
    return _write("/portfolios", "Portfolio created", _do, request.form.get("name", ""))


@bp.route("/portfolios/<portfolio_id>/delete", methods=["POST"])
def delete_portfolio(portfolio_id):
    return _write("/portfolios", "Portfolio deleted", lambda: get_hub().portfolios.delete(portfolio_id), portfolio_id)


@bp.route("/portfolios/<portfolio_id>/holdings", methods=["POST"])
def create_holding(portfolio_id):
    def _do():
        data = _form_fields(["symbol", "quantity", "average_cost", "purchased_at"],
                            numeric=("quantity", "average_cost"))
        data["symbol"] = data.get("symbol", "").upper()
        get_hub().portfolios.create_holding(portfolio_id, data)
    return _write(f"/portfolios/{quote(portfolio_id)}", "Holding added", _do, request.form.get("symbol", "").upper())


@bp.route("/holdings/<holding_id>/delete", methods=["POST"])
def delete_holding(holding_id):
    back = f"/portfolios/{quote(request.args.get('portfolio', ''))}" if request.args.get("portfolio") else "/holdings"
    return _write(back, "Holding deleted", lambda: get_hub().portfolios.delete_holding(holding_id), holding_id)


@bp.route("/portfolios/<portfolio_id>/transactions", methods=["POST"])
def create_transaction(portfolio_id):
    def _do():
        data = _form_fields(
            ["transaction_type", "symbol", "quantity", "price", "total_amount", "transaction_date"],
            numeric=("quantity", "price", "total_amount"))
        when = data.get("transaction_date")
        if when and when > date.today().isoformat():
            raise ValueError("Transaction date cannot be in the future")
        if "symbol" in data:
            data["symbol"] = data["symbol"].upper()
        get_hub().portfolios.create_transaction(portfolio_id, data)
    return _write(f"/portfolios/{quote(portfolio_id)}", "Transaction added", _do,
                  request.form.get("transaction_type", ""))


@bp.route("/transactions/<transaction_id>/delete", methods=["POST"])
def delete_transaction(transaction_id):
    back = f"/portfolios/{quote(request.args.get('portfolio', ''))}"
    return _write(back, "Transaction deleted", lambda: get_hub().portfolios.delete_transaction(transaction_id),
                  transaction_id)


def _save_upload(prefix: str):
    """Copy the uploaded 'file' to a temp .csv; None when nothing was sent."""
    f = request.files.get("file")
    if not f or not f.filename:
        return None
    fd, tmp = tempfile.mkstemp(prefix=prefix, suffix=Path(f.filename).suffix.lower() or ".csv")
    os.close(fd)
    f.save(tmp)
    return Path(tmp)


@bp.route("/portfolios/<portfolio_id>/import", methods=["POST"])
def import_transactions(portfolio_id):
    back = f"/portfolios/{quote(portfolio_id)}"
    path = _save_upload("ledger_tx_")
    if path is None:
        return _back(back, "Choose a CSV file to import")
    try:
        imported, msg = _deps["import_transactions"](
            get_hub(), portfolio_id, path, request.form.get("mode", "append"))
    finally:
        path.unlink(missing_ok=True)
    if imported:
        append_history_log("Transactions imported", f"{imported} rows into portfolio {portfolio_id}")
    return _back(back, msg)


# ── Household writes ──

@bp.route("/insurance", methods=["POST"])
def create_policy():
    def _do():
        data = _form_fields(
            ["policy_name", "policy_type", "provider", "premium_amount", "premium_frequency",
             "cover_amount", "renewal_date"],
            numeric=("premium_amount", "cover_amount"))
        data.setdefault("currency", currency())
        get_hub().insurance.create(data)
    return _write("/insurance", "Policy added", _do, request.form.get("policy_name", ""))


@bp.route("/insurance/<policy_id>/delete", methods=["POST"])
def delete_policy(policy_id):
    return _write("/insurance", "Policy deleted", lambda: get_hub().insurance.delete(policy_id), policy_id)


@bp.route("/insurance/<policy_id>/covered", methods=["POST"])
def add_covered_person(policy_id):
    def _do():
        data = _form_fields(["person_id", "coverage_type"])
        if not data.get("person_id"):
            raise ValueError("Choose a person to cover")
        get_hub().insurance.add_covered_person(policy_id, data)
    return _write("/insurance", "Covered person added", _do, policy_id)


@bp.route("/insurance/<policy_id>/covered/<person_id>/delete", methods=["POST"])
def remove_covered_person(policy_id, person_id):
    return _write("/insurance", "Covered person removed",
                  lambda: get_hub().insurance.remove_covered_person(policy_id, person_id), policy_id)


@bp.route("/properties", methods=["POST"])
def create_property():
    def _do():
        data = _form_fields(
            ["name", "property_type", "address_line1", "postcode", "current_value", "mortgage_balance"],
            numeric=("current_value", "mortgage_balance"))
        data.setdefault("currency", currency())
        get_hub().properties.create(data)
    return _write("/properties", "Property added", _do, request.form.get("name", ""))


@bp.route("/properties/<property_id>/delete", methods=["POST"])
def delete_property(property_id):
    return _write("/properties", "Property deleted", lambda: get_hub().properties.delete(property_id), property_id)


@bp.route("/properties/<property_id>/owners", methods=["POST"])
def add_owner(property_id):
    def _do():
        data = _form_fields(["person_id", "ownership_percentage", "ownership_type"],
                            numeric=("ownership_percentage",))
        if not data.get("person_id"):
            raise ValueError("Choose an owner")
        pct = data.get("ownership_percentage", 100.0)
        if not 0 < pct <= 100:
            raise ValueError("Ownership percentage must be between 0 and 100")
        data["ownership_percentage"] = pct
        get_hub().properties.add_owner(property_id, data)
    return _write("/properties", "Owner added", _do, property_id)


@bp.route("/properties/<property_id>/owners/<person_id>/delete", methods=["POST"])
def remove_owner(property_id, person_id):
    return _write("/properties", "Owner removed",
                  lambda: get_hub().properties.remove_owner(property_id, person_id), property_id)


@bp.route("/pets", methods=["POST"])
def create_pet():
    def _do():
        data = _form_fields(["name", "pet_type", "breed", "date_of_birth", "vet_name", "insurance_policy_id"])
        get_hub().pets.create(data)
    return _write("/pets", "Pet added", _do, request.form.get("name", ""))


@bp.route("/pets/<pet_id>/delete", methods=["POST"])
def delete_pet(pet_id):
    return _write("/pets", "Pet deleted", lambda: get_hub().pets.delete(pet_id), pet_id)


@bp.route("/bills", methods=["POST"])
def create_bill():
    def _do():
        data = _form_fields(["name", "category", "amount", "frequency", "provider", "due_day"],
                            numeric=("amount", "due_day"))
        if "due_day" in data:
            data["due_day"] = int(data["due_day"])
        data.setdefault("currency", currency())
        get_hub().household.create_bill(data)
    return _write("/bills", "Bill added", _do, request.form.get("name", ""))


@bp.route("/bills/<bill_id>/pay", methods=["POST"])
def pay_bill(bill_id):
    def _do():
        data = _form_fields(["amount", "payment_date"], numeric=("amount",))
        data.setdefault("payment_date", date.today().isoformat())
        get_hub().household.record_bill_payment(bill_id, data)
    return _write("/bills", "Payment recorded", _do, bill_id)


@bp.route("/bills/<bill_id>/delete", methods=["POST"])
def delete_bill(bill_id):
    return _write("/bills", "Bill deleted", lambda: get_hub().household.delete_bill(bill_id), bill_id)


@bp.route("/maintenance", methods=["POST"])
def create_task():
    def _do():
        data = _form_fields(
            ["name", "category", "priority", "frequency_months", "next_due_date", "estimated_cost"],
            numeric=("frequency_months", "estimated_cost"))
        if "frequency_months" in data:
            data["frequency_months"] = int(data["frequency_months"])
        get_hub().household.create_maintenance_task(data)
    return _write("/maintenance", "Task added", _do, request.form.get("name", ""))


@bp.route("/maintenance/<task_id>/complete", methods=["POST"])
def complete_task(task_id):
    def _do():
        data = _form_fields(["completed_date", "cost", "notes"], numeric=("cost",))
        data.setdefault("completed_date", date.today().isoformat())
        get_hub().household.complete_maintenance_task(task_id, data)
    return _write("/maintenance", "Task completed", _do, task_id)


@bp.route("/maintenance/<task_id>/delete", methods=["POST"])
def delete_task(task_id):
    return _write("/maintenance", "Task deleted",
                  lambda: get_hub().household.delete_maintenance_task(task_id), task_id)


# ── Hobby writes ──

@bp.route("/recipes", methods=["POST"])
def create_recipe():
    def _do():
        data = _form_fields(["title", "cuisine", "servings", "prep_time_minutes", "cook_time_minutes"],
                            numeric=("servings", "prep_time_minutes", "cook_time_minutes"))
        for k in ("servings", "prep_time_minutes", "cook_time_minutes"):
            if k in data:
                data[k] = int(data[k])
        get_hub().cooking.create_recipe(data)
    return _write("/recipes", "Recipe added", _do, request.form.get("title", ""))


@bp.route("/recipes/import", methods=["POST"])
def import_recipe():
    url = request.form.get("url", "").strip()
    if not url.startswith(("http://", "https://")):
        return _back("/recipes", "Enter a recipe URL starting with http:// or https://")
    return _write("/recipes", "Recipe imported", lambda: get_hub().cooking.import_from_url(url), url)


@bp.route("/recipes/<recipe_id>/favourite", methods=["POST"])
def favourite_recipe(recipe_id):
    try:
        is_fav = get_hub().cooking.toggle_favourite(recipe_id)
    except AuthError:
        raise
    except ApiError as e:
        print(f"[Recipes] Favourite failed: {e}")
        return _back("/recipes", f"Favourite failed: {e.message}")
    return _back("/recipes", "Added to favourites" if is_fav else "Removed from favourites")


@bp.route("/recipes/<recipe_id>/cook", methods=["POST"])
def cook_recipe(recipe_id):
    return _write("/recipes", "Marked as cooked", lambda: get_hub().cooking.mark_cooked(recipe_id), recipe_id)


@bp.route("/recipes/<recipe_id>/delete", methods=["POST"])
def delete_recipe(recipe_id):
    return _write("/recipes", "Recipe deleted", lambda: get_hub().cooking.delete_recipe(recipe_id), recipe_id)


@bp.route("/reading/books", methods=["POST"])
def create_book():
    def _do():
        data = _form_fields(["title", "author", "isbn", "page_count"], numeric=("page_count",))
        if "page_count" in data:
            data["page_count"] = int(data["page_count"])
        if "author" in data:
            data["authors"] = [data.pop("author")]
        get_hub().reading.create_book(data)
    return _write("/reading", "Book added", _do, request.form.get("title", ""))


@bp.route("/reading/books/<book_id>/delete", methods=["POST"])
def delete_book(book_id):
    return _write("/reading", "Book removed", lambda: get_hub().reading.delete_book(book_id), book_id)


@bp.route("/reading/import", methods=["POST"])
def import_goodreads():
    path = _save_upload("ledger_goodreads_")
    if path is None:
        return _back("/reading", "Choose a Goodreads CSV export to import")
    try:
        imported, msg = _deps["import_goodreads"](get_hub(), path)
    finally:
        path.unlink(missing_ok=True)
    if imported:
        append_history_log("Goodreads imported", msg)
    return _back("/reading", msg)


@bp.route("/snippets", methods=["POST"])
def create_snippet():
    def _do():
        data = _form_fields(["title", "language", "description", "code"])
        get_hub().coding.create_snippet(data)
    return _write("/snippets", "Snippet added", _do, request.form.get("title", ""))


@bp.route("/snippets/<snippet_id>/delete", methods=["POST"])
def delete_snippet(snippet_id):
    return _write("/snippets", "Snippet deleted", lambda: get_hub().coding.delete_snippet(snippet_id), snippet_id)
