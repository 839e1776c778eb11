"""
Local server for the Home Ledger dashboard.
Run: python server.py
Then open http://localhost:5000 for portfolios, household, hobbies and reports.
All data lives behind the Home Ledger API; writes are logged to the Excel History sheet.
"""

import os
import sys
from pathlib import Path

BASE = Path(__file__).resolve().parent
sys.path.insert(0, str(BASE))

# Load .env so the API URL/token and PIN work when running the server
try:
    from dotenv import load_dotenv
    load_dotenv(BASE / ".env")
except ImportError:
    pass

DEMO_MODE = os.environ.get("DEMO_MODE", "").lower() in ("1", "true", "yes")
CONFIG_PATH = Path(os.environ.get("HOME_LEDGER_CONFIG") or BASE / "config.json")

# Auth PIN: set HOME_LEDGER_PIN in .env (e.g. HOME_LEDGER_PIN=1234). If unset, no PIN required.
AUTH_PIN = os.environ.get("HOME_LEDGER_PIN", "")


def append_history_log(action: str, details: str = "") -> None:
    from hub_manager import append_history_log as _log
    _log(BASE, action, details)


def create_app(settings: dict = None):
    """Build the Flask app with routes wired to the API client, loaders and renderers."""
    from flask import Flask

    import dashboard
    import hub_manager
    from csv_import import import_goodreads, import_transactions
    from formatting import calculate_nice_ticks
    from routes import bp, init_routes

    if settings is None:
        settings = hub_manager.get_effective_settings(hub_manager.load_config(CONFIG_PATH))

    app = Flask(__name__)
    app.secret_key = os.environ.get("FLASK_SECRET", "home-ledger-default-key-change-me")

    init_routes({
        "CONFIG_PATH": CONFIG_PATH,
        "BASE": BASE,
        "AUTH_PIN": AUTH_PIN,
        "DEMO_MODE": DEMO_MODE,
        "settings": settings,
        "make_hub": hub_manager.make_hub,
        "append_history_log": append_history_log,
        "calculate_nice_ticks": calculate_nice_ticks,
        "import_transactions": import_transactions,
        "import_goodreads": import_goodreads,
        "export_workbook": hub_manager.export_workbook,
        "get_export_snapshot": hub_manager.get_export_snapshot,
        "get_overview_data": hub_manager.get_overview_data,
        "get_portfolios_data": hub_manager.get_portfolios_data,
        "get_portfolio_detail_data": hub_manager.get_portfolio_detail_data,
        "get_holdings_data": hub_manager.get_holdings_data,
        "get_charts_data": hub_manager.get_charts_data,
        "get_price_data": hub_manager.get_price_data,
        "get_insurance_data": hub_manager.get_insurance_data,
        "get_properties_data": hub_manager.get_properties_data,
        "get_pets_data": hub_manager.get_pets_data,
        "get_bills_data": hub_manager.get_bills_data,
        "get_maintenance_data": hub_manager.get_maintenance_data,
        "get_recipes_data": hub_manager.get_recipes_data,
        "get_reading_data": hub_manager.get_reading_data,
        "get_snippets_data": hub_manager.get_snippets_data,
        "get_reports_data": hub_manager.get_reports_data,
        "render_login_page": dashboard.render_login_page,
        "render_overview": dashboard.render_overview,
        "render_portfolios": dashboard.render_portfolios,
        "render_portfolio_detail": dashboard.render_portfolio_detail,
        "render_holdings": dashboard.render_holdings,
        "render_charts": dashboard.render_charts,
        "render_prices": dashboard.render_prices,
        "render_insurance": dashboard.render_insurance,
        "render_properties": dashboard.render_properties,
        "render_pets": dashboard.render_pets,
        "render_bills": dashboard.render_bills,
        "render_maintenance": dashboard.render_maintenance,
        "render_recipes": dashboard.render_recipes,
        "render_reading": dashboard.render_reading,
        "render_snippets": dashboard.render_snippets,
        "render_reports": dashboard.render_reports,
    })
    app.register_blueprint(bp)
    return app


def main():
    try:
        import flask  # noqa: F401
    except ImportError:
        print("Flask is required. Run: pip install flask")
        sys.exit(1)

    from hub_manager import get_effective_settings, load_config

    settings = get_effective_settings(load_config(CONFIG_PATH))
    app = create_app(settings)

    port = int(os.environ.get("PORT", 5000))
    host = os.environ.get("HOST", "0.0.0.0")
    print(f"Home Ledger: http://{host}:{port}")
    print(f"[Startup] API: {settings['api_url']} ({'token configured' if settings.get('api_token') else 'sign-in required'})")
    if AUTH_PIN:
        print("[Startup] PIN gate enabled")
    if DEMO_MODE:
        print("[DEMO MODE] Write operations disabled.")
    print("Ctrl+C to stop.")
    app.run(host=host, port=port, debug=False, use_reloader=not DEMO_MODE)


if __name__ == "__main__":
    main()
