import os
import sys
from unittest.mock import MagicMock

import pytest

# Modules live at the repo root
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))


@pytest.fixture
def hub():
    """Stand-in for hub_api.Hub: every domain wrapper is a MagicMock."""
    return MagicMock()


@pytest.fixture
def settings():
    return {
        "api_url": "http://api.test/api/v1",
        "api_token": "test-token",
        "base_currency": "GBP",
        "request_timeout": 5,
        "renewal_warning_days": 30,
        "export_path": "export.xlsx",
    }


@pytest.fixture
def history():
    return MagicMock()


@pytest.fixture
def app(hub, settings, history, monkeypatch):
    """Create the Flask app with the API client and History log stubbed out."""
    import routes
    from server import create_app

    app = create_app(settings)
    app.config.update({"TESTING": True})
    monkeypatch.setitem(routes._deps, "make_hub", MagicMock(return_value=hub))
    monkeypatch.setitem(routes._deps, "append_history_log", history)
    monkeypatch.setattr(routes, "AUTH_PIN", "")
    monkeypatch.setattr(routes, "DEMO_MODE", False)
    yield app


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()
