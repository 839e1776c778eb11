"""Flask route tests with the API client stubbed out."""

import io
import tempfile

import routes
from hub_api import ApiError, AuthError


def _bills(hub):
    hub.household.bills.return_value = [
        {"id": "b1", "name": "Council Tax", "category": "tax", "amount": 150, "currency": "GBP",
         "frequency": "monthly", "next_due_date": "2026-11-01", "is_active": True, "is_overdue": False,
         "days_until_due": 5},
    ]


def _overview(hub):
    hub.dashboard.summary.return_value = {"total_net_worth": 250000, "investments": 50000, "cash": 10000,
                                          "fixed_assets": 190000, "currency": "GBP", "change_day": 0.4,
                                          "portfolio_summary": []}
    hub.dashboard.allocation.return_value = {"by_type": [{"name": "ETF", "value": 50000}]}
    hub.dashboard.top_movers.return_value = {"gainers": [], "losers": []}
    hub.reports.upcoming_events.return_value = {"events": []}


def test_bills_page_renders(client, hub):
    _bills(hub)
    resp = client.get("/bills")
    assert resp.status_code == 200
    body = resp.get_data(as_text=True)
    assert "Council Tax" in body
    assert "Due in 5d" in body
    assert "£150.00" in body


def test_saved_banner_is_shown(client, hub):
    _bills(hub)
    body = client.get("/bills?saved=Bill+added").get_data(as_text=True)
    assert 'class="banner saved">Bill added' in body


def test_page_load_api_error_shows_banner(client, hub):
    hub.household.bills.side_effect = ApiError("boom", 500)
    resp = client.get("/bills")
    assert resp.status_code == 200
    assert "Failed to load bills." in resp.get_data(as_text=True)


def test_auth_error_clears_token_and_redirects(client, hub):
    with client.session_transaction() as sess:
        sess["token"] = "stale"
    hub.household.bills.side_effect = AuthError("Token expired", 401)
    resp = client.get("/bills")
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/login")
    with client.session_transaction() as sess:
        assert "token" not in sess


def test_overview_renders(client, hub):
    _overview(hub)
    body = client.get("/").get_data(as_text=True)
    assert "£250,000.00" in body
    assert "£50K" in body


def test_create_bill_posts_and_logs(client, hub, history):
    resp = client.post("/bills", data={"name": "Water", "amount": "1,030", "frequency": "monthly"})
    assert resp.status_code == 302
    assert "saved=Bill%20added" in resp.headers["Location"]
    hub.household.create_bill.assert_called_once_with(
        {"name": "Water", "amount": 1030.0, "frequency": "monthly", "currency": "GBP"})
    history.assert_called_once_with("Bill added", "Water")


def test_create_bill_rejects_non_numeric_amount(client, hub, history):
    resp = client.post("/bills", data={"name": "Water", "amount": "lots"})
    assert "Amount%20must%20be%20a%20number" in resp.headers["Location"]
    hub.household.create_bill.assert_not_called()
    history.assert_not_called()


def test_write_api_error_redirects_with_message(client, hub, history):
    hub.household.delete_bill.side_effect = ApiError("Bill not found", 404)
    resp = client.post("/bills/b9/delete")
    assert resp.status_code == 302
    assert "Save%20failed%3A%20Bill%20not%20found" in resp.headers["Location"]
    history.assert_not_called()


def test_pay_bill_defaults_payment_date(client, hub):
    client.post("/bills/b1/pay")
    bill_id, data = hub.household.record_bill_payment.call_args.args
    assert bill_id == "b1"
    assert "payment_date" in data


def test_transaction_in_future_is_rejected(client, hub):
    resp = client.post("/portfolios/p1/transactions",
                       data={"transaction_type": "BUY", "symbol": "vwrl", "transaction_date": "2999-01-01"})
    assert "future" in resp.headers["Location"]
    hub.portfolios.create_transaction.assert_not_called()


def test_favourite_toggle_message(client, hub):
    hub.cooking.toggle_favourite.return_value = True
    resp = client.post("/recipes/r1/favourite")
    assert "Added%20to%20favourites" in resp.headers["Location"]


def test_recipe_import_requires_http_url(client, hub):
    resp = client.post("/recipes/import", data={"url": "ftp://example.com/soup"})
    assert "saved=" in resp.headers["Location"]
    hub.cooking.import_from_url.assert_not_called()


def test_transaction_csv_upload(client, hub, history):
    hub.portfolios.import_transactions.return_value = {"success": True, "imported": 1,
                                                       "message": "Imported 1 transactions"}
    csv_bytes = b"transaction_date,symbol,transaction_type,quantity,price\n2026-01-02,VWRL,BUY,10,98.5\n"
    resp = client.post(
        "/portfolios/p1/import",
        data={"file": (io.BytesIO(csv_bytes), "trades.csv"), "mode": "replace"},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 302
    assert "Imported%201%20transactions" in resp.headers["Location"]
    pid, path, mode = hub.portfolios.import_transactions.call_args.args
    assert (pid, mode) == ("p1", "replace")
    assert not path.exists()
    history.assert_called_once()


def test_upload_without_file(client, hub):
    resp = client.post("/portfolios/p1/import", data={}, content_type="multipart/form-data")
    assert "Choose%20a%20CSV" in resp.headers["Location"]


def test_api_ticks(client):
    resp = client.get("/api/ticks?min=3&max=97")
    assert resp.status_code == 200
    assert resp.get_json() == {"domain": [0, 100], "ticks": [0, 25, 50, 75, 100]}


def test_api_ticks_bad_input(client):
    resp = client.get("/api/ticks?min=abc&max=10")
    assert resp.status_code == 400
    assert resp.get_json()["success"] is False


def test_export_downloads_workbook(client, hub, history):
    hub.dashboard.summary.return_value = {"currency": "GBP", "total_net_worth": 1}
    hub.portfolios.all_holdings.return_value = []
    hub.household.bills.return_value = []
    hub.insurance.list_all.return_value = []
    resp = client.get("/export")
    assert resp.status_code == 200
    assert resp.data[:2] == b"PK"
    assert "attachment" in resp.headers["Content-Disposition"]
    history.assert_called_once()


def test_demo_mode_blocks_writes(client, hub, monkeypatch):
    monkeypatch.setattr(routes, "DEMO_MODE", True)
    resp = client.post("/bills", data={"name": "Water", "amount": "10"})
    assert resp.status_code == 302
    assert "Demo+mode" in resp.headers["Location"]
    hub.household.create_bill.assert_not_called()


def test_pin_gate(client, hub, monkeypatch):
    monkeypatch.setattr(routes, "AUTH_PIN", "1234")
    _overview(hub)

    body = client.get("/").get_data(as_text=True)
    assert 'name="pin"' in body

    assert "Incorrect PIN" in client.post("/login", data={"pin": "0000"}).get_data(as_text=True)

    resp = client.post("/login", data={"pin": "1234"})
    assert resp.status_code == 302
    assert client.get("/").status_code == 200


def test_pin_gate_blocks_api(client, monkeypatch):
    monkeypatch.setattr(routes, "AUTH_PIN", "1234")
    assert client.get("/api/ticks?min=0&max=10").status_code == 401


def test_backend_login_stores_token(client, hub, settings):
    settings["api_token"] = ""
    resp = client.get("/bills")
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/login")

    hub.auth.login.return_value = {"tokens": {"access_token": "jwt-abc"}, "user": {"email": "sam@example.com"}}
    resp = client.post("/login", data={"email": "sam@example.com", "password": "pw"})
    assert resp.status_code == 302
    hub.auth.login.assert_called_once_with("sam@example.com", "pw")
    with client.session_transaction() as sess:
        assert sess["token"] == "jwt-abc"
        assert sess["user"] == "sam@example.com"


def test_backend_login_bad_credentials(client, hub, settings):
    settings["api_token"] = ""
    hub.auth.login.side_effect = AuthError("Invalid credentials", 401)
    body = client.post("/login", data={"email": "sam@example.com", "password": "nope"}).get_data(as_text=True)
    assert "Invalid email or password" in body


def test_logout_clears_session(client, hub):
    with client.session_transaction() as sess:
        sess["token"] = "jwt-abc"
        sess["authenticated"] = True
    resp = client.get("/logout")
    assert resp.status_code == 302
    hub.auth.logout.assert_called_once()
    with client.session_transaction() as sess:
        assert "token" not in sess


def test_non_utf8_upload_shows_banner(client, hub):
    csv_bytes = "symbol,quantity\nCAF\xe9,1\n".encode("latin-1")
    resp = client.post("/portfolios/p1/import", data={"file": (io.BytesIO(csv_bytes), "trades.csv")},
                       content_type="multipart/form-data")
    assert resp.status_code == 302
    assert "UTF-8" in resp.headers["Location"]
    hub.portfolios.import_transactions.assert_not_called()


def test_upload_with_expired_session_goes_to_login(client, hub):
    hub.portfolios.import_transactions.side_effect = AuthError("Token expired", 401)
    resp = client.post("/portfolios/p1/import",
                       data={"file": (io.BytesIO(b"symbol,quantity\nVWRL,1\n"), "trades.csv")},
                       content_type="multipart/form-data")
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/login")


def test_api_ticks_extreme_magnitudes(client):
    resp = client.get("/api/ticks?min=-1e308&max=1e308")
    assert resp.status_code == 200
    lo, hi = resp.get_json()["domain"]
    assert lo <= -1e308 and hi >= 1e308

    assert client.get("/api/ticks?min=0&max=2e-323").status_code == 200
    assert client.get("/api/ticks?min=0&max=1.7e308&count=2").status_code == 400


def test_api_ticks_count_is_clamped(client):
    resp = client.get("/api/ticks?min=0&max=1&count=5000000")
    assert resp.status_code == 200
    assert len(resp.get_json()["ticks"]) <= routes.MAX_TICK_COUNT + 2


def test_export_leaves_no_temp_files(client, hub, monkeypatch, tmp_path):
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
    hub.dashboard.summary.return_value = {"currency": "GBP"}
    hub.portfolios.all_holdings.return_value = []
    hub.household.bills.return_value = []
    hub.insurance.list_all.return_value = []
    resp = client.get("/export")
    assert resp.status_code == 200
    assert resp.data[:2] == b"PK"
    assert list(tmp_path.iterdir()) == []


def test_add_and_remove_owner(client, hub, history):
    resp = client.post("/properties/h1/owners",
                       data={"person_id": "u1", "ownership_percentage": "50", "ownership_type": "JOINT_TENANTS"})
    assert "saved=Owner%20added" in resp.headers["Location"]
    hub.properties.add_owner.assert_called_once_with(
        "h1", {"person_id": "u1", "ownership_percentage": 50.0, "ownership_type": "JOINT_TENANTS"})

    client.post("/properties/h1/owners/u1/delete")
    hub.properties.remove_owner.assert_called_once_with("h1", "u1")
    assert [c.args[0] for c in history.call_args_list] == ["Owner added", "Owner removed"]


def test_add_owner_validation(client, hub):
    resp = client.post("/properties/h1/owners", data={"ownership_percentage": "50"})
    assert "Choose%20an%20owner" in resp.headers["Location"]
    resp = client.post("/properties/h1/owners", data={"person_id": "u1", "ownership_percentage": "150"})
    assert "between%200%20and%20100" in resp.headers["Location"]
    hub.properties.add_owner.assert_not_called()


def test_add_owner_defaults_to_full_share(client, hub):
    client.post("/properties/h1/owners", data={"person_id": "u1"})
    hub.properties.add_owner.assert_called_once_with("h1", {"person_id": "u1", "ownership_percentage": 100.0})


def test_add_and_remove_covered_person(client, hub):
    resp = client.post("/insurance/i1/covered", data={"person_id": "u2", "coverage_type": "DEPENDENT"})
    assert "saved=Covered%20person%20added" in resp.headers["Location"]
    hub.insurance.add_covered_person.assert_called_once_with("i1", {"person_id": "u2", "coverage_type": "DEPENDENT"})

    resp = client.post("/insurance/i1/covered/u2/delete")
    assert "saved=Covered%20person%20removed" in resp.headers["Location"]
    hub.insurance.remove_covered_person.assert_called_once_with("i1", "u2")


def test_covered_person_requires_choice(client, hub):
    resp = client.post("/insurance/i1/covered", data={"coverage_type": "NAMED"})
    assert "Choose%20a%20person" in resp.headers["Location"]
    hub.insurance.add_covered_person.assert_not_called()


def test_insurance_page_lists_people(client, hub):
    hub.insurance.list_all.return_value = [{"id": "i1", "policy_name": "Health", "premium_amount": 40,
                                            "premium_frequency": "monthly", "covered_people": []}]
    hub.people.list_all.return_value = [{"id": "u1", "first_name": "Sam"}]
    body = client.get("/insurance").get_data(as_text=True)
    assert "Health" in body
    assert '<option value="u1">Sam</option>' in body
