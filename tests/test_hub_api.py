"""Tests for the REST client: URL building, params, errors and domain wrappers."""

from unittest.mock import MagicMock

import pytest
import requests

from hub_api import ApiError, AuthError, Hub, HubClient, _items


def _response(status=200, json_data=None, content=b"{}", invalid_json=False):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.content = content
    resp.url = "http://api.test/api/v1/x"
    resp.request.method = "GET"
    if invalid_json:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = json_data
    return resp


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(session):
    return HubClient("http://api.test/api/v1/", token="abc", timeout=7, session=session)


def test_request_builds_url_headers_and_timeout(client, session):
    session.request.return_value = _response(json_data=[{"id": "p1"}])
    assert client.get("/portfolios") == [{"id": "p1"}]
    args, kwargs = session.request.call_args
    assert args == ("GET", "http://api.test/api/v1/portfolios")
    assert kwargs["headers"]["Authorization"] == "Bearer abc"
    assert kwargs["timeout"] == 7


def test_request_without_token_sends_no_auth_header(session):
    session.request.return_value = _response(json_data={})
    HubClient("http://api.test", session=session).get("/auth/me")
    assert "Authorization" not in session.request.call_args.kwargs["headers"]


def test_empty_params_are_dropped(client, session):
    session.request.return_value = _response(json_data=[])
    client.get("/pets", household_id=None, search="")
    assert session.request.call_args.kwargs["params"] is None
    client.get("/code/snippets", language="python", search=None)
    assert session.request.call_args.kwargs["params"] == {"language": "python"}


def test_401_raises_auth_error(client, session):
    session.request.return_value = _response(401, {"error": "Token expired"})
    with pytest.raises(AuthError) as exc:
        client.get("/dashboard/summary")
    assert exc.value.status_code == 401
    assert exc.value.message == "Token expired"


def test_error_status_raises_api_error_with_payload(client, session):
    payload = {"success": False, "error": "Validation failed", "row_errors": ["Row 2: bad date"]}
    session.request.return_value = _response(422, payload)
    with pytest.raises(ApiError) as exc:
        client.post("/portfolios", {"name": ""})
    assert not isinstance(exc.value, AuthError)
    assert exc.value.payload == payload
    assert str(exc.value) == "Validation failed (HTTP 422)"


def test_error_without_json_body_uses_method_and_url(client, session):
    session.request.return_value = _response(502, invalid_json=True)
    with pytest.raises(ApiError) as exc:
        client.get("/holdings")
    assert "failed" in exc.value.message
    assert exc.value.status_code == 502


def test_transport_error_becomes_api_error(client, session):
    session.request.side_effect = requests.ConnectionError("refused")
    with pytest.raises(ApiError) as exc:
        client.get("/portfolios")
    assert exc.value.status_code is None
    assert "refused" in str(exc.value)


def test_no_content_returns_none(client, session):
    session.request.return_value = _response(204, content=b"")
    assert client.delete("/pets/1") is None


def test_invalid_json_on_success_raises(client, session):
    session.request.return_value = _response(200, content=b"<html>", invalid_json=True)
    with pytest.raises(ApiError):
        client.get("/dashboard/summary")


def test_upload_sends_multipart_file(client, session, tmp_path):
    csv_file = tmp_path / "tx.csv"
    csv_file.write_text("transaction_date,symbol\n2026-01-02,VWRL\n")
    session.request.return_value = _response(json_data={"imported": 1})
    result = client.upload("/portfolios/p1/transactions/import", csv_file, {"mode": "replace"})
    assert result == {"imported": 1}
    kwargs = session.request.call_args.kwargs
    name, _, mime = kwargs["files"]["file"]
    assert name == "tx.csv"
    assert mime == "text/csv"
    assert kwargs["data"] == {"mode": "replace"}


def test_items_unwraps_either_shape():
    assert _items({"recipes": [1, 2]}, "recipes") == [1, 2]
    assert _items([3], "recipes") == [3]
    assert _items(None, "recipes") == []


def test_hub_wrappers_use_expected_routes():
    client = MagicMock()
    hub = Hub(client)

    client.get.return_value = {"recipes": [{"id": "r1"}]}
    assert hub.cooking.recipes(search="soup", favourites_only=True) == [{"id": "r1"}]
    client.get.assert_called_with("/cooking/recipes", search="soup", favourite="true")

    hub.assets.historical_price("VWRL", "2026-09-19")
    client.get.assert_called_with("/assets/historical-price", symbol="VWRL", date="2026-09-19")

    hub.dashboard.performance("weekly", None, "2026-04-20", "2026-10-19")
    client.get.assert_called_with("/dashboard/performance", period="weekly", portfolio_id=None,
                                  start_date="2026-04-20", end_date="2026-10-19")

    hub.household.record_bill_payment("b1", {"amount": 30})
    client.post.assert_called_with("/household/bills/b1/payments", {"amount": 30})

    hub.household.complete_maintenance_task("t1", {"completed_date": "2026-10-19"})
    client.post.assert_called_with("/household/maintenance-tasks/t1/complete", {"completed_date": "2026-10-19"})

    hub.coding.delete_snippet("s1")
    client.delete.assert_called_with("/code/snippets/s1")

    hub.people.list_all()
    client.get.assert_called_with("/people", household_id=None)

    hub.properties.add_owner("h1", {"person_id": "u1", "ownership_percentage": 50})
    client.post.assert_called_with("/properties/h1/owners", {"person_id": "u1", "ownership_percentage": 50})

    hub.properties.remove_owner("h1", "u1")
    client.delete.assert_called_with("/properties/h1/owners/u1")

    hub.insurance.add_covered_person("i1", {"person_id": "u1"})
    client.post.assert_called_with("/insurance/i1/covered-people", {"person_id": "u1"})

    hub.insurance.remove_covered_person("i1", "u1")
    client.delete.assert_called_with("/insurance/i1/covered-people/u1")


def test_toggle_favourite_returns_flag():
    client = MagicMock()
    client.post.return_value = {"is_favourite": True}
    assert Hub(client).cooking.toggle_favourite("r1") is True
    client.post.return_value = None
    assert Hub(client).cooking.toggle_favourite("r1") is False


def test_bills_include_inactive_flag():
    client = MagicMock()
    client.get.return_value = []
    hub = Hub(client)
    hub.household.bills()
    client.get.assert_called_with("/household/bills", all=None)
    hub.household.bills(include_inactive=True)
    client.get.assert_called_with("/household/bills", all="true")
