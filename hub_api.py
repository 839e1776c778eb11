"""
Typed wrappers over the Home Ledger backend REST API.
One HubClient (requests.Session + base URL + bearer token) and a thin class per domain.
Every call returns decoded JSON (dicts/lists) or raises ApiError.
"""

from pathlib import Path
from typing import Any, Optional

import requests

DEFAULT_TIMEOUT = 15


class ApiError(Exception):
    """Backend call failed: transport error or non-2xx response."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def __str__(self) -> str:
        if self.status_code:
            return f"{self.message} (HTTP {self.status_code})"
        return self.message


class AuthError(ApiError):
    """401 from the backend: token missing, expired or revoked."""


def _error_message(resp: requests.Response) -> tuple[str, Any]:
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        msg = payload.get("error") or payload.get("message")
        if msg:
            return str(msg), payload
    return f"{resp.request.method if resp.request else 'Request'} {resp.url} failed", payload


class HubClient:
    """Session-backed JSON client for the backend API."""

    def __init__(self, base_url: str, token: str = "", timeout: float = DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.base_url = (base_url or "").rstrip("/")
        self.token = token or ""
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(self, method: str, path: str, params: dict = None, json: Any = None,
                files: dict = None, data: dict = None) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        if params:
            params = {k: v for k, v in params.items() if v is not None and v != ""}
        try:
            resp = self.session.request(
                method, url, params=params or None, json=json, files=files, data=data,
                headers=self._headers(), timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ApiError(f"{method} {path} failed: {e}") from e

        if resp.status_code == 401:
            msg, payload = _error_message(resp)
            raise AuthError(msg, 401, payload)
        if not resp.ok:
            msg, payload = _error_message(resp)
            raise ApiError(msg, resp.status_code, payload)
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(f"{method} {path} returned invalid JSON", resp.status_code) from e

    def get(self, path: str, **params) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, body: Any = None) -> Any:
        return self.request("POST", path, json=body)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    def upload(self, path: str, file_path: Path, fields: dict = None, field_name: str = "file") -> Any:
        """Multipart upload of one file plus form fields."""
        file_path = Path(file_path)
        with open(file_path, "rb") as f:
            return self.request(
                "POST", path,
                files={field_name: (file_path.name, f, "text/csv")},
                data=fields or {},
            )


def _items(payload: Any, key: str) -> list:
    """Some list endpoints wrap results ({"recipes": [...]}); unwrap either shape."""
    if payload is None:
        return []
    if isinstance(payload, dict):
        return payload.get(key) or []
    return payload


class _Api:
    def __init__(self, client: HubClient):
        self.client = client


class AuthApi(_Api):
    def login(self, email: str, password: str) -> dict:
        return self.client.post("/auth/login", {"email": email, "password": password})

    def logout(self) -> None:
        self.client.post("/auth/logout")


class PortfolioApi(_Api):
    def list_all(self) -> list:
        return self.client.get("/portfolios") or []

    def get(self, portfolio_id: str) -> dict:
        return self.client.get(f"/portfolios/{portfolio_id}")

    def create(self, data: dict) -> dict:
        return self.client.post("/portfolios", data)

    def delete(self, portfolio_id: str) -> None:
        self.client.delete(f"/portfolios/{portfolio_id}")

    def summary(self, portfolio_id: str) -> dict:
        return self.client.get(f"/portfolios/{portfolio_id}/summary")

    # Holdings
    def all_holdings(self) -> list:
        return self.client.get("/holdings") or []

    def holdings(self, portfolio_id: str) -> list:
        return self.client.get(f"/portfolios/{portfolio_id}/holdings") or []

    def create_holding(self, portfolio_id: str, data: dict) -> dict:
        return self.client.post(f"/portfolios/{portfolio_id}/holdings", data)

    def delete_holding(self, holding_id: str) -> None:
        self.client.delete(f"/holdings/{holding_id}")

    # Transactions
    def transactions(self, portfolio_id: str, page: int = 1, per_page: int = 20) -> dict:
        return self.client.get(f"/portfolios/{portfolio_id}/transactions", page=page, per_page=per_page)

    def create_transaction(self, portfolio_id: str, data: dict) -> dict:
        return self.client.post(f"/portfolios/{portfolio_id}/transactions", data)

    def delete_transaction(self, transaction_id: str) -> None:
        self.client.delete(f"/transactions/{transaction_id}")

    def import_transactions(self, portfolio_id: str, file_path: Path, mode: str = "append") -> dict:
        return self.client.upload(f"/portfolios/{portfolio_id}/transactions/import", file_path, {"mode": mode})

    # Cash accounts
    def all_cash_accounts(self) -> list:
        return self.client.get("/cash-accounts") or []

    def cash_accounts(self, portfolio_id: str) -> list:
        return self.client.get(f"/portfolios/{portfolio_id}/cash-accounts") or []


class AssetApi(_Api):
    def details(self, symbol: str) -> dict:
        return self.client.get(f"/assets/{symbol}")

    def history(self, symbol: str, period: str = "1mo") -> list:
        return self.client.get(f"/assets/{symbol}/history", period=period) or []

    def historical_price(self, symbol: str, on_date: str) -> dict:
        return self.client.get("/assets/historical-price", symbol=symbol, date=on_date)


class DashboardApi(_Api):
    def summary(self) -> dict:
        return self.client.get("/dashboard/summary")

    def allocation(self) -> dict:
        return self.client.get("/dashboard/allocation")

    def top_movers(self) -> dict:
        return self.client.get("/dashboard/top-movers") or {"gainers": [], "losers": []}

    def performance(self, period: str, portfolio_id: str = None, start_date: str = None,
                    end_date: str = None) -> dict:
        return self.client.get(
            "/dashboard/performance",
            period=period, portfolio_id=portfolio_id, start_date=start_date, end_date=end_date,
        )


class InsuranceApi(_Api):
    def list_all(self) -> list:
        return self.client.get("/insurance") or []

    def create(self, data: dict) -> dict:
        return self.client.post("/insurance", data)

    def delete(self, policy_id: str) -> None:
        self.client.delete(f"/insurance/{policy_id}")

    def add_covered_person(self, policy_id: str, data: dict) -> dict:
        return self.client.post(f"/insurance/{policy_id}/covered-people", data)

    def remove_covered_person(self, policy_id: str, person_id: str) -> None:
        self.client.delete(f"/insurance/{policy_id}/covered-people/{person_id}")


class PropertyApi(_Api):
    def list_all(self) -> list:
        return self.client.get("/properties") or []

    def create(self, data: dict) -> dict:
        return self.client.post("/properties", data)

    def delete(self, property_id: str) -> None:
        self.client.delete(f"/properties/{property_id}")

    def add_owner(self, property_id: str, data: dict) -> dict:
        return self.client.post(f"/properties/{property_id}/owners", data)

    def remove_owner(self, property_id: str, person_id: str) -> None:
        self.client.delete(f"/properties/{property_id}/owners/{person_id}")


class PersonApi(_Api):
    def list_all(self, household_id: str = None) -> list:
        return self.client.get("/people", household_id=household_id) or []


class PetApi(_Api):
    def list_all(self, household_id: str = None) -> list:
        return self.client.get("/pets", household_id=household_id) or []

    def create(self, data: dict) -> dict:
        return self.client.post("/pets", data)

    def delete(self, pet_id: str) -> None:
        self.client.delete(f"/pets/{pet_id}")


class HouseholdApi(_Api):
    # Bills
    def bills(self, include_inactive: bool = False) -> list:
        return _items(self.client.get("/household/bills", all="true" if include_inactive else None), "bills")

    def create_bill(self, data: dict) -> dict:
        return self.client.post("/household/bills", data)

    def delete_bill(self, bill_id: str) -> None:
        self.client.delete(f"/household/bills/{bill_id}")

    def record_bill_payment(self, bill_id: str, data: dict) -> dict:
        return self.client.post(f"/household/bills/{bill_id}/payments", data)

    # Maintenance
    def maintenance_tasks(self, include_inactive: bool = False) -> list:
        return _items(
            self.client.get("/household/maintenance-tasks", all="true" if include_inactive else None),
            "tasks",
        )

    def create_maintenance_task(self, data: dict) -> dict:
        return self.client.post("/household/maintenance-tasks", data)

    def complete_maintenance_task(self, task_id: str, data: dict) -> dict:
        return self.client.post(f"/household/maintenance-tasks/{task_id}/complete", data)

    def delete_maintenance_task(self, task_id: str) -> None:
        self.client.delete(f"/household/maintenance-tasks/{task_id}")

    def maintenance_logs(self, task_id: str = None, limit: int = None) -> list:
        return _items(self.client.get("/household/maintenance-logs", task_id=task_id, limit=limit), "logs")


class CookingApi(_Api):
    def recipes(self, search: str = None, favourites_only: bool = False) -> list:
        payload = self.client.get(
            "/cooking/recipes", search=search, favourite="true" if favourites_only else None,
        )
        return _items(payload, "recipes")

    def create_recipe(self, data: dict) -> dict:
        return self.client.post("/cooking/recipes", data)

    def delete_recipe(self, recipe_id: str) -> None:
        self.client.delete(f"/cooking/recipes/{recipe_id}")

    def mark_cooked(self, recipe_id: str) -> None:
        self.client.post(f"/cooking/recipes/{recipe_id}/cook")

    def toggle_favourite(self, recipe_id: str) -> bool:
        payload = self.client.post(f"/cooking/recipes/{recipe_id}/favourite") or {}
        return bool(payload.get("is_favourite"))

    def import_from_url(self, url: str) -> dict:
        return self.client.post("/cooking/recipes/import-url", {"url": url})


class ReadingApi(_Api):
    def books(self, search: str = None, limit: int = None, offset: int = None) -> list:
        return _items(self.client.get("/reading/books", search=search, limit=limit, offset=offset), "books")

    def create_book(self, data: dict) -> dict:
        return self.client.post("/reading/books", data)

    def delete_book(self, book_id: str) -> None:
        self.client.delete(f"/reading/books/{book_id}")

    def lists(self) -> list:
        return _items(self.client.get("/reading/lists"), "lists")

    def import_goodreads(self, file_path: Path) -> dict:
        return self.client.upload("/reading/books/import/goodreads", file_path)


class CodingApi(_Api):
    def snippets(self, language: str = None, search: str = None) -> list:
        return _items(self.client.get("/code/snippets", language=language, search=search), "snippets")

    def create_snippet(self, data: dict) -> dict:
        return self.client.post("/code/snippets", data)

    def delete_snippet(self, snippet_id: str) -> None:
        self.client.delete(f"/code/snippets/{snippet_id}")


class ReportApi(_Api):
    def net_worth(self) -> dict:
        return self.client.get("/reports/net-worth")

    def insurance_coverage(self) -> dict:
        return self.client.get("/reports/insurance-coverage")

    def asset_allocation(self) -> dict:
        return self.client.get("/reports/asset-allocation")

    def upcoming_events(self) -> dict:
        return self.client.get("/reports/upcoming-events")


class Hub:
    """All domain wrappers sharing one HubClient."""

    def __init__(self, client: HubClient):
        self.client = client
        self.auth = AuthApi(client)
        self.portfolios = PortfolioApi(client)
        self.assets = AssetApi(client)
        self.dashboard = DashboardApi(client)
        self.insurance = InsuranceApi(client)
        self.properties = PropertyApi(client)
        self.people = PersonApi(client)
        self.pets = PetApi(client)
        self.household = HouseholdApi(client)
        self.cooking = CookingApi(client)
        self.reading = ReadingApi(client)
        self.coding = CodingApi(client)
        self.reports = ReportApi(client)
