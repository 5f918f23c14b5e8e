"""
Pytest configuration and fixtures for the Monarch MCP server tests.
"""

import json

import httpx
import pytest

from monarch_mcp_server.api import MonarchClient
from monarch_mcp_server.models import Account, Transaction


def make_tx(id, amount, date="2024-03-10", category=None, merchant=None, plaid_name=None, notes=None):
    data = {
        "id": id,
        "amount": amount,
        "date": date,
        "plaidName": plaid_name,
        "notes": notes,
        "account": {"id": "a1", "displayName": "Checking"},
    }
    if category:
        data["category"] = {"id": f"c-{category}", "name": category}
    if merchant:
        data["merchant"] = {"id": f"m-{merchant}", "name": merchant}
    return Transaction.model_validate(data)


def make_account(id, group, balance, include=True, name=None, type_name=None, institution=None):
    data = {
        "id": id,
        "displayName": name or id,
        "currentBalance": balance,
        "includeInNetWorth": include,
        "type": {"name": type_name or group, "group": group, "display": group.title()},
    }
    if institution:
        data["institution"] = {"id": "i1", "name": institution}
    return Account.model_validate(data)


class FakeClient:
    """Stands in for MonarchClient; records calls and returns canned records."""

    def __init__(self, accounts=None, transactions=None, budgets=None, categories=None,
                 snapshots=None, portfolio=None, error=None):
        self.accounts = accounts or []
        self.transactions = transactions or []
        self.budgets = budgets or []
        self.categories = categories or []
        self.snapshots = snapshots or []
        self.portfolio = portfolio
        self.error = error
        self.calls = []

    def _record(self, name, **kwargs):
        self.calls.append((name, kwargs))
        if self.error:
            raise self.error

    async def get_accounts(self):
        self._record("get_accounts")
        return self.accounts

    async def get_transactions(self, limit=100, account_id=None, start_date=None, end_date=None, offset=0):
        self._record(
            "get_transactions",
            limit=limit, account_id=account_id, start_date=start_date, end_date=end_date,
        )
        return self.transactions[:limit]

    async def get_budgets(self):
        self._record("get_budgets")
        return self.budgets

    async def get_categories(self):
        self._record("get_categories")
        return self.categories

    async def get_account_snapshots(self, account_id, start_date=None, end_date=None):
        self._record("get_account_snapshots", account_id=account_id, start_date=start_date, end_date=end_date)
        return self.snapshots

    async def get_portfolio(self, start_date=None, end_date=None):
        self._record("get_portfolio", start_date=start_date, end_date=end_date)
        return self.portfolio


@pytest.fixture
def make_client():
    """Build a MonarchClient whose requests are answered by ``handler``."""
    requests = []

    def factory(handler):
        def transport_handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        client = MonarchClient(token="test-token", transport=httpx.MockTransport(transport_handler))
        client.requests = requests
        return client

    return factory


def graphql_response(data=None, errors=None, status_code=200):
    body = {}
    if data is not None:
        body["data"] = data
    if errors is not None:
        body["errors"] = errors
    return httpx.Response(status_code, json=body)


def request_body(request: httpx.Request) -> dict:
    return json.loads(request.content)
