from datetime import date

import httpx
import pytest

from monarch_mcp_server.api import (
    MonarchClient,
    ConfigurationError,
    AuthenticationError,
    OperationError,
    month_date_range,
    current_month_range,
)
from conftest import graphql_response, request_body


def test_month_date_range_handles_leap_years():
    assert month_date_range(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_date_range(2023, 2) == (date(2023, 2, 1), date(2023, 2, 28))
    assert month_date_range(1900, 2) == (date(1900, 2, 1), date(1900, 2, 28))
    assert month_date_range(2000, 2) == (date(2000, 2, 1), date(2000, 2, 29))


def test_month_date_range_month_lengths():
    assert month_date_range(2024, 4)[1] == date(2024, 4, 30)
    assert month_date_range(2024, 1)[1] == date(2024, 1, 31)
    assert month_date_range(2024, 12) == (date(2024, 12, 1), date(2024, 12, 31))


def test_missing_token_fails_at_construction(monkeypatch):
    monkeypatch.delenv("MONARCH_TOKEN", raising=False)
    with pytest.raises(ConfigurationError):
        MonarchClient()


def test_token_read_from_environment(monkeypatch):
    monkeypatch.setenv("MONARCH_TOKEN", "env-token")
    client = MonarchClient()
    assert client._token == "env-token"


@pytest.mark.asyncio
async def test_get_accounts_sends_token_and_parses_records(make_client):
    client = make_client(lambda request: graphql_response({
        "accounts": [{
            "id": "a1",
            "displayName": "Checking",
            "currentBalance": 1234.5,
            "includeInNetWorth": True,
            "isHidden": False,
            "type": {"name": "depository", "group": "asset", "display": "Cash"},
            "institution": None,
        }],
    }))

    accounts = await client.get_accounts()
    await client.close()

    request = client.requests[0]
    assert request.url.path == "/graphql"
    assert request.headers["Authorization"] == "Token test-token"
    assert "query GetAccounts" in request_body(request)["query"]

    assert len(accounts) == 1
    account = accounts[0]
    assert account.display_name == "Checking"
    assert account.current_balance == 1234.5
    assert account.type.group == "asset"
    assert account.institution is None
    assert account.model_dump(by_alias=True)["isHidden"] is False


@pytest.mark.asyncio
async def test_get_accounts_defaults_to_empty(make_client):
    client = make_client(lambda request: graphql_response({"accounts": None}))
    assert await client.get_accounts() == []


@pytest.mark.asyncio
async def test_get_transactions_only_sends_present_filters(make_client):
    client = make_client(lambda request: graphql_response({
        "allTransactions": {"totalCount": 1, "results": [
            {"id": "t1", "amount": -12.5, "date": "2024-03-02",
             "account": {"id": "a1", "displayName": "Checking"}},
        ]},
    }))

    transactions = await client.get_transactions(limit=25, start_date="2024-03-01")

    variables = request_body(client.requests[0])["variables"]
    assert variables == {
        "offset": 0,
        "limit": 25,
        "filters": {"startDate": "2024-03-01"},
        "orderBy": "date",
    }
    assert transactions[0].amount == -12.5
    assert transactions[0].category is None


@pytest.mark.asyncio
async def test_get_transactions_missing_collection(make_client):
    client = make_client(lambda request: graphql_response({"allTransactions": None}))
    assert await client.get_transactions() == []


@pytest.mark.asyncio
async def test_get_budgets_uses_current_month(make_client):
    start, end = current_month_range()
    month = start.isoformat()
    client = make_client(lambda request: graphql_response({
        "budgetData": {"monthlyAmountsByCategory": [
            {
                "category": {"id": "c1", "name": "Groceries"},
                "monthlyAmounts": [
                    {"month": "1999-01-01", "plannedAmount": 1, "actualAmount": 1},
                    {"month": month, "plannedAmount": 500, "actualAmount": 320.5},
                ],
            },
            {"category": {"id": "c2", "name": "Travel"}, "monthlyAmounts": []},
        ]},
    }))

    budgets = await client.get_budgets()

    variables = request_body(client.requests[0])["variables"]
    assert variables == {"startDate": start.isoformat(), "endDate": end.isoformat()}
    assert budgets[0].name == "Groceries"
    assert budgets[0].amount == 500
    assert budgets[0].spent == 320.5
    assert budgets[0].remaining == 179.5
    assert (budgets[1].amount, budgets[1].spent, budgets[1].remaining) == (0, 0, 0)


@pytest.mark.asyncio
async def test_get_account_snapshots_passes_filters_as_variables(make_client):
    client = make_client(lambda request: graphql_response({
        "accountSnapshots": [{"date": "2024-01-01", "balance": 10, "signedBalance": -10}],
    }))

    snapshots = await client.get_account_snapshots("a\"1", end_date="2024-02-01")

    body = request_body(client.requests[0])
    assert body["variables"] == {"filters": {"accountId": "a\"1", "endDate": "2024-02-01"}}
    assert 'a"1' not in body["query"]
    assert snapshots[0].signed_balance == -10


@pytest.mark.asyncio
async def test_get_portfolio_parses_holdings(make_client):
    client = make_client(lambda request: graphql_response({
        "portfolio": {
            "performance": {"totalValue": 1000, "historicalChart": [{"date": "2024-01-01", "returnPercent": 1.5}]},
            "aggregateHoldings": {"edges": [{"node": {
                "id": "h1",
                "totalValue": 1000,
                "security": {"id": "s1", "ticker": "VTI"},
                "holdings": [{"id": "x1", "quantity": 4, "account": {"id": "a9", "displayName": "Brokerage"}}],
            }}]},
        },
    }))

    portfolio = await client.get_portfolio(start_date="2024-01-01")

    assert request_body(client.requests[0])["variables"] == {"portfolioInput": {"startDate": "2024-01-01"}}
    node = portfolio.aggregate_holdings.edges[0].node
    assert node.security.ticker == "VTI"
    assert node.holdings[0].account.display_name == "Brokerage"
    assert portfolio.performance.historical_chart[0].return_percent == 1.5


@pytest.mark.asyncio
async def test_http_401_raises_authentication_error(make_client):
    client = make_client(lambda request: httpx.Response(401, text="nope"))
    with pytest.raises(AuthenticationError):
        await client.get_categories()


@pytest.mark.asyncio
async def test_unauthorized_graphql_error_raises_authentication_error(make_client):
    client = make_client(lambda request: graphql_response(errors=[{"message": "Unauthorized"}]))
    with pytest.raises(AuthenticationError):
        await client.get_accounts()


@pytest.mark.asyncio
async def test_graphql_error_raises_operation_error(make_client):
    client = make_client(lambda request: graphql_response(errors=[{"message": "boom"}]))
    with pytest.raises(OperationError) as exc_info:
        await client.get_categories()
    assert exc_info.value.operation == "get categories"
    assert str(exc_info.value) == "Failed to get categories: boom"


@pytest.mark.asyncio
async def test_server_error_raises_operation_error(make_client):
    client = make_client(lambda request: httpx.Response(500, text="internal"))
    with pytest.raises(OperationError) as exc_info:
        await client.get_transactions()
    assert "API error 500" in str(exc_info.value)


@pytest.mark.asyncio
async def test_network_error_raises_operation_error(make_client):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    with pytest.raises(OperationError) as exc_info:
        await client.get_accounts()
    assert "Network error" in str(exc_info.value)


@pytest.mark.asyncio
async def test_invalid_json_raises_operation_error(make_client):
    client = make_client(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(OperationError):
        await client.get_accounts()


@pytest.mark.asyncio
async def test_malformed_record_raises_operation_error(make_client):
    client = make_client(lambda request: graphql_response({"accounts": [{"displayName": "no id"}]}))
    with pytest.raises(OperationError) as exc_info:
        await client.get_accounts()
    assert "Malformed response" in str(exc_info.value)
