"""
Tool registry and executor.

Every tool is a coroutine taking the API client and its validated input model
and returning an envelope: {"success": True, "data": ..., "summary": "..."}.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from mcp import types
from pydantic_core import to_jsonable_python

from . import analysis
from .api import MonarchClient, month_date_range
from .models import (
    ToolInput,
    EmptyInput,
    GetAccountBalanceInput,
    GetTransactionsInput,
    DateRangeInput,
    SearchTransactionsInput,
    GetMonthlySummaryInput,
    GetAccountSnapshotsInput,
    GetPortfolioInput,
)

logger = logging.getLogger(__name__)

AGGREGATION_FETCH_LIMIT = 5000
SEARCH_FETCH_LIMIT = 1000


# ============================================================================
# ERRORS
# ============================================================================

class ToolError(Exception):
    """Base class for errors raised while executing tools."""


class UnknownToolError(ToolError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class NotFoundError(ToolError):
    """Raised when a requested entity does not exist."""


class ToolExecutionError(ToolError):
    """Raised when a tool fails; the original error is chained as __cause__."""

    def __init__(self, tool: str, message: str):
        self.tool = tool
        super().__init__(message)


# ============================================================================
# REGISTRY
# ============================================================================

Handler = Callable[[MonarchClient, Any], Awaitable[Dict[str, Any]]]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    title: str
    description: str
    input_model: Type[ToolInput]
    handler: Handler

    @property
    def action(self) -> str:
        """Phrase used in failure messages, e.g. 'get net worth'."""
        return self.name.replace("_", " ")

    def to_mcp_tool(self) -> types.Tool:
        return types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_model.model_json_schema(),
            annotations=types.ToolAnnotations(
                title=self.title,
                readOnlyHint=True,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=True,
            ),
        )


TOOLS: Dict[str, ToolDefinition] = {}


def tool(name: str, title: str, description: str, input_model: Type[ToolInput] = EmptyInput):
    """Register a handler in the tool catalog."""
    def decorator(func: Handler) -> Handler:
        TOOLS[name] = ToolDefinition(
            name=name,
            title=title,
            description=description,
            input_model=input_model,
            handler=func,
        )
        return func
    return decorator


def format_currency(amount: float) -> str:
    return f"${amount:,.2f}"


def envelope(data: Any, summary: str, **extra: Any) -> Dict[str, Any]:
    """Wrap a successful result."""
    result = {
        "success": True,
        "data": to_jsonable_python(data, by_alias=True),
        "summary": summary,
    }
    result.update(extra)
    return result


# ============================================================================
# ACCOUNT TOOLS
# ============================================================================

@tool(
    name="get_accounts",
    title="List Accounts",
    description="Get all financial accounts from Monarch Money",
)
async def get_accounts(client: MonarchClient, params: EmptyInput) -> Dict[str, Any]:
    accounts = await client.get_accounts()
    return envelope(accounts, f"Found {len(accounts)} accounts")


@tool(
    name="get_account_balance",
    title="Get Account Balance",
    description="Get the current balance for a specific account",
    input_model=GetAccountBalanceInput,
)
async def get_account_balance(client: MonarchClient, params: GetAccountBalanceInput) -> Dict[str, Any]:
    accounts = await client.get_accounts()
    account = next((a for a in accounts if a.id == params.account_id), None)
    if account is None:
        raise NotFoundError(f"Account with ID {params.account_id} not found")

    data = {
        "accountId": account.id,
        "accountName": account.display_name,
        "currentBalance": account.current_balance,
        "accountType": account.type.name if account.type else None,
        "institutionName": account.institution.name if account.institution else None,
    }
    balance = format_currency(account.current_balance or 0)
    return envelope(data, f"{account.display_name}: {balance}")


@tool(
    name="get_net_worth",
    title="Get Net Worth",
    description="Get current net worth and assets/liabilities breakdown",
)
async def get_net_worth(client: MonarchClient, params: EmptyInput) -> Dict[str, Any]:
    accounts = await client.get_accounts()
    result = analysis.net_worth(accounts)
    summary = (
        f"Net worth: {format_currency(result['netWorth'])} "
        f"(Assets: {format_currency(result['totalAssets'])}, "
        f"Liabilities: {format_currency(result['totalLiabilities'])})"
    )
    return envelope(result, summary)


@tool(
    name="get_account_snapshots",
    title="Get Account Balance History",
    description="Get balance history for a specific account over time",
    input_model=GetAccountSnapshotsInput,
)
async def get_account_snapshots(client: MonarchClient, params: GetAccountSnapshotsInput) -> Dict[str, Any]:
    snapshots = await client.get_account_snapshots(
        params.account_id,
        start_date=params.start_date,
        end_date=params.end_date,
    )
    return envelope(snapshots, f"Retrieved {len(snapshots)} account snapshots")


# ============================================================================
# TRANSACTION TOOLS
# ============================================================================

@tool(
    name="get_transactions",
    title="List Transactions",
    description="Get recent transactions, optionally filtered by account, date range, or amount",
    input_model=GetTransactionsInput,
)
async def get_transactions(client: MonarchClient, params: GetTransactionsInput) -> Dict[str, Any]:
    transactions = await client.get_transactions(
        limit=params.limit,
        account_id=params.account_id,
        start_date=params.start_date,
        end_date=params.end_date,
    )
    return envelope(transactions, f"Retrieved {len(transactions)} transactions")


@tool(
    name="search_transactions",
    title="Search Transactions",
    description="Search transactions by description, merchant, or amount",
    input_model=SearchTransactionsInput,
)
async def search_transactions(client: MonarchClient, params: SearchTransactionsInput) -> Dict[str, Any]:
    transactions = await client.get_transactions(limit=SEARCH_FETCH_LIMIT)
    results = analysis.search_transactions(
        transactions,
        query=params.query,
        min_amount=params.min_amount,
        max_amount=params.max_amount,
        limit=params.limit,
    )
    return envelope(results, f"Found {len(results)} transactions matching criteria")


@tool(
    name="get_spending_by_category",
    title="Get Spending by Category",
    description="Get spending breakdown by category for a specific time period",
    input_model=DateRangeInput,
)
async def get_spending_by_category(client: MonarchClient, params: DateRangeInput) -> Dict[str, Any]:
    transactions = await client.get_transactions(
        limit=AGGREGATION_FETCH_LIMIT,
        start_date=params.start_date,
        end_date=params.end_date,
    )
    result = analysis.spending_by_category(transactions)
    summary = (
        f"Spending breakdown for {len(result['categories'])} categories "
        f"from {params.start_date} to {params.end_date}"
    )
    return envelope(result["categories"], summary, totalSpent=result["total"])


@tool(
    name="get_monthly_summary",
    title="Get Monthly Summary",
    description="Get monthly financial summary including income, expenses, and savings",
    input_model=GetMonthlySummaryInput,
)
async def get_monthly_summary(client: MonarchClient, params: GetMonthlySummaryInput) -> Dict[str, Any]:
    start, end = month_date_range(params.year, params.month)
    transactions = await client.get_transactions(
        limit=AGGREGATION_FETCH_LIMIT,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
    )
    totals = analysis.income_and_expenses(transactions)
    data = {
        "month": params.month,
        "year": params.year,
        "startDate": start.isoformat(),
        "endDate": end.isoformat(),
        **totals,
    }
    summary = (
        f"{params.year}-{params.month:02d}: "
        f"Income {format_currency(totals['totalIncome'])}, "
        f"Expenses {format_currency(totals['totalExpenses'])}, "
        f"Net {format_currency(totals['netSavings'])}"
    )
    return envelope(data, summary)


# ============================================================================
# BUDGET & CATEGORY TOOLS
# ============================================================================

@tool(
    name="get_budget_summary",
    title="Get Budget Summary",
    description="Get current budget summary showing planned vs actual spending",
)
async def get_budget_summary(client: MonarchClient, params: EmptyInput) -> Dict[str, Any]:
    budgets = await client.get_budgets()
    return envelope(budgets, f"Retrieved budget information for {len(budgets)} categories")


@tool(
    name="get_categories",
    title="List Categories",
    description="Get all transaction categories available in Monarch Money",
)
async def get_categories(client: MonarchClient, params: EmptyInput) -> Dict[str, Any]:
    categories = await client.get_categories()
    return envelope(categories, f"Retrieved {len(categories)} transaction categories")


# ============================================================================
# INVESTMENT TOOLS
# ============================================================================

@tool(
    name="get_portfolio",
    title="Get Investment Portfolio",
    description="Get current investment portfolio summary, including holdings and performance",
    input_model=GetPortfolioInput,
)
async def get_portfolio(client: MonarchClient, params: GetPortfolioInput) -> Dict[str, Any]:
    portfolio = await client.get_portfolio(start_date=params.start_date, end_date=params.end_date)
    holdings = portfolio.aggregate_holdings.edges if portfolio.aggregate_holdings else []
    return envelope(portfolio, f"Retrieved portfolio summary with {len(holdings)} holdings")


# ============================================================================
# EXECUTOR
# ============================================================================

class ToolExecutor:
    """Dispatches tool calls by name against one API client."""

    def __init__(self, client: MonarchClient):
        self._client = client

    def list_tools(self) -> List[types.Tool]:
        return [definition.to_mcp_tool() for definition in TOOLS.values()]

    async def execute(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run a tool.

        Raises:
            UnknownToolError: If no tool has this name
            ToolExecutionError: If validation, the API call or reshaping fails
        """
        definition = TOOLS.get(name)
        if definition is None:
            raise UnknownToolError(name)

        try:
            params = definition.input_model.model_validate(arguments or {})
            return await definition.handler(self._client, params)
        except Exception as e:
            logger.warning("Tool %s failed: %s", name, e)
            raise ToolExecutionError(name, f"Failed to {definition.action}: {e}") from e
