"""
Monarch Money API Client - Handles all communication with Monarch's GraphQL API.

SECURITY AUDIT NOTES:
- All requests go ONLY to api.monarch.com
- Token is retrieved from the MONARCH_TOKEN environment variable
- Token is NEVER logged, printed, or sent elsewhere
- Responses are parsed into read-only records; nothing is written back
"""

import logging
import os
from datetime import date, timedelta
from typing import Optional, Dict, Any, List, Tuple, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .models import Account, Budget, Category, Portfolio, Snapshot, Transaction

logger = logging.getLogger(__name__)

# ============================================================================
# CONFIGURATION - The only external endpoint this code contacts
# ============================================================================

MONARCH_API_BASE = "https://api.monarch.com"
GRAPHQL_PATH = "/graphql"
REQUEST_TIMEOUT = 30.0  # seconds
TOKEN_ENV_VAR = "MONARCH_TOKEN"

RecordT = TypeVar("RecordT", bound=BaseModel)


# ============================================================================
# ERRORS
# ============================================================================

class MonarchAPIError(Exception):
    """Base class for errors raised by the API client."""


class ConfigurationError(MonarchAPIError):
    """Raised when the client cannot be configured (e.g. no token)."""


class AuthenticationError(MonarchAPIError):
    """Raised when Monarch rejects the token."""

    def __init__(self, message: str = (
        "Authentication failed. Please check your MONARCH_TOKEN environment variable."
    )):
        super().__init__(message)


class OperationError(MonarchAPIError):
    """Raised for any other failure of a remote operation."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"Failed to {operation}: {message}")


# ============================================================================
# TOKEN & DATE HELPERS
# ============================================================================

def get_token() -> str:
    """
    Retrieve the Monarch token from the environment.

    Raises:
        ConfigurationError: If MONARCH_TOKEN is unset or empty
    """
    token = os.environ.get(TOKEN_ENV_VAR, "").strip()
    if not token:
        raise ConfigurationError(
            f"{TOKEN_ENV_VAR} environment variable is required. "
            "Please set it to your Monarch Money authentication token."
        )
    return token


def month_date_range(year: int, month: int) -> Tuple[date, date]:
    """Return the first and last calendar day of a month."""
    first = date(year, month, 1)
    if month == 12:
        return first, date(year, 12, 31)
    return first, date(year, month + 1, 1) - timedelta(days=1)


def current_month_range() -> Tuple[date, date]:
    """Return the first and last day of the current month."""
    today = date.today()
    return month_date_range(today.year, today.month)


def _is_unauthorized(message: str) -> bool:
    lowered = message.lower()
    return "401" in lowered or "unauthorized" in lowered


# ============================================================================
# GRAPHQL QUERIES
# ============================================================================

ACCOUNTS_QUERY = """
query GetAccounts {
  accounts {
    id
    displayName
    mask
    isAsset
    isHidden
    currentBalance
    displayBalance
    includeInNetWorth
    isManual
    transactionsCount
    holdingsCount
    updatedAt
    type {
      name
      group
      display
    }
    subtype {
      name
      display
    }
    institution {
      id
      name
    }
  }
}
"""

TRANSACTIONS_QUERY = """
query GetTransactionsList(
  $offset: Int, $limit: Int, $filters: TransactionFilterInput, $orderBy: TransactionOrdering
) {
  allTransactions(filters: $filters) {
    totalCount
    results(offset: $offset, limit: $limit, orderBy: $orderBy) {
      id
      amount
      pending
      date
      plaidName
      notes
      category {
        id
        name
      }
      merchant {
        id
        name
      }
      account {
        id
        displayName
      }
    }
  }
}
"""

BUDGETS_QUERY = """
query Common_GetJointPlanningData($startDate: Date!, $endDate: Date!) {
  budgetSystem
  budgetData(startMonth: $startDate, endMonth: $endDate) {
    monthlyAmountsByCategory {
      category {
        id
        name
      }
      monthlyAmounts {
        month
        plannedAmount
        actualAmount
      }
    }
  }
}
"""

CATEGORIES_QUERY = """
query GetCategories {
  categories {
    id
    name
    systemCategory
    group {
      id
      name
    }
  }
}
"""

SNAPSHOTS_QUERY = """
query GetAccountSnapshots($filters: AccountSnapshotFilters!) {
  accountSnapshots(filters: $filters) {
    date
    balance
    signedBalance
  }
}
"""

PORTFOLIO_QUERY = """
query GetPortfolio($portfolioInput: PortfolioInput) {
  portfolio(input: $portfolioInput) {
    performance {
      totalValue
      totalBasis
      totalChangePercent
      totalChangeDollars
      oneDayChangePercent
      historicalChart {
        date
        returnPercent
      }
      benchmarks {
        security {
          id
          ticker
          name
          oneDayChangePercent
        }
        historicalChart {
          date
          returnPercent
        }
      }
    }
    aggregateHoldings {
      edges {
        node {
          id
          quantity
          basis
          totalValue
          securityPriceChangeDollars
          securityPriceChangePercent
          lastSyncedAt
          holdings {
            id
            type
            typeDisplay
            name
            ticker
            closingPrice
            closingPriceUpdatedAt
            quantity
            value
            account {
              id
              mask
              displayName
              currentBalance
              institution {
                id
                name
              }
              type {
                name
                display
              }
              subtype {
                name
                display
              }
            }
          }
          security {
            id
            name
            ticker
            currentPrice
            currentPriceUpdatedAt
            closingPrice
            type
            typeDisplay
          }
        }
      }
    }
  }
}
"""


# ============================================================================
# API CLIENT
# ============================================================================

class MonarchClient:
    """
    Async client for the Monarch Money GraphQL API.

    All methods in this class:
    - Only contact api.monarch.com
    - Issue exactly one GraphQL query per call
    - Raise AuthenticationError or OperationError on failure
    """

    def __init__(
        self,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Monarch client.

        Args:
            token: Optional API token. If not provided, read from MONARCH_TOKEN.
            transport: Optional httpx transport, used in place of the network.
        """
        self._token = token or get_token()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=MONARCH_API_BASE,
                headers={
                    "Authorization": f"Token {self._token}",
                    "Content-Type": "application/json",
                    "Client-Platform": "web",
                },
                timeout=REQUEST_TIMEOUT,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _query(
        self,
        operation: str,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Execute a GraphQL query against Monarch.

        Args:
            operation: Human-readable operation name used in error messages
            query: GraphQL query document
            variables: Query variables

        Returns:
            The ``data`` object of the GraphQL response (empty dict if absent)

        Raises:
            AuthenticationError: If the token is rejected
            OperationError: On any other failure
        """
        client = await self._get_client()
        logger.debug("Running GraphQL operation: %s", operation)

        try:
            response = await client.post(
                GRAPHQL_PATH,
                json={"query": query, "variables": variables or {}},
            )
            response.raise_for_status()
            payload = response.json()

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 401:
                raise AuthenticationError() from e
            detail = e.response.text[:200]
            if _is_unauthorized(detail):
                raise AuthenticationError() from e
            raise OperationError(operation, f"API error {status}: {detail}") from e

        except httpx.TimeoutException as e:
            raise OperationError(operation, "Request timed out") from e
        except httpx.RequestError as e:
            message = str(e) or type(e).__name__
            if _is_unauthorized(message):
                raise AuthenticationError() from e
            raise OperationError(operation, f"Network error: {message}") from e
        except ValueError as e:
            raise OperationError(operation, "Invalid JSON in response") from e

        if not isinstance(payload, dict):
            raise OperationError(operation, "Unexpected response shape")

        errors = payload.get("errors")
        if errors:
            message = "; ".join(
                str(err.get("message", "Unknown error")) if isinstance(err, dict) else str(err)
                for err in errors
            )
            if _is_unauthorized(message):
                raise AuthenticationError()
            raise OperationError(operation, message)

        return payload.get("data") or {}

    @staticmethod
    def _parse(operation: str, model: Type[RecordT], items: Optional[List[Any]]) -> List[RecordT]:
        try:
            return [model.model_validate(item) for item in items or []]
        except ValidationError as e:
            raise OperationError(operation, f"Malformed response: {e}") from e

    # ========================================================================
    # ACCOUNT OPERATIONS
    # ========================================================================

    async def get_accounts(self) -> List[Account]:
        """Get all accounts linked to the household."""
        data = await self._query("get accounts", ACCOUNTS_QUERY)
        return self._parse("get accounts", Account, data.get("accounts"))

    async def get_account_snapshots(
        self,
        account_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Snapshot]:
        """Get the balance history of one account."""
        filters: Dict[str, Any] = {"accountId": account_id}
        if start_date:
            filters["startDate"] = start_date
        if end_date:
            filters["endDate"] = end_date

        data = await self._query(
            "get account snapshots", SNAPSHOTS_QUERY, {"filters": filters}
        )
        return self._parse("get account snapshots", Snapshot, data.get("accountSnapshots"))

    # ========================================================================
    # TRANSACTION OPERATIONS
    # ========================================================================

    async def get_transactions(
        self,
        limit: int = 100,
        account_id: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        offset: int = 0,
    ) -> List[Transaction]:
        """Get transactions, newest first as ordered by Monarch."""
        filters: Dict[str, Any] = {}
        if account_id:
            filters["accountId"] = account_id
        if start_date:
            filters["startDate"] = start_date
        if end_date:
            filters["endDate"] = end_date

        variables = {
            "offset": offset,
            "limit": limit,
            "filters": filters,
            "orderBy": "date",
        }
        data = await self._query("get transactions", TRANSACTIONS_QUERY, variables)
        results = (data.get("allTransactions") or {}).get("results")
        return self._parse("get transactions", Transaction, results)

    # ========================================================================
    # BUDGET & CATEGORY OPERATIONS
    # ========================================================================

    async def get_budgets(self) -> List[Budget]:
        """Get planned vs. actual amounts per category for the current month."""
        start, end = current_month_range()
        data = await self._query(
            "get budgets",
            BUDGETS_QUERY,
            {"startDate": start.isoformat(), "endDate": end.isoformat()},
        )
        month_prefix = start.isoformat()[:7]
        by_category = (data.get("budgetData") or {}).get("monthlyAmountsByCategory") or []

        budgets = []
        for entry in by_category:
            category = entry.get("category") or {}
            current = next(
                (
                    amounts for amounts in entry.get("monthlyAmounts") or []
                    if str(amounts.get("month", "")).startswith(month_prefix)
                ),
                {},
            )
            planned = current.get("plannedAmount") or 0
            actual = current.get("actualAmount") or 0
            budgets.append({
                "id": category.get("id"),
                "name": category.get("name"),
                "amount": planned,
                "spent": actual,
                "remaining": planned - actual,
            })
        return self._parse("get budgets", Budget, budgets)

    async def get_categories(self) -> List[Category]:
        """Get all transaction categories."""
        data = await self._query("get categories", CATEGORIES_QUERY)
        return self._parse("get categories", Category, data.get("categories"))

    # ========================================================================
    # INVESTMENT OPERATIONS
    # ========================================================================

    async def get_portfolio(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Portfolio:
        """Get portfolio performance and holdings aggregated by security."""
        portfolio_input: Dict[str, Any] = {}
        if start_date:
            portfolio_input["startDate"] = start_date
        if end_date:
            portfolio_input["endDate"] = end_date

        data = await self._query(
            "get portfolio", PORTFOLIO_QUERY, {"portfolioInput": portfolio_input}
        )
        return self._parse("get portfolio", Portfolio, [data.get("portfolio") or {}])[0]
