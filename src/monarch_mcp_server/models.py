"""
Pydantic models for MCP tool inputs and Monarch API records.

Tool inputs are validated before anything is sent to Monarch. Records mirror
the GraphQL response shape: fields keep Monarch's camelCase names on the wire,
nested objects the API may omit are Optional, and unknown fields pass through.
"""

from typing import Optional, List

from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

TRANSACTIONS_MAX_LIMIT = 500
DEFAULT_LIMIT = 50

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


# ============================================================================
# RECORDS
# ============================================================================

class Record(BaseModel):
    """Base for read-only records received from Monarch."""
    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class AccountType(Record):
    name: Optional[str] = None
    group: Optional[str] = None
    display: Optional[str] = None


class AccountSubtype(Record):
    name: Optional[str] = None
    display: Optional[str] = None


class Institution(Record):
    id: Optional[str] = None
    name: Optional[str] = None


class Account(Record):
    """A linked or manual account."""
    id: str
    display_name: Optional[str] = None
    current_balance: Optional[float] = None
    include_in_net_worth: Optional[bool] = None
    type: Optional[AccountType] = None
    subtype: Optional[AccountSubtype] = None
    institution: Optional[Institution] = None
    mask: Optional[str] = None


class TransactionCategory(Record):
    id: Optional[str] = None
    name: Optional[str] = None


class Merchant(Record):
    id: Optional[str] = None
    name: Optional[str] = None


class AccountRef(Record):
    """Back-reference from a transaction to the account it belongs to."""
    id: Optional[str] = None
    display_name: Optional[str] = None


class Transaction(Record):
    """A single transaction. Negative amounts are spending."""
    id: str
    amount: float
    date: str
    plaid_name: Optional[str] = None
    notes: Optional[str] = None
    pending: Optional[bool] = None
    category: Optional[TransactionCategory] = None
    merchant: Optional[Merchant] = None
    account: Optional[AccountRef] = None


class Budget(Record):
    """Planned vs. actual amounts for one category in the current month."""
    id: Optional[str] = None
    name: Optional[str] = None
    amount: float = 0
    spent: float = 0
    remaining: float = 0


class CategoryGroup(Record):
    id: Optional[str] = None
    name: Optional[str] = None


class Category(Record):
    id: str
    name: str
    system_category: Optional[str] = None
    group: Optional[CategoryGroup] = None


class Snapshot(Record):
    """Balance of one account on one date."""
    date: str
    balance: Optional[float] = None
    signed_balance: Optional[float] = None


class ChartPoint(Record):
    date: str
    return_percent: Optional[float] = None


class BenchmarkSecurity(Record):
    id: Optional[str] = None
    ticker: Optional[str] = None
    name: Optional[str] = None
    one_day_change_percent: Optional[float] = None


class Benchmark(Record):
    security: Optional[BenchmarkSecurity] = None
    historical_chart: List[ChartPoint] = Field(default_factory=list)


class Performance(Record):
    total_value: Optional[float] = None
    total_basis: Optional[float] = None
    total_change_percent: Optional[float] = None
    total_change_dollars: Optional[float] = None
    one_day_change_percent: Optional[float] = None
    historical_chart: List[ChartPoint] = Field(default_factory=list)
    benchmarks: List[Benchmark] = Field(default_factory=list)


class Security(Record):
    id: Optional[str] = None
    name: Optional[str] = None
    ticker: Optional[str] = None
    current_price: Optional[float] = None
    current_price_updated_at: Optional[str] = None
    closing_price: Optional[float] = None
    type: Optional[str] = None
    type_display: Optional[str] = None


class Holding(Record):
    """One position in a security, held in a specific account."""
    id: Optional[str] = None
    type: Optional[str] = None
    type_display: Optional[str] = None
    name: Optional[str] = None
    ticker: Optional[str] = None
    closing_price: Optional[float] = None
    closing_price_updated_at: Optional[str] = None
    quantity: Optional[float] = None
    value: Optional[float] = None
    account: Optional[Account] = None


class AggregateHolding(Record):
    """All holdings of one security across accounts."""
    id: Optional[str] = None
    quantity: Optional[float] = None
    basis: Optional[float] = None
    total_value: Optional[float] = None
    security_price_change_dollars: Optional[float] = None
    security_price_change_percent: Optional[float] = None
    last_synced_at: Optional[str] = None
    holdings: List[Holding] = Field(default_factory=list)
    security: Optional[Security] = None


class AggregateHoldingEdge(Record):
    node: AggregateHolding


class AggregateHoldingConnection(Record):
    edges: List[AggregateHoldingEdge] = Field(default_factory=list)


class Portfolio(Record):
    performance: Optional[Performance] = None
    aggregate_holdings: Optional[AggregateHoldingConnection] = None


# ============================================================================
# TOOL INPUTS
# ============================================================================

class ToolInput(BaseModel):
    """Base model for tool arguments. Parameters use camelCase on the wire."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class EmptyInput(ToolInput):
    """Input for tools that take no arguments."""
    pass


class GetAccountBalanceInput(ToolInput):
    """Input for getting one account's balance."""
    account_id: str = Field(..., description="The ID of the account")


class GetTransactionsInput(ToolInput):
    """Input for listing transactions."""
    account_id: Optional[str] = Field(
        default=None, description="Optional: Filter by specific account ID"
    )
    limit: int = Field(
        default=DEFAULT_LIMIT,
        description=f"Number of transactions to retrieve (default: 50, max: {TRANSACTIONS_MAX_LIMIT})",
    )
    start_date: Optional[str] = Field(
        default=None, description="Start date in YYYY-MM-DD format", pattern=DATE_PATTERN
    )
    end_date: Optional[str] = Field(
        default=None, description="End date in YYYY-MM-DD format", pattern=DATE_PATTERN
    )

    @field_validator("limit")
    @classmethod
    def clamp_limit(cls, v: int) -> int:
        """Cap the page size at the maximum Monarch is asked for; 0 means the default."""
        if v < 1:
            return DEFAULT_LIMIT
        return min(v, TRANSACTIONS_MAX_LIMIT)


class DateRangeInput(ToolInput):
    """Input for tools that require a date range."""
    start_date: str = Field(..., description="Start date in YYYY-MM-DD format", pattern=DATE_PATTERN)
    end_date: str = Field(..., description="End date in YYYY-MM-DD format", pattern=DATE_PATTERN)


class SearchTransactionsInput(ToolInput):
    """Input for searching transactions."""
    model_config = ConfigDict(str_strip_whitespace=False)

    query: Optional[str] = Field(
        default=None, description="Search query for transaction description or merchant"
    )
    min_amount: Optional[float] = Field(default=None, description="Minimum transaction amount")
    max_amount: Optional[float] = Field(default=None, description="Maximum transaction amount")
    limit: int = Field(default=DEFAULT_LIMIT, description="Number of results to return (default: 50)")

    @field_validator("limit")
    @classmethod
    def default_limit(cls, v: int) -> int:
        return v if v >= 1 else DEFAULT_LIMIT


class GetMonthlySummaryInput(ToolInput):
    """Input for a month's income/expense summary."""
    year: int = Field(..., description="Year (e.g., 2024)", ge=1, le=9999)
    month: int = Field(..., description="Month (1-12)", ge=1, le=12)


class GetAccountSnapshotsInput(ToolInput):
    """Input for an account's balance history."""
    account_id: str = Field(..., description="The ID of the account")
    start_date: Optional[str] = Field(
        default=None, description="Start date in YYYY-MM-DD format", pattern=DATE_PATTERN
    )
    end_date: Optional[str] = Field(
        default=None, description="End date in YYYY-MM-DD format", pattern=DATE_PATTERN
    )


class GetPortfolioInput(ToolInput):
    """Input for the investment portfolio."""
    start_date: Optional[str] = Field(
        default=None, description="Start date in YYYY-MM-DD format", pattern=DATE_PATTERN
    )
    end_date: Optional[str] = Field(
        default=None, description="End date in YYYY-MM-DD format", pattern=DATE_PATTERN
    )
