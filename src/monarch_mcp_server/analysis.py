"""
Aggregations over Monarch records.

Pure functions: no I/O, results are plain JSON-ready dicts.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence

from .models import Account, Transaction

UNCATEGORIZED = "Uncategorized"


def spending_by_category(transactions: Iterable[Transaction]) -> Dict[str, Any]:
    """
    Total spending per category name.

    Only negative (expense) amounts count, accumulated by absolute value.
    Categories are sorted by amount, largest first.
    """
    totals: Dict[str, float] = {}
    for t in transactions:
        if t.amount >= 0:
            continue
        name = (t.category.name if t.category else None) or UNCATEGORIZED
        totals[name] = totals.get(name, 0) + abs(t.amount)

    categories = [
        {"category": name, "amount": amount}
        for name, amount in sorted(totals.items(), key=lambda item: item[1], reverse=True)
    ]
    return {"categories": categories, "total": sum(totals.values())}


def net_worth(accounts: Iterable[Account]) -> Dict[str, Any]:
    """
    Net worth from accounts flagged for inclusion.

    Accounts whose type group is neither "asset" nor "liability" are ignored.
    """
    total_assets = 0.0
    total_liabilities = 0.0
    asset_accounts: List[Dict[str, Any]] = []
    liability_accounts: List[Dict[str, Any]] = []

    for account in accounts:
        if not account.include_in_net_worth:
            continue

        balance = account.current_balance or 0
        group = ((account.type.group if account.type else None) or "").lower()
        entry = {
            "name": account.display_name,
            "type": account.type.name if account.type else None,
            "balance": balance,
        }

        if group == "asset":
            total_assets += balance
            asset_accounts.append(entry)
        elif group == "liability":
            total_liabilities += abs(balance)
            liability_accounts.append(entry)

    return {
        "netWorth": total_assets - total_liabilities,
        "totalAssets": total_assets,
        "totalLiabilities": total_liabilities,
        "assetAccounts": asset_accounts,
        "liabilityAccounts": liability_accounts,
    }


def income_and_expenses(transactions: Sequence[Transaction]) -> Dict[str, Any]:
    """Split transactions into income (positive) and expenses (the rest)."""
    total_income = 0.0
    total_expenses = 0.0
    income_count = 0
    expense_count = 0

    for t in transactions:
        if t.amount > 0:
            total_income += t.amount
            income_count += 1
        else:
            total_expenses += abs(t.amount)
            expense_count += 1

    return {
        "totalIncome": total_income,
        "totalExpenses": total_expenses,
        "netSavings": total_income - total_expenses,
        "transactionCount": len(transactions),
        "incomeTransactionCount": income_count,
        "expenseTransactionCount": expense_count,
    }


def _text_fields(t: Transaction) -> List[str]:
    fields = [t.plaid_name, t.notes, t.merchant.name if t.merchant else None]
    return [f for f in fields if f]


def search_transactions(
    transactions: Iterable[Transaction],
    query: Optional[str] = None,
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    limit: int = 50,
) -> List[Transaction]:
    """
    Filter transactions by text and amount.

    The query matches case-insensitively against the plaid name, notes and
    merchant name; any one matching is enough. Amount bounds are inclusive
    and compare absolute values.
    """
    needle = query.lower() if query else None
    results: List[Transaction] = []

    for t in transactions:
        if len(results) >= limit:
            break
        if needle and not any(needle in field.lower() for field in _text_fields(t)):
            continue
        if min_amount is not None and abs(t.amount) < min_amount:
            continue
        if max_amount is not None and abs(t.amount) > max_amount:
            continue
        results.append(t)

    return results
