"""Column balance calculation service."""

from datetime import date
from typing import Callable, Dict, Iterable, List, Optional

from creditledger.models.entities import ZERO, Column, ColumnBalance, Transaction
from creditledger.services.ordering import is_prior_balance, order_transactions

# A rule decides whether a transaction is dropped from a column's view
ExclusionRule = Callable[[Transaction], bool]


def _empty_prior_balance(txn: Transaction) -> bool:
    return is_prior_balance(txn) and txn.amount == 0


def _any_prior_balance(txn: Transaction) -> bool:
    return is_prior_balance(txn)


# Rules applied to every client, per column
BASE_EXCLUSIONS: Dict[Column, List[ExclusionRule]] = {
    Column.MAIN: [_empty_prior_balance],
}

# Named rules a client code can be mapped to in the override table
OVERRIDE_RULES: Dict[str, Dict[Column, List[ExclusionRule]]] = {
    'exclude_prior_balance': {Column.MAIN: [_any_prior_balance]},
}


def build_override_table(excluded_prior_balance_codes: Iterable[str]) -> Dict[str, str]:
    """Map client codes (upper-cased) to the prior-balance exclusion rule."""
    return {code.upper(): 'exclude_prior_balance' for code in excluded_prior_balance_codes}


def exclusion_rules(column: Column, client_code: Optional[str] = None,
                    overrides: Optional[Dict[str, str]] = None) -> List[ExclusionRule]:
    """Collect the exclusion rules for a column and client.

    Args:
        column: Target column
        client_code: Client code used to look up overrides
        overrides: Client code to rule name table

    Returns:
        Rules to apply before summation
    """
    rules = list(BASE_EXCLUSIONS.get(column, []))
    if client_code and overrides:
        rule_name = overrides.get(client_code.upper())
        if rule_name:
            rules.extend(OVERRIDE_RULES[rule_name].get(column, []))
    return rules


def in_window(txn: Transaction, start: Optional[date], end: Optional[date]) -> bool:
    if start is not None and txn.date < start:
        return False
    if end is not None and txn.date > end:
        return False
    return True


def compute_column_balance(transactions: Iterable[Transaction], column: Column,
                           start: Optional[date] = None, end: Optional[date] = None,
                           client_code: Optional[str] = None,
                           overrides: Optional[Dict[str, str]] = None) -> ColumnBalance:
    """Compute one column's ordered transactions and balance for a window.

    Exclusions remove transactions from the view before summing. Invisible
    transactions stay in the returned list but add nothing to the balance.

    Args:
        transactions: A client's manual and virtual transactions
        column: Column to compute
        start: First day of the window (inclusive), or None for no bound
        end: Last day of the window (inclusive), or None for no bound
        client_code: Client code for per-client overrides
        overrides: Client code to rule name table

    Returns:
        ColumnBalance for the column
    """
    rules = exclusion_rules(column, client_code, overrides)

    selected = [
        t for t in transactions
        if t.column is column
        and in_window(t, start, end)
        and not any(rule(t) for rule in rules)
    ]
    ordered = order_transactions(selected)
    balance = sum((t.net for t in ordered if t.is_visible), ZERO)

    return ColumnBalance(column=column, transactions=ordered, balance=balance)


def compute_all_columns(transactions: Iterable[Transaction],
                        start: Optional[date] = None, end: Optional[date] = None,
                        client_code: Optional[str] = None,
                        overrides: Optional[Dict[str, str]] = None) -> Dict[Column, ColumnBalance]:
    """Compute every column for a window."""
    transactions = list(transactions)
    return {
        column: compute_column_balance(transactions, column, start, end, client_code, overrides)
        for column in Column
    }
