"""Virtual transaction synthesis from auxiliary subsystem rows.

Sales, cash advances, cash credits and draw balances live in their own
tables. Every read converts them into ordinary ``Transaction`` objects so the
rest of the engine only deals with one shape. Nothing produced here is ever
written back to the store.
"""

import hashlib
from decimal import Decimal
from typing import Iterable, List, Optional, Set

from aws_lambda_powertools import Logger

from creditledger.models.entities import (
    AmountRow, Column, DrawBalanceRow, Operation, SaleRow, Source, Transaction
)

logger = Logger(service="creditledger-synthesizer")

SALES_LABEL = 'Sales Opening'
ADVANCE_LABEL = 'Cash Advance'
CREDIT_LABEL = 'Cash Credit'
PRIOR_BALANCE_LABEL = 'Previous Balance'


def virtual_id(source: Source, row_id: str) -> str:
    """Stable ID for a synthesized transaction.

    The same source row always yields the same ID, so re-synthesis never
    duplicates and deleting the source row removes the transaction.
    """
    digest = hashlib.sha1(f"{source.value}:{row_id}".encode('utf-8')).hexdigest()[:12]
    return f"{source.value}-{digest}"


def _fmt(value: Decimal) -> str:
    text = f"{value:f}"
    return text.rstrip('0').rstrip('.') if '.' in text else text


def from_sale(row: SaleRow) -> Optional[Transaction]:
    total = row.total
    if total == 0:
        return None
    return Transaction(
        id=virtual_id(Source.SALE, row.id),
        client_id=row.client_id,
        date=row.date,
        description=f"B {_fmt(row.b)} S {_fmt(row.s)} A {_fmt(row.a)} C {_fmt(row.c)}",
        label=SALES_LABEL,
        amount=abs(total),
        operation=Operation.ADD if total >= 0 else Operation.SUBTRACT,
        column=Column.MAIN,
        is_visible=True,
        source=Source.SALE
    )


def from_advance(row: AmountRow) -> Optional[Transaction]:
    if row.amount == 0:
        return None
    return Transaction(
        id=virtual_id(Source.ADVANCE, row.id),
        client_id=row.client_id,
        date=row.date,
        description='',
        label=ADVANCE_LABEL,
        amount=abs(row.amount),
        operation=Operation.ADD,
        column=Column.MAIN,
        is_visible=True,
        source=Source.ADVANCE
    )


def from_credit(row: AmountRow) -> Optional[Transaction]:
    if row.amount == 0:
        return None
    return Transaction(
        id=virtual_id(Source.CREDIT, row.id),
        client_id=row.client_id,
        date=row.date,
        description='',
        label=CREDIT_LABEL,
        amount=abs(row.amount),
        operation=Operation.SUBTRACT,
        column=Column.MAIN,
        is_visible=True,
        source=Source.CREDIT
    )


def from_draw_balance(row: DrawBalanceRow) -> Optional[Transaction]:
    if row.balance == 0:
        return None
    return Transaction(
        id=virtual_id(Source.DRAW_BALANCE, row.id),
        client_id=row.client_id,
        date=row.date,
        description='',
        label=PRIOR_BALANCE_LABEL,
        amount=abs(row.balance),
        operation=Operation.ADD if row.balance >= 0 else Operation.SUBTRACT,
        column=Column.MAIN,
        is_visible=True,
        source=Source.DRAW_BALANCE
    )


def synthesize(sales: Iterable[SaleRow] = (),
               advances: Iterable[AmountRow] = (),
               credits: Iterable[AmountRow] = (),
               draw_balances: Iterable[DrawBalanceRow] = (),
               known_client_ids: Optional[Set[str]] = None) -> List[Transaction]:
    """Convert auxiliary rows into virtual transactions.

    Args:
        sales: Sales rows
        advances: Cash advance rows
        credits: Cash credit rows
        draw_balances: Prior-period draw balance rows
        known_client_ids: When given, rows for any other client are skipped

    Returns:
        Virtual transactions, one per row with a non-zero quantity, in
        input order (sales, advances, credits, draw balances)
    """
    converters = [
        (sales, from_sale),
        (advances, from_advance),
        (credits, from_credit),
        (draw_balances, from_draw_balance),
    ]

    result: List[Transaction] = []
    orphaned = 0
    for rows, convert in converters:
        for row in rows:
            if known_client_ids is not None and row.client_id not in known_client_ids:
                orphaned += 1
                continue
            txn = convert(row)
            if txn is not None:
                result.append(txn)

    if orphaned:
        logger.warning(
            "Skipped auxiliary rows for unknown clients",
            extra={"orphaned_rows": orphaned}
        )

    return result
