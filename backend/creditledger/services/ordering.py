"""Transaction ordering and same-window sale merging."""

import hashlib
from typing import Iterable, List

from aws_lambda_powertools import Logger

from creditledger.models.entities import ZERO, Column, Operation, Source, Transaction
from creditledger.services.synthesizer import (
    ADVANCE_LABEL, CREDIT_LABEL, PRIOR_BALANCE_LABEL, SALES_LABEL
)

logger = Logger(service="creditledger-ordering")

# Manual category labels that mean the same thing as a virtual source
PRIOR_BALANCE_LABELS = {PRIOR_BALANCE_LABEL, '上欠'}
SALES_LABELS = {SALES_LABEL, '收'}
PHONE_LABELS = {'出'}
WIN_LABELS = {'中'}
CREDIT_LABELS = {CREDIT_LABEL, '来'}
ADVANCE_LABELS = {ADVANCE_LABEL, '支钱'}

OTHER_PRIORITY = 7


def is_prior_balance(txn: Transaction) -> bool:
    return txn.source is Source.DRAW_BALANCE or txn.label in PRIOR_BALANCE_LABELS


def is_sale(txn: Transaction) -> bool:
    return txn.source is Source.SALE or txn.label in SALES_LABELS


def priority(txn: Transaction) -> int:
    """Category priority used to order same-day transactions (1 sorts first)."""
    if is_prior_balance(txn):
        return 1
    if is_sale(txn):
        return 2
    if txn.label in PHONE_LABELS:
        return 3
    if txn.label in WIN_LABELS:
        return 4
    if txn.source is Source.CREDIT or txn.label in CREDIT_LABELS:
        return 5
    if txn.source is Source.ADVANCE or txn.label in ADVANCE_LABELS:
        return 6
    return OTHER_PRIORITY


def sort_key(txn: Transaction):
    return (txn.date, priority(txn))


def order_transactions(transactions: Iterable[Transaction]) -> List[Transaction]:
    """Sort by date, then category priority.

    ``sorted`` is stable, so ties keep their incoming (store) order.
    """
    return sorted(transactions, key=sort_key)


def merge_sales(transactions: Iterable[Transaction]) -> List[Transaction]:
    """Collapse multiple sale-origin transactions into one aggregate.

    Call with the transactions of a single reporting window. When two or more
    sale-origin transactions are present they are replaced by one whose
    amount and operation carry their net effect and whose date is the latest
    among them. The result is re-ordered.

    Args:
        transactions: Transactions of one reporting window

    Returns:
        Ordered transactions with sales merged
    """
    ordered = order_transactions(transactions)
    sales = [t for t in ordered if t.source is Source.SALE]
    if len(sales) < 2:
        return ordered

    net = sum((t.net for t in sales), ZERO)
    member_ids = ','.join(t.id or '' for t in sales)
    digest = hashlib.sha1(member_ids.encode('utf-8')).hexdigest()[:12]

    aggregate = Transaction(
        id=f"{Source.SALE.value}-agg-{digest}",
        client_id=sales[0].client_id,
        date=max(t.date for t in sales),
        description='; '.join(t.description for t in sales if t.description),
        label=SALES_LABEL,
        amount=abs(net),
        operation=Operation.ADD if net >= 0 else Operation.SUBTRACT,
        column=Column.MAIN,
        is_visible=True,
        source=Source.SALE
    )
    logger.debug(
        "Merged sales in window",
        extra={"client_id": aggregate.client_id, "merged": len(sales), "net": float(net)}
    )

    rest = [t for t in ordered if t.source is not Source.SALE]
    return order_transactions(rest + [aggregate])
