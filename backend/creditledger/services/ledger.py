"""Client ledger service.

Builds a client's full transaction set (manual records plus transactions
synthesized from the sales, advance, credit and draw-balance subsystems) and
computes column balances for reporting windows. ``store`` arguments accept
any object with the record store functions of ``services.database``.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Tuple

from aws_lambda_powertools import Logger

from creditledger.models.entities import (
    Client, Column, ColumnBalance, Operation, Transaction
)
from creditledger.services import database
from creditledger.services.balance_calc import build_override_table, compute_all_columns
from creditledger.services.config import AppConfig
from creditledger.services.ordering import merge_sales, order_transactions
from creditledger.services.payout_calc import (
    WIN_LABEL, PayoutCalculator, PayoutSaveError, build_description, is_payout_description,
    parse_description, reprice_entries, total_winnings
)
from creditledger.services.synthesizer import synthesize
from creditledger.services.weeks import window_containing

logger = Logger(service="creditledger-ledger")


def load_client_transactions(client: Client, store=database) -> List[Transaction]:
    """Read and combine every transaction source for a client.

    Any store error aborts the whole load; no partial set is returned.

    Args:
        client: Client to load
        store: Record store

    Returns:
        Manual and virtual transactions in ledger order
    """
    manual = store.list_manual_transactions(client.id)
    virtual = synthesize(
        sales=store.list_sales(client.id),
        advances=store.list_advances(client.id),
        credits=store.list_credits(client.id),
        draw_balances=store.list_draw_balances(client.id),
        known_client_ids={client.id}
    )
    return order_transactions(manual + virtual)


def window_view(client: Client, as_of: date, config: AppConfig,
                store=database) -> dict:
    """Column balances for the reporting week containing a date.

    Args:
        client: Client to report on
        as_of: Any date inside the wanted week
        config: Application configuration
        store: Record store

    Returns:
        Dict with window bounds and a ColumnBalance per column
    """
    start, end = window_containing(as_of, config.week_end_weekday)
    transactions = [
        t for t in load_client_transactions(client, store)
        if start <= t.date <= end
    ]
    columns = compute_all_columns(
        merge_sales(transactions),
        start=start,
        end=end,
        client_code=client.code,
        overrides=build_override_table(config.prior_balance_excluded_codes)
    )
    return {'start': start, 'end': end, 'columns': columns}


def client_balance(client: Client, config: AppConfig, store=database,
                   as_of: Optional[date] = None) -> Decimal:
    """A client's running main-column balance, optionally up to a date."""
    columns = compute_all_columns(
        load_client_transactions(client, store),
        end=as_of,
        client_code=client.code,
        overrides=build_override_table(config.prior_balance_excluded_codes)
    )
    return columns[Column.MAIN].balance


def entry_date(today: date, window: Optional[Tuple[date, date]] = None) -> date:
    """Date for a new manual entry.

    Today, unless a window is being viewed that does not contain today, in
    which case the window's last day.
    """
    if window is not None:
        start, end = window
        if not start <= today <= end:
            return end
    return today


def add_manual_transaction(client: Client, label: Optional[str], amount, operation: str,
                           column: str = 'main', description: str = '',
                           is_visible: bool = True, entry_on: Optional[date] = None,
                           store=database) -> Transaction:
    """Create a manual ledger entry.

    A quick entry (empty label) in panel1 is a note and never counts toward
    the balance.

    Raises:
        ValueError: If amount is negative or operation/column is unknown
    """
    label = label or ''
    target = Column(column)
    op = Operation(operation)
    if target is Column.PANEL1 and not label.strip():
        op = Operation.NONE

    txn = Transaction(
        id=None,
        client_id=client.id,
        date=entry_on or date.today(),
        description=description or '',
        label=label,
        amount=amount,
        operation=op,
        column=target,
        is_visible=is_visible
    )
    return store.create_transaction(txn)


def save_payout(calculator: PayoutCalculator, client: Client, settlement_date: date,
                store=database) -> Tuple[Transaction, Transaction]:
    """Write a calculator session to a client's ledger.

    Writes the itemized panel1 transaction, then the main balance entry. If
    the second write fails the first is not rolled back; the caller gets a
    PayoutSaveError holding what was saved.

    Returns:
        (panel1 transaction, main transaction) as stored
    """
    itemized, aggregate = calculator.build_transactions(client.id, settlement_date)

    saved_itemized = store.create_transaction(itemized)
    try:
        saved_aggregate = store.create_transaction(aggregate)
    except Exception as exc:
        logger.error(
            "Payout main entry failed after itemized entry was saved",
            extra={"client_id": client.id, "saved_id": saved_itemized.id, "error": str(exc)}
        )
        raise PayoutSaveError(
            "Itemized payout saved but main ledger entry failed", saved=[saved_itemized]
        ) from exc

    logger.info(
        "Payout saved",
        extra={
            "client_id": client.id,
            "entries": len(calculator.entries),
            "amount": float(itemized.amount),
            "date": settlement_date.isoformat()
        }
    )
    return saved_itemized, saved_aggregate


def _is_payout_pair_row(txn: Transaction, other: Transaction, column: Column) -> bool:
    return (
        other.column is column
        and other.date == txn.date
        and other.label == WIN_LABEL
        and other.operation is Operation.SUBTRACT
        and other.amount == txn.amount
    )


def find_main_entry(txn: Transaction, store=database) -> Optional[Transaction]:
    """Find the main-column entry saved together with an itemized payout.

    Payouts with the same date and total are paired in save order: the n-th
    matching itemized row belongs with the n-th matching main row.
    """
    if txn.column is not Column.PANEL1:
        return None

    rows = store.list_manual_transactions(txn.client_id)
    itemized = [
        t.id for t in rows
        if _is_payout_pair_row(txn, t, Column.PANEL1) and is_payout_description(t.description)
    ]
    mains = [t for t in rows if _is_payout_pair_row(txn, t, Column.MAIN) and not t.description]

    if txn.id not in itemized:
        return None
    index = itemized.index(txn.id)
    return mains[index] if index < len(mains) else None


def reprice_payout(transaction_id: str, win_amounts: Mapping[int, object],
                   store=database) -> Optional[Transaction]:
    """Edit per-entry win amounts of a saved payout and re-derive its total.

    The main-column entry saved with the payout gets the new total in the
    same store transaction, so both columns stay in step.

    Args:
        transaction_id: Manual transaction holding a payout description
        win_amounts: Entry index to new win amount

    Returns:
        Updated transaction, or None if it does not exist

    Raises:
        PayoutValidationError: If the description is not a payout description
            or an edit is invalid
    """
    txn = store.get_transaction(transaction_id)
    if txn is None:
        return None

    entries = reprice_entries(parse_description(txn.description), win_amounts)
    fields = {
        'description': build_description(entries),
        'amount': total_winnings(entries)
    }
    changes = {transaction_id: fields}

    main_entry = find_main_entry(txn, store)
    if main_entry is not None:
        changes[main_entry.id] = {'amount': fields['amount']}
    else:
        logger.warning(
            "No main entry found for repriced payout",
            extra={"client_id": txn.client_id, "transaction_id": transaction_id}
        )

    store.update_transactions(changes)

    logger.info(
        "Payout repriced",
        extra={
            "client_id": txn.client_id,
            "transaction_id": transaction_id,
            "main_id": main_entry.id if main_entry else None,
            "amount": float(fields['amount'])
        }
    )
    return txn.with_changes(**fields)


def columns_to_dict(columns: Dict[Column, ColumnBalance]) -> dict:
    return {column.value: balance.to_dict() for column, balance in columns.items()}
