"""Manual ledger transaction routes."""

from datetime import date
from decimal import Decimal
from typing import Optional

from creditledger.models.entities import to_decimal
from creditledger.services import database, ledger
from creditledger.services.config import AppConfig
from creditledger.services.payout_calc import PayoutValidationError
from creditledger.services.weeks import window_containing
from creditledger.utils.http import bad_request, json_response, not_found, parse_iso_date

FLAG_VALUES = {'true': True, '1': True, 'false': False, '0': False}


def _parse_amount(value) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return to_decimal(value)
    except ValueError:
        return None


def _parse_flag(value) -> bool:
    """Accept a JSON boolean or 'true'/'false' (also 1/0).

    Raises:
        ValueError: For anything else
    """
    if isinstance(value, bool):
        return value
    flag = FLAG_VALUES.get(str(value).strip().lower())
    if flag is None:
        raise ValueError(f"is_visible must be true or false, got {value!r}")
    return flag


def handle_create(client_id: str, body: dict, config: AppConfig) -> dict:
    """Add a manual entry to a client's ledger.

    Args:
        client_id: Client ID
        body: Entry data (amount, operation required; label, column,
            description, is_visible, date and window_date optional)
        config: Application configuration

    Returns:
        Response with the created transaction
    """
    client = database.get_client(client_id)
    if client is None:
        return not_found('Client not found')

    amount = _parse_amount(body.get('amount'))
    if amount is None:
        return bad_request('amount must be a number')
    if not body.get('operation'):
        return bad_request('operation is required')

    try:
        if body.get('date'):
            entry_on = parse_iso_date(body['date'])
        else:
            # Entries made while viewing another week land on that week's last day
            window = None
            if body.get('window_date'):
                window = window_containing(parse_iso_date(body['window_date']), config.week_end_weekday)
            entry_on = ledger.entry_date(date.today(), window)

        txn = ledger.add_manual_transaction(
            client,
            label=body.get('label') or '',
            amount=amount,
            operation=body['operation'],
            column=body.get('column', 'main'),
            description=body.get('description') or '',
            is_visible=_parse_flag(body.get('is_visible', True)),
            entry_on=entry_on
        )
    except ValueError as e:
        return bad_request(str(e))

    return json_response(201, txn.to_dict())


def handle_update(transaction_id: str, body: dict) -> dict:
    """Update a manual transaction.

    Args:
        transaction_id: Transaction ID
        body: Fields to change

    Returns:
        Response with the updated transaction
    """
    if database.get_transaction(transaction_id) is None:
        return not_found('Transaction not found')

    fields = dict(body)
    if 'amount' in fields:
        fields['amount'] = _parse_amount(fields['amount'])
        if fields['amount'] is None:
            return bad_request('amount must be a number')
    if 'label' in fields:
        fields['label'] = fields['label'] or ''
    if 'description' in fields:
        fields['description'] = fields['description'] or ''

    try:
        if 'is_visible' in fields:
            fields['is_visible'] = _parse_flag(fields['is_visible'])
        database.update_transaction(transaction_id, fields)
    except ValueError as e:
        return bad_request(str(e))

    return json_response(200, database.get_transaction(transaction_id).to_dict())


def handle_delete(transaction_id: str) -> dict:
    """Delete a manual transaction."""
    if database.get_transaction(transaction_id) is None:
        return not_found('Transaction not found')

    database.delete_transaction(transaction_id)
    return json_response(200, {'deleted': transaction_id})


def handle_reprice(transaction_id: str, body: dict) -> dict:
    """Edit the win amounts of a saved payout.

    Args:
        transaction_id: Transaction ID
        body: {'win_amounts': {entry index: amount}}

    Returns:
        Response with the updated transaction
    """
    raw = body.get('win_amounts') or {}
    try:
        win_amounts = {int(index): to_decimal(amount) for index, amount in raw.items()}
    except (TypeError, ValueError, AttributeError):
        return bad_request('win_amounts must map entry indexes to numbers')

    try:
        txn = ledger.reprice_payout(transaction_id, win_amounts)
    except PayoutValidationError as e:
        return bad_request(str(e))

    if txn is None:
        return not_found('Transaction not found')

    return json_response(200, txn.to_dict())
