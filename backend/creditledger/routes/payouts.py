"""Prize calculator routes."""

from datetime import date
from typing import List

from creditledger.services import database, ledger
from creditledger.services.payout_calc import (
    PayoutCalculator, PayoutSaveError, PayoutValidationError, stake_amounts
)
from creditledger.utils.http import bad_request, error_body, json_response, not_found, parse_iso_date


def _stakes(bet: dict) -> dict:
    stakes = bet.get('stakes') or {}
    if not isinstance(stakes, dict):
        raise PayoutValidationError('stakes must map categories to numbers')
    return stake_amounts(stakes)


def build_calculator(bets: List[dict]) -> PayoutCalculator:
    """Run every bet through a fresh calculator session.

    Raises:
        PayoutValidationError: If any bet is malformed
    """
    if not isinstance(bets, list) or not bets:
        raise PayoutValidationError('bets must be a non-empty list')

    calculator = PayoutCalculator()
    for bet in bets:
        calculator.add_bet(
            mode=bet.get('mode', '4D'),
            number=str(bet.get('number', '')),
            position=str(bet.get('position', '1')),
            sides=bet.get('sides') or [],
            bet_type=bet.get('bet_type', 'Straight'),
            stakes=_stakes(bet)
        )
    return calculator


def handle_calculate(body: dict) -> dict:
    """Calculate winnings without saving.

    Args:
        body: {'bets': [{mode, number, position, sides, bet_type, stakes}]}

    Returns:
        Response with entries, total and the description that would be saved
    """
    try:
        calculator = build_calculator(body.get('bets'))
    except PayoutValidationError as e:
        return bad_request(str(e))

    return json_response(200, {
        'entries': [e.to_dict() for e in calculator.entries],
        'total_winnings': float(calculator.total_winnings),
        'description': calculator.description() if calculator.entries else ''
    })


def handle_save(body: dict) -> dict:
    """Calculate winnings and save them to a client's ledger.

    Args:
        body: {'client_id', 'date' (optional, default today), 'bets': [...]}

    Returns:
        Response with the two created transactions
    """
    client = database.get_client(body.get('client_id') or '')
    if client is None:
        return not_found('Client not found')

    try:
        settlement_date = parse_iso_date(body['date']) if body.get('date') else date.today()
    except ValueError:
        return bad_request('date must be YYYY-MM-DD')

    try:
        calculator = build_calculator(body.get('bets'))
        itemized, aggregate = ledger.save_payout(calculator, client, settlement_date)
    except PayoutValidationError as e:
        return bad_request(str(e))
    except PayoutSaveError as e:
        return error_body(500, 'partial_save', f"{e} (saved: {', '.join(t.id for t in e.saved)})")

    return json_response(201, {
        'itemized': itemized.to_dict(),
        'main': aggregate.to_dict(),
        'total_winnings': float(calculator.total_winnings)
    })
