"""Prize payout calculation for 4D and 3D bets.

A calculator session collects winning entries; saving produces an itemized
description that can later be parsed back for editing.
"""

import re
import uuid
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from creditledger.models.entities import (
    ZERO, Column, Operation, Transaction, to_decimal, to_money
)

MODE_4D = '4D'
MODE_3D = '3D'

DIGITS = {MODE_4D: 4, MODE_3D: 3}

POSITIONS = {
    MODE_4D: ['1', '2', '3', 'S', 'C'],
    MODE_3D: ['1', '2', '3'],
}

POSITION_LABELS = {'1': '头', '2': '二', '3': '三', 'S': '入', 'C': '安'}
LABEL_POSITIONS = {label: position for position, label in POSITION_LABELS.items()}

SIDES = ['M', 'K', 'T']

STRAIGHT = 'Straight'
BOX = 'Box'
PAU = 'Pau'
BET_TYPES = [STRAIGHT, BOX, PAU]

STAKE_CATEGORIES = {
    MODE_4D: ['Big', 'Small'],
    MODE_3D: ['3A', '3ABC'],
}

# (mode, stake category) -> position -> multiplier; missing or 0 pays nothing
MULTIPLIERS: Dict[Tuple[str, str], Dict[str, int]] = {
    (MODE_4D, 'Big'): {'1': 2750, '2': 1100, '3': 550, 'S': 220, 'C': 66},
    (MODE_4D, 'Small'): {'1': 3850, '2': 2200, '3': 1100, 'S': 0, 'C': 0},
    (MODE_3D, '3A'): {'1': 720},
    (MODE_3D, '3ABC'): {'1': 240, '2': 240, '3': 240},
}

WIN_LABEL = '中'
DESCRIPTION_PREFIX = 'Winnings: '
ENTRY_SEPARATOR = '; '

ENTRY_PATTERN = re.compile(
    r'^(?P<sides>[MKT]+) (?P<number>\d{3,4}) (?P<category>Big|Small|3ABC|3A) '
    r'(?P<bet_type>Straight|Box|Pau) (?P<stake>\d+(?:\.\d+)?)-(?P<win>\d+(?:\.\d+)?) '
    r'(?P<label>\S+)$'
)


class PayoutValidationError(ValueError):
    """Bet input is malformed; nothing was calculated."""


class PayoutSaveError(Exception):
    """A payout save wrote only part of its transactions.

    Attributes:
        saved: Transactions that were written before the failure
    """

    def __init__(self, message: str, saved: List[Transaction]):
        super().__init__(message)
        self.saved = saved


@dataclass
class WinningEntry:
    """One winning stake line."""
    number: str
    mode: str
    position: str
    sides: List[str]
    bet_type: str
    bet_category: str
    stake: Decimal
    win_amount: Decimal
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    @property
    def position_label(self) -> str:
        return POSITION_LABELS[self.position]

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'number': self.number,
            'mode': self.mode,
            'position': self.position,
            'position_label': self.position_label,
            'sides': list(self.sides),
            'bet_type': self.bet_type,
            'bet_category': self.bet_category,
            'stake': float(self.stake),
            'win_amount': float(self.win_amount)
        }


def permutation_count(number: str) -> int:
    """Count the distinct orderings of a drawn number's digits.

    4 digits: 24 / 12 / 4 or 6 / 1 for 4 / 3 / 2 / 1 distinct digits, where
    the 2-distinct case is 4 for a 3+1 split (e.g. 1112) and 6 for 2+2
    (e.g. 1122). 3 digits: 6 / 3 / 1 for 3 / 2 / 1 distinct digits.
    """
    counts = Counter(number)
    distinct = len(counts)

    if len(number) == 4:
        if distinct == 4:
            return 24
        if distinct == 3:
            return 12
        if distinct == 2:
            return 4 if 3 in counts.values() else 6
        return 1

    if len(number) == 3:
        if distinct == 3:
            return 6
        if distinct == 2:
            return 3
        return 1

    raise PayoutValidationError(f"Drawn number must have 3 or 4 digits, got {number!r}")


def multiplier(mode: str, bet_category: str, position: str) -> int:
    """Payout multiplier, or 0 when the combination does not pay."""
    return MULTIPLIERS.get((mode, bet_category), {}).get(position, 0)


def normalize_sides(sides: Sequence[str]) -> List[str]:
    """Validate and de-duplicate sides, returned in channel order."""
    if not sides:
        raise PayoutValidationError("At least one side is required")
    unknown = [s for s in sides if s not in SIDES]
    if unknown:
        raise PayoutValidationError(f"Unknown sides: {', '.join(unknown)}")
    return [s for s in SIDES if s in sides]


def stake_amounts(stakes: Mapping[str, object]) -> Dict[str, Decimal]:
    """Convert stakes to Decimal, dropping empty ones.

    Raises:
        PayoutValidationError: If a stake is not a finite number
    """
    amounts = {}
    for category, value in stakes.items():
        if value is None or value == '':
            continue
        try:
            amounts[category] = to_decimal(value)
        except ValueError:
            raise PayoutValidationError(f"{category} stake must be a finite number, got {value!r}") from None
    return amounts


def validate_bet(mode: str, number: str, position: str, sides: Sequence[str],
                 bet_type: str, stakes: Mapping[str, object]) -> Tuple[List[str], Dict[str, Decimal]]:
    """Check a bet before calculating.

    Returns:
        Normalized sides and Decimal stakes

    Raises:
        PayoutValidationError: If any input is malformed
    """
    if mode not in DIGITS:
        raise PayoutValidationError(f"Unknown mode: {mode!r}")

    if not number or not number.isdigit() or len(number) != DIGITS[mode]:
        raise PayoutValidationError(
            f"{mode} drawn number must be exactly {DIGITS[mode]} digits, got {number!r}"
        )

    if position not in POSITIONS[mode]:
        raise PayoutValidationError(f"Position {position!r} is not valid for {mode}")

    if bet_type not in BET_TYPES:
        raise PayoutValidationError(f"Unknown bet type: {bet_type!r}")

    normalized = normalize_sides(sides)

    unknown = set(stakes) - set(STAKE_CATEGORIES[mode])
    if unknown:
        raise PayoutValidationError(f"Stake categories not valid for {mode}: {', '.join(sorted(unknown))}")

    amounts = stake_amounts(stakes)
    for category, amount in amounts.items():
        if amount < 0:
            raise PayoutValidationError(f"{category} stake must not be negative")

    if not any(amount > 0 for amount in amounts.values()):
        raise PayoutValidationError("At least one positive stake is required")

    return normalized, amounts


def calculate_entries(mode: str, number: str, position: str, sides: Sequence[str],
                      bet_type: str, stakes: Mapping[str, object]) -> List[WinningEntry]:
    """Calculate the winning entries for one bet.

    Args:
        mode: '4D' or '3D'
        number: Drawn number, 4 or 3 digits to match the mode
        position: Prize position ('1', '2', '3', 'S', 'C')
        sides: Channels the bet was placed on; the stake is split evenly
        bet_type: 'Straight', 'Box' or 'Pau'
        stakes: Stake per category ('Big'/'Small' or '3A'/'3ABC')

    Returns:
        One entry per stake category that pays at this position

    Raises:
        PayoutValidationError: If the input is malformed
    """
    normalized_sides, amounts = validate_bet(mode, number, position, sides, bet_type, stakes)
    divisor = permutation_count(number) if bet_type == BOX else 1

    entries = []
    for category in STAKE_CATEGORIES[mode]:
        stake = amounts.get(category, ZERO)
        if stake <= 0:
            continue

        rate = multiplier(mode, category, position)
        if not rate:
            continue

        effective_stake = stake / divisor
        win_amount = to_money(effective_stake / len(normalized_sides) * rate)
        if win_amount <= 0:
            continue

        entries.append(WinningEntry(
            number=number,
            mode=mode,
            position=position,
            sides=normalized_sides,
            bet_type=bet_type,
            bet_category=category,
            stake=stake,
            win_amount=win_amount
        ))

    return entries


def _fmt_amount(value: Decimal) -> str:
    return f"{to_money(value):f}".rstrip('0').rstrip('.')


def format_entry(entry: WinningEntry) -> str:
    """Render an entry, e.g. ``MK 1234 Big Box 240-27500.00 头``."""
    return (
        f"{''.join(entry.sides)} {entry.number} {entry.bet_category} {entry.bet_type} "
        f"{_fmt_amount(entry.stake)}-{entry.win_amount:.2f} {entry.position_label}"
    )


def build_description(entries: Sequence[WinningEntry]) -> str:
    return DESCRIPTION_PREFIX + ENTRY_SEPARATOR.join(format_entry(e) for e in entries)


def total_winnings(entries: Sequence[WinningEntry]) -> Decimal:
    return sum((e.win_amount for e in entries), ZERO)


def parse_entry(text: str) -> WinningEntry:
    match = ENTRY_PATTERN.match(text.strip())
    if not match or match.group('label') not in LABEL_POSITIONS:
        raise PayoutValidationError(f"Not a payout entry: {text!r}")

    number = match.group('number')
    return WinningEntry(
        number=number,
        mode=MODE_4D if len(number) == 4 else MODE_3D,
        position=LABEL_POSITIONS[match.group('label')],
        sides=list(match.group('sides')),
        bet_type=match.group('bet_type'),
        bet_category=match.group('category'),
        stake=Decimal(match.group('stake')),
        win_amount=Decimal(match.group('win'))
    )


def parse_description(description: str) -> List[WinningEntry]:
    """Parse a saved payout description back into entries.

    Raises:
        PayoutValidationError: If the description is not in payout format
    """
    if not description or not description.startswith(DESCRIPTION_PREFIX):
        raise PayoutValidationError("Description is not a payout description")
    body = description[len(DESCRIPTION_PREFIX):]
    return [parse_entry(part) for part in body.split(ENTRY_SEPARATOR)]


def is_payout_description(description: str) -> bool:
    try:
        parse_description(description)
    except PayoutValidationError:
        return False
    return True


def reprice_entries(entries: Sequence[WinningEntry],
                    win_amounts: Mapping[int, object]) -> List[WinningEntry]:
    """Replace win amounts by entry index.

    Args:
        entries: Parsed entries
        win_amounts: Entry index to new win amount

    Returns:
        New entry list with edits applied

    Raises:
        PayoutValidationError: If an index is out of range or an amount is
            negative or not a finite number
    """
    amounts = {}
    for index, value in win_amounts.items():
        if not 0 <= index < len(entries):
            raise PayoutValidationError(f"No payout entry at index {index}")
        try:
            amount = to_money(value)
        except ValueError:
            raise PayoutValidationError(f"Win amount must be a finite number, got {value!r}") from None
        if amount < 0:
            raise PayoutValidationError("Win amount must not be negative")
        amounts[index] = amount

    return [
        replace(entry, win_amount=amounts[i]) if i in amounts else entry
        for i, entry in enumerate(entries)
    ]


class PayoutCalculator:
    """A calculator session accumulating winning entries."""

    def __init__(self, entries: Optional[List[WinningEntry]] = None):
        self.entries: List[WinningEntry] = list(entries or [])

    def add_bet(self, mode: str, number: str, position: str, sides: Sequence[str],
                bet_type: str, stakes: Mapping[str, object]) -> List[WinningEntry]:
        """Calculate a bet and put its entries at the top of the list."""
        new_entries = calculate_entries(mode, number, position, sides, bet_type, stakes)
        self.entries = new_entries + self.entries
        return new_entries

    def remove_entry(self, entry_id: str) -> None:
        self.entries = [e for e in self.entries if e.id != entry_id]

    def clear(self) -> None:
        self.entries = []

    @property
    def total_winnings(self) -> Decimal:
        return total_winnings(self.entries)

    def description(self) -> str:
        return build_description(self.entries)

    def build_transactions(self, client_id: str,
                           settlement_date: date) -> Tuple[Transaction, Transaction]:
        """Build the itemized panel1 transaction and the main balance entry.

        Raises:
            PayoutValidationError: If the session has no entries
        """
        if not self.entries:
            raise PayoutValidationError("No winning entries to save")

        amount = self.total_winnings
        itemized = Transaction(
            id=None,
            client_id=client_id,
            date=settlement_date,
            description=self.description(),
            label=WIN_LABEL,
            amount=amount,
            operation=Operation.SUBTRACT,
            column=Column.PANEL1,
            is_visible=True
        )
        aggregate = itemized.with_changes(description='', column=Column.MAIN)
        return itemized, aggregate
