"""Data model entities."""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import List, Optional

ZERO = Decimal('0')
CENTS = Decimal('0.01')


class Operation(Enum):
    """How a transaction's amount affects the balance."""
    ADD = "add"
    SUBTRACT = "subtract"
    NONE = "none"


class Column(Enum):
    """Ledger column a transaction belongs to."""
    MAIN = "main"
    PANEL1 = "panel1"
    PANEL2 = "panel2"


class ClientCategory(Enum):
    """Client reporting profile."""
    PAPER = "paper"
    MOBILE = "mobile"


class Source(Enum):
    """Where a transaction came from."""
    MANUAL = "manual"
    SALE = "sale"
    ADVANCE = "advance"
    CREDIT = "credit"
    DRAW_BALANCE = "draw_balance"


# Legacy single-purpose amount fields and the entry they migrate to
LEGACY_FIELDS = [
    ('shou', '收', Operation.ADD),
    ('zhiqian', '支钱', Operation.ADD),
    ('zhong', '中', Operation.SUBTRACT),
    ('dianhua', '出', Operation.SUBTRACT),
]


def parse_date(value) -> date:
    """Accept a date, datetime or YYYY-MM-DD string (time part ignored)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value)[:10], '%Y-%m-%d').date()


def to_decimal(value) -> Decimal:
    """Convert a stored or submitted number to Decimal via its string form.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Not a number: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")
    return result


def to_money(value) -> Decimal:
    """Decimal rounded half-up to cents."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass
class Client:
    """Ledger client."""
    id: str
    code: str
    name: str
    phone: Optional[str] = None
    category: ClientCategory = ClientCategory.PAPER
    created_at: Optional[str] = None

    @classmethod
    def from_dict(cls, d: dict) -> 'Client':
        """Create from database row dict."""
        return cls(
            id=d['id'],
            code=d.get('code') or '',
            name=d['name'],
            phone=d.get('phone'),
            category=ClientCategory(d.get('category') or 'paper'),
            created_at=d.get('created_at')
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'phone': self.phone,
            'category': self.category.value,
            'created_at': self.created_at
        }


@dataclass
class Transaction:
    """Unified ledger record.

    ``amount`` is always a non-negative magnitude; the signed effect on the
    balance comes from ``operation``.
    """
    id: Optional[str]
    client_id: str
    date: date
    description: str
    label: str
    amount: Decimal
    operation: Operation
    column: Column = Column.MAIN
    is_visible: bool = True
    source: Source = Source.MANUAL

    def __post_init__(self):
        self.amount = to_money(self.amount)
        if self.amount < 0:
            raise ValueError(f"Transaction amount must be non-negative, got {self.amount}")

    @property
    def net(self) -> Decimal:
        """Signed effect on the balance."""
        if self.operation is Operation.NONE:
            return ZERO
        return self.amount if self.operation is Operation.ADD else -self.amount

    @property
    def is_virtual(self) -> bool:
        return self.source is not Source.MANUAL

    def with_changes(self, **changes) -> 'Transaction':
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, d: dict) -> 'Transaction':
        """Create from database row dict, migrating legacy rows."""
        label = d.get('label')
        operation = d.get('operation')
        amount = d.get('amount')

        if not operation or label is None:
            label, amount, operation = 'Entry', 0, Operation.ADD.value
            for legacy_field, legacy_label, legacy_op in LEGACY_FIELDS:
                if (d.get(legacy_field) or 0) > 0:
                    label, amount, operation = legacy_label, d[legacy_field], legacy_op.value
                    break

        return cls(
            id=d.get('id'),
            client_id=d['client_id'],
            date=parse_date(d['date']),
            description=d.get('description') or '',
            label=label,
            amount=Decimal(str(amount or 0)),
            operation=Operation(operation),
            column=Column(d.get('column') or 'main'),
            is_visible=bool(d.get('is_visible', 1)),
            source=Source(d.get('source') or 'manual')
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'client_id': self.client_id,
            'date': self.date.isoformat(),
            'description': self.description,
            'label': self.label,
            'amount': float(self.amount),
            'operation': self.operation.value,
            'column': self.column.value,
            'is_visible': self.is_visible,
            'source': self.source.value,
            'net': float(self.net)
        }


@dataclass
class SaleRow:
    """Sales subsystem row; b/s/a/c are signed stake buckets."""
    id: str
    client_id: str
    date: date
    b: Decimal = ZERO
    s: Decimal = ZERO
    a: Decimal = ZERO
    c: Decimal = ZERO

    def __post_init__(self):
        self.b = to_decimal(self.b)
        self.s = to_decimal(self.s)
        self.a = to_decimal(self.a)
        self.c = to_decimal(self.c)

    @property
    def total(self) -> Decimal:
        return self.b + self.s + self.a + self.c

    @classmethod
    def from_dict(cls, d: dict) -> 'SaleRow':
        return cls(
            id=d['id'],
            client_id=d['client_id'],
            date=parse_date(d['date']),
            b=d.get('b') or 0,
            s=d.get('s') or 0,
            a=d.get('a') or 0,
            c=d.get('c') or 0
        )


@dataclass
class AmountRow:
    """Cash advance or cash credit row."""
    id: str
    client_id: str
    date: date
    amount: Decimal

    def __post_init__(self):
        self.amount = to_decimal(self.amount)

    @classmethod
    def from_dict(cls, d: dict) -> 'AmountRow':
        return cls(
            id=d['id'],
            client_id=d['client_id'],
            date=parse_date(d['date']),
            amount=d.get('amount') or 0
        )


@dataclass
class DrawBalanceRow:
    """Prior-period signed balance carried into a draw date."""
    id: str
    client_id: str
    date: date
    balance: Decimal

    def __post_init__(self):
        self.balance = to_decimal(self.balance)

    @classmethod
    def from_dict(cls, d: dict) -> 'DrawBalanceRow':
        return cls(
            id=d['id'],
            client_id=d['client_id'],
            date=parse_date(d['date']),
            balance=d.get('balance') or 0
        )


@dataclass
class Category:
    """Manual-entry button definition. Color is display metadata only."""
    id: str
    label: str
    operation: Operation
    color: str
    position: int = 0

    @classmethod
    def from_dict(cls, d: dict) -> 'Category':
        return cls(
            id=d['id'],
            label=d['label'],
            operation=Operation(d['operation']),
            color=d.get('color') or '',
            position=d.get('position') or 0
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'label': self.label,
            'operation': self.operation.value,
            'color': self.color,
            'position': self.position
        }


@dataclass
class ColumnBalance:
    """Ordered transactions of one column and their visible balance."""
    column: Column
    transactions: List[Transaction] = field(default_factory=list)
    balance: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            'column': self.column.value,
            'transactions': [t.to_dict() for t in self.transactions],
            'balance': float(self.balance)
        }
