"""Application configuration and category button setup."""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import FrozenSet, List, Optional

from aws_lambda_powertools import Logger

from creditledger.models.entities import Category
from creditledger.services import database

logger = Logger(service="creditledger-config")

SUNDAY = 6

GREEN = 'bg-green-100 text-green-800'
RED = 'bg-red-100 text-red-800'
GREY = 'bg-gray-100 text-gray-800'

# Default category buttons (id, label, operation, color)
DEFAULT_CATEGORIES = [
    ('1', '收', 'add', GREEN),
    ('2', '中', 'subtract', RED),
    ('3', '出', 'subtract', RED),
    ('4', '支钱', 'add', GREEN),
    ('5', '上欠', 'add', GREEN),
    ('6', '%', 'subtract', RED),
    ('7', '来', 'subtract', RED),
]

# Defaults that must exist even when the user already has custom buttons
REQUIRED_LABELS = ['上欠', '%', '来']


@dataclass(frozen=True)
class AppConfig:
    """Settings consumed by the ledger engine.

    Built once by ``load_config`` and passed to the services that need it.
    """
    week_end_weekday: int = SUNDAY
    prior_balance_excluded_codes: FrozenSet[str] = field(default_factory=frozenset)
    company_rate: Decimal = Decimal('0.83')
    client_rate: Decimal = Decimal('0.86')


def _parse_codes(raw: Optional[str]) -> FrozenSet[str]:
    if not raw:
        return frozenset()
    return frozenset(code.strip().upper() for code in raw.split(',') if code.strip())


def load_config() -> AppConfig:
    """Load configuration from the environment and the app_config table.

    Environment variables win over stored values.
    """
    week_end = os.environ.get('LEDGER_WEEK_END') or database.get_config('week_end_weekday')
    codes = (os.environ.get('LEDGER_PRIOR_BALANCE_EXCLUDED_CODES')
             or database.get_config('prior_balance_excluded_codes'))

    week_end_weekday = int(week_end) if week_end not in (None, '') else SUNDAY
    if not 0 <= week_end_weekday <= 6:
        raise ValueError(f"week end weekday must be 0-6, got {week_end_weekday}")

    config = AppConfig(
        week_end_weekday=week_end_weekday,
        prior_balance_excluded_codes=_parse_codes(codes)
    )
    logger.debug(
        "Configuration loaded",
        extra={
            "week_end_weekday": config.week_end_weekday,
            "excluded_codes": sorted(config.prior_balance_excluded_codes)
        }
    )
    return config


def color_for(operation: str) -> str:
    """Default button color for an operation."""
    if operation == 'add':
        return GREEN
    if operation == 'subtract':
        return RED
    return GREY


def ensure_categories() -> List[Category]:
    """Load category buttons, seeding, merging and migrating as needed.

    - No buttons stored: the full default set is written.
    - Otherwise any of REQUIRED_LABELS that is missing is appended.
    - Legacy colors are rewritten (blue ``add`` buttons become green, an
      orange ``出`` becomes red).

    Returns:
        Category buttons in display order
    """
    categories = database.list_categories()

    if not categories:
        for category_id, label, operation, color in DEFAULT_CATEGORIES:
            database.create_category(label, operation, color, category_id=category_id)
        logger.info("Seeded default categories", extra={"count": len(DEFAULT_CATEGORIES)})
        return database.list_categories()

    labels = {c.label for c in categories}
    defaults_by_label = {label: (operation, color) for _, label, operation, color in DEFAULT_CATEGORIES}
    for label in REQUIRED_LABELS:
        if label not in labels:
            operation, color = defaults_by_label[label]
            database.create_category(label, operation, color)
            logger.info("Added missing default category", extra={"label": label})

    for category in categories:
        if category.operation.value == 'add' and 'bg-blue-100' in category.color:
            database.update_category_color(category.id, GREEN)
        elif category.label == '出' and 'bg-orange-100' in category.color:
            database.update_category_color(category.id, RED)

    return database.list_categories()
