"""Pytest configuration and fixtures."""

import sys
from datetime import date
from pathlib import Path

import pytest

# Add backend directory to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from creditledger.models.entities import Column, Operation, Source, Transaction  # noqa: E402


@pytest.fixture
def db(tmp_path, monkeypatch):
    """Point the record store at a fresh SQLite file."""
    from creditledger import main
    from creditledger.services import database

    monkeypatch.setenv('LEDGER_DB_PATH', str(tmp_path / 'ledger.db'))
    monkeypatch.delenv('LEDGER_WEEK_END', raising=False)
    monkeypatch.delenv('LEDGER_PRIOR_BALANCE_EXCLUDED_CODES', raising=False)
    database.close_db()
    main.reset_app_config()

    yield database

    database.close_db()
    main.reset_app_config()


@pytest.fixture
def make_txn():
    """Factory for transactions with sensible defaults."""
    counter = {'n': 0}

    def _make(amount=100.0, operation=Operation.ADD, on=date(2025, 3, 5), label='',
              column=Column.MAIN, is_visible=True, source=Source.MANUAL, client_id='c1',
              description=''):
        counter['n'] += 1
        return Transaction(
            id=f"t{counter['n']}",
            client_id=client_id,
            date=on,
            description=description,
            label=label,
            amount=amount,
            operation=operation,
            column=column,
            is_visible=is_visible,
            source=source
        )

    return _make
