"""Database service for SQLite operations.

This is the record store the ledger engine reads from and writes to. Store
errors (``sqlite3.Error``) are propagated to the caller unchanged; nothing
here retries.
"""

import os
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Tuple

from creditledger.models.entities import (
    AmountRow, Category, Client, Column, DrawBalanceRow, Operation, SaleRow, Transaction,
    parse_date, to_money
)

DEFAULT_DB_PATH = '/tmp/creditledger.db'
_db_connection: Optional[sqlite3.Connection] = None
_db_path: Optional[str] = None

# Fields a caller may change on a manual transaction
UPDATABLE_TRANSACTION_FIELDS = {
    'date', 'description', 'label', 'amount', 'operation', 'column', 'is_visible'
}


def get_sql_path(filename: str) -> str:
    """Get path to SQL file in package."""
    base_path = Path(__file__).parent.parent / 'sql'
    return str(base_path / filename)


def get_db_path() -> str:
    """Get the database file path from environment."""
    return os.environ.get('LEDGER_DB_PATH', DEFAULT_DB_PATH)


def generate_id() -> str:
    return uuid.uuid4().hex[:12]


def init_db(conn: sqlite3.Connection) -> None:
    """Initialize database with schema.

    Args:
        conn: SQLite connection
    """
    with open(get_sql_path('schema.sql'), 'r') as f:
        conn.executescript(f.read())

    run_migrations(conn)
    conn.commit()


def run_migrations(conn: sqlite3.Connection) -> None:
    """Run database migrations for schema updates.

    Args:
        conn: SQLite connection
    """
    cursor = conn.execute("PRAGMA table_info(clients)")
    columns = [row[1] for row in cursor.fetchall()]

    if 'category' not in columns:
        conn.execute("ALTER TABLE clients ADD COLUMN category TEXT NOT NULL DEFAULT 'paper'")

    cursor = conn.execute("PRAGMA table_info(categories)")
    columns = [row[1] for row in cursor.fetchall()]

    if 'position' not in columns:
        conn.execute("ALTER TABLE categories ADD COLUMN position INTEGER NOT NULL DEFAULT 0")

    # Records written before columns existed belong to the main ledger
    conn.execute("""UPDATE ledger_records SET "column" = 'main' WHERE "column" IS NULL OR "column" = ''""")
    conn.execute("""UPDATE ledger_records SET "column" = 'panel1' WHERE "column" = 'col1'""")
    conn.execute("""UPDATE ledger_records SET "column" = 'panel2' WHERE "column" = 'col2'""")


def get_connection() -> sqlite3.Connection:
    """Get database connection, creating the schema if needed.

    Returns:
        SQLite connection with row factory set
    """
    global _db_connection, _db_path

    if _db_connection is not None:
        return _db_connection

    _db_path = get_db_path()
    _db_connection = sqlite3.connect(_db_path)
    _db_connection.row_factory = sqlite3.Row
    init_db(_db_connection)

    return _db_connection


def close_db() -> None:
    """Close database connection."""
    global _db_connection, _db_path

    if _db_connection is not None:
        _db_connection.close()
        _db_connection = None
        _db_path = None


@contextmanager
def transaction() -> Generator[sqlite3.Connection, None, None]:
    """Context manager for database transactions.

    Yields:
        SQLite connection

    Commits on success, rolls back on exception.
    """
    conn = get_connection()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def execute(sql: str, params: tuple = ()) -> sqlite3.Cursor:
    """Execute SQL and return cursor.

    Args:
        sql: SQL statement
        params: Query parameters

    Returns:
        Cursor with results
    """
    conn = get_connection()
    return conn.execute(sql, params)


def fetch_one(sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
    """Fetch a single row."""
    cursor = execute(sql, params)
    return cursor.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> List[sqlite3.Row]:
    """Fetch all rows."""
    cursor = execute(sql, params)
    return cursor.fetchall()


def row_to_dict(row: Optional[sqlite3.Row]) -> Optional[dict]:
    """Convert a Row to a dict.

    Args:
        row: SQLite Row object

    Returns:
        Dict or None
    """
    if row is None:
        return None
    return dict(row)


def rows_to_dicts(rows: List[sqlite3.Row]) -> List[dict]:
    """Convert Rows to list of dicts."""
    return [dict(row) for row in rows]


def get_config(key: str) -> Optional[str]:
    """Get a config value."""
    row = fetch_one("SELECT value FROM app_config WHERE key = ?", (key,))
    return row['value'] if row else None


def set_config(key: str, value: str) -> None:
    """Set a config value."""
    with transaction():
        execute(
            "INSERT OR REPLACE INTO app_config (key, value, updated_at) VALUES (?, ?, datetime('now'))",
            (key, value)
        )


# =============================================================================
# Clients
# =============================================================================

def list_clients() -> List[Client]:
    """Get all clients ordered by code."""
    rows = fetch_all("SELECT * FROM clients ORDER BY code, name")
    return [Client.from_dict(d) for d in rows_to_dicts(rows)]


def get_client(client_id: str) -> Optional[Client]:
    """Get a client by ID."""
    d = row_to_dict(fetch_one("SELECT * FROM clients WHERE id = ?", (client_id,)))
    return Client.from_dict(d) if d else None


def create_client(code: str, name: str, phone: Optional[str] = None,
                  category: str = 'paper') -> Client:
    """Create a new client.

    Args:
        code: Short human identifier
        name: Client name
        phone: Optional phone number
        category: 'paper' or 'mobile'

    Returns:
        Created client
    """
    client_id = generate_id()
    with transaction():
        execute(
            "INSERT INTO clients (id, code, name, phone, category) VALUES (?, ?, ?, ?, ?)",
            (client_id, code or '', name, phone, category)
        )
    return get_client(client_id)


def update_client(client_id: str, fields: dict) -> Optional[Client]:
    """Update a client's code, name, phone or category.

    Returns:
        Updated client or None if not found
    """
    updates = []
    params: List[Any] = []

    for key in ('code', 'name', 'phone', 'category'):
        if key in fields:
            updates.append(f"{key} = ?")
            params.append(fields[key])

    if updates:
        params.append(client_id)
        with transaction():
            execute(f"UPDATE clients SET {', '.join(updates)} WHERE id = ?", tuple(params))

    return get_client(client_id)


def delete_client(client_id: str) -> bool:
    """Delete a client and its manual ledger records.

    Auxiliary rows belong to their own subsystems and are left alone.

    Returns:
        True if the client was deleted, False if not found
    """
    if get_client(client_id) is None:
        return False

    with transaction():
        execute("DELETE FROM ledger_records WHERE client_id = ?", (client_id,))
        execute("DELETE FROM clients WHERE id = ?", (client_id,))

    return True


# =============================================================================
# Manual transactions
# =============================================================================

def get_transaction(transaction_id: str) -> Optional[Transaction]:
    """Get a manual transaction by ID."""
    d = row_to_dict(fetch_one("SELECT * FROM ledger_records WHERE id = ?", (transaction_id,)))
    return Transaction.from_dict(d) if d else None


def list_manual_transactions(client_id: str) -> List[Transaction]:
    """Get a client's manual transactions in store order.

    Args:
        client_id: Client ID

    Returns:
        Transactions ordered by date, then insertion order
    """
    rows = fetch_all(
        "SELECT * FROM ledger_records WHERE client_id = ? ORDER BY date, rowid",
        (client_id,)
    )
    return [Transaction.from_dict(d) for d in rows_to_dicts(rows)]


def create_transaction(txn: Transaction) -> Transaction:
    """Persist a new manual transaction.

    The incoming ``id`` is ignored; a new one is assigned.

    Returns:
        The stored transaction
    """
    transaction_id = generate_id()
    with transaction():
        execute(
            """INSERT INTO ledger_records
               (id, client_id, date, description, label, amount, operation, "column", is_visible)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                transaction_id,
                txn.client_id,
                txn.date.isoformat(),
                txn.description,
                txn.label,
                float(txn.amount),
                txn.operation.value,
                txn.column.value,
                1 if txn.is_visible else 0
            )
        )
    return txn.with_changes(id=transaction_id)


def _update_clause(fields: dict) -> Tuple[List[str], List[Any]]:
    unknown = set(fields) - UPDATABLE_TRANSACTION_FIELDS
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    updates = []
    params: List[Any] = []

    for key, value in fields.items():
        if key == 'operation':
            value = Operation(value)
        elif key == 'column':
            value = Column(value)
        elif key == 'date' and not isinstance(value, date):
            value = parse_date(value)
        elif key == 'amount':
            value = to_money(value)
            if value < 0:
                raise ValueError("amount must be non-negative")
            value = float(value)

        if isinstance(value, date):
            value = value.isoformat()
        elif hasattr(value, 'value'):
            value = value.value
        if key == 'is_visible':
            value = 1 if value else 0
        updates.append(f'"{key}" = ?')
        params.append(value)

    return updates, params


def update_transaction(transaction_id: str, fields: dict) -> None:
    """Apply a partial update to a manual transaction.

    Args:
        transaction_id: Transaction ID
        fields: Subset of UPDATABLE_TRANSACTION_FIELDS; enum and date values
            may be passed as objects or their string forms
    """
    update_transactions({transaction_id: fields})


def update_transactions(changes: Dict[str, dict]) -> None:
    """Apply partial updates to several manual transactions atomically.

    Every change is validated before anything is written; the writes share
    one database transaction.

    Args:
        changes: Transaction ID to fields, as for update_transaction
    """
    statements = []
    for transaction_id, fields in changes.items():
        updates, params = _update_clause(fields)
        if updates:
            params.append(transaction_id)
            statements.append((f"UPDATE ledger_records SET {', '.join(updates)} WHERE id = ?", tuple(params)))

    if not statements:
        return

    with transaction():
        for sql, params in statements:
            execute(sql, params)


def delete_transaction(transaction_id: str) -> None:
    """Delete a manual transaction."""
    with transaction():
        execute("DELETE FROM ledger_records WHERE id = ?", (transaction_id,))


# =============================================================================
# Auxiliary subsystem rows (read-only to the ledger engine)
# =============================================================================

def list_sales(client_id: str) -> List[SaleRow]:
    rows = fetch_all("SELECT * FROM sales WHERE client_id = ? ORDER BY date, rowid", (client_id,))
    return [SaleRow.from_dict(d) for d in rows_to_dicts(rows)]


def list_all_sales() -> List[SaleRow]:
    rows = fetch_all("SELECT * FROM sales ORDER BY date, rowid")
    return [SaleRow.from_dict(d) for d in rows_to_dicts(rows)]


def list_advances(client_id: str) -> List[AmountRow]:
    rows = fetch_all("SELECT * FROM cash_advances WHERE client_id = ? ORDER BY date, rowid", (client_id,))
    return [AmountRow.from_dict(d) for d in rows_to_dicts(rows)]


def list_credits(client_id: str) -> List[AmountRow]:
    rows = fetch_all("SELECT * FROM cash_credits WHERE client_id = ? ORDER BY date, rowid", (client_id,))
    return [AmountRow.from_dict(d) for d in rows_to_dicts(rows)]


def list_draw_balances(client_id: str) -> List[DrawBalanceRow]:
    rows = fetch_all("SELECT * FROM draw_balances WHERE client_id = ? ORDER BY date, rowid", (client_id,))
    return [DrawBalanceRow.from_dict(d) for d in rows_to_dicts(rows)]


def insert_sale(client_id: str, entry_date: date, b=0, s=0, a=0, c=0) -> SaleRow:
    """Record a sales row (normally written by the sales subsystem)."""
    row = SaleRow(generate_id(), client_id, entry_date, b, s, a, c)
    with transaction():
        execute(
            "INSERT INTO sales (id, client_id, date, b, s, a, c) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (row.id, client_id, entry_date.isoformat(), float(row.b), float(row.s), float(row.a), float(row.c))
        )
    return row


def insert_advance(client_id: str, entry_date: date, amount) -> AmountRow:
    """Record a cash advance row."""
    row = AmountRow(generate_id(), client_id, entry_date, amount)
    with transaction():
        execute(
            "INSERT INTO cash_advances (id, client_id, date, amount) VALUES (?, ?, ?, ?)",
            (row.id, client_id, entry_date.isoformat(), float(row.amount))
        )
    return row


def insert_credit(client_id: str, entry_date: date, amount) -> AmountRow:
    """Record a cash credit row."""
    row = AmountRow(generate_id(), client_id, entry_date, amount)
    with transaction():
        execute(
            "INSERT INTO cash_credits (id, client_id, date, amount) VALUES (?, ?, ?, ?)",
            (row.id, client_id, entry_date.isoformat(), float(row.amount))
        )
    return row


def insert_draw_balance(client_id: str, entry_date: date, balance) -> DrawBalanceRow:
    """Record a prior-period draw balance row."""
    row = DrawBalanceRow(generate_id(), client_id, entry_date, balance)
    with transaction():
        execute(
            "INSERT INTO draw_balances (id, client_id, date, balance) VALUES (?, ?, ?, ?)",
            (row.id, client_id, entry_date.isoformat(), float(row.balance))
        )
    return row


# =============================================================================
# Categories
# =============================================================================

def list_categories() -> List[Category]:
    """Get category buttons in display order."""
    rows = fetch_all("SELECT * FROM categories ORDER BY position, rowid")
    return [Category.from_dict(d) for d in rows_to_dicts(rows)]


def create_category(label: str, operation: str, color: str,
                    category_id: Optional[str] = None) -> Category:
    """Append a category button after the existing ones."""
    category_id = category_id or generate_id()
    row = fetch_one("SELECT COALESCE(MAX(position), -1) + 1 AS next FROM categories")
    position = row['next'] if row else 0
    with transaction():
        execute(
            "INSERT INTO categories (id, label, operation, color, position) VALUES (?, ?, ?, ?, ?)",
            (category_id, label, operation, color, position)
        )
    return Category.from_dict({
        'id': category_id, 'label': label, 'operation': operation,
        'color': color, 'position': position
    })


def update_category_color(category_id: str, color: str) -> None:
    with transaction():
        execute("UPDATE categories SET color = ? WHERE id = ?", (color, category_id))


def delete_category(category_id: str) -> bool:
    """Delete a category button.

    Returns:
        True if deleted, False if not found
    """
    with transaction():
        cursor = execute("DELETE FROM categories WHERE id = ?", (category_id,))
    return cursor.rowcount > 0


def save_categories_order(category_ids: List[str]) -> None:
    """Persist button order as given."""
    with transaction():
        for position, category_id in enumerate(category_ids):
            execute("UPDATE categories SET position = ? WHERE id = ?", (position, category_id))
