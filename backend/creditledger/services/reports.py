"""Cross-client summary reports."""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from creditledger.models.entities import ZERO, ClientCategory, SaleRow, to_money
from creditledger.services import database, ledger
from creditledger.services.config import AppConfig
from creditledger.services.weeks import window_containing


def client_summary(config: AppConfig, paper_only: bool = False, store=database,
                   as_of: Optional[date] = None) -> dict:
    """Main-column balance of every client, largest first.

    Args:
        config: Application configuration
        paper_only: Only include paper-ledger clients
        store: Record store
        as_of: Only count transactions up to and including this date

    Returns:
        Dict with per-client balances and total receivables
    """
    clients = store.list_clients()
    if paper_only:
        clients = [c for c in clients if c.category is ClientCategory.PAPER]

    rows = [
        {'client': c.to_dict(), 'balance': ledger.client_balance(c, config, store, as_of=as_of)}
        for c in clients
    ]
    rows.sort(key=lambda r: r['balance'], reverse=True)

    return {
        'clients': rows,
        'total_receivables': sum((r['balance'] for r in rows), ZERO)
    }


def paper_earnings(row: SaleRow, config: AppConfig) -> Decimal:
    """Company earnings on a paper sales row: the rate spread on its raw total."""
    raw = row.total
    return to_money(abs(raw * config.company_rate - raw * config.client_rate))


def weekly_sales_earnings(config: AppConfig, store=database,
                          since: Optional[date] = None) -> List[dict]:
    """Paper sales earnings grouped by reporting week.

    Rows for unknown or non-paper clients are ignored.

    Returns:
        List of {'week_end', 'total', 'count'} dicts, newest week first
    """
    paper_ids = {
        c.id for c in store.list_clients() if c.category is ClientCategory.PAPER
    }

    weeks: Dict[date, dict] = {}
    for row in store.list_all_sales():
        if row.client_id not in paper_ids:
            continue
        if since is not None and row.date < since:
            continue
        _, week_end = window_containing(row.date, config.week_end_weekday)
        bucket = weeks.setdefault(week_end, {'total': ZERO, 'count': 0})
        bucket['total'] += paper_earnings(row, config)
        bucket['count'] += 1

    return [
        {'week_end': week_end.isoformat(), 'total': data['total'], 'count': data['count']}
        for week_end, data in sorted(weeks.items(), reverse=True)
    ]
