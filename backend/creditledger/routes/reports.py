"""Report routes."""

from datetime import date

from creditledger.models.entities import ZERO
from creditledger.services import reports
from creditledger.services.config import AppConfig
from creditledger.services.weeks import weeks_of
from creditledger.utils.http import bad_request, json_response, parse_iso_date


def handle_summary(query: dict, config: AppConfig) -> dict:
    """Client balances and total receivables.

    Args:
        query: Query parameters (paper_only, as_of as YYYY-MM-DD)
        config: Application configuration

    Returns:
        Response with client summary
    """
    paper_only = query.get('paper_only', 'false').lower() == 'true'
    as_of = None
    if query.get('as_of'):
        try:
            as_of = parse_iso_date(query['as_of'])
        except ValueError:
            return bad_request('as_of must be YYYY-MM-DD')

    summary = reports.client_summary(config, paper_only=paper_only, as_of=as_of)
    return json_response(200, dict(summary, as_of=as_of))


def handle_sales_earnings(query: dict, config: AppConfig) -> dict:
    """Weekly paper sales earnings, newest week first."""
    since = None
    if query.get('since'):
        try:
            since = parse_iso_date(query['since'])
        except ValueError:
            return bad_request('since must be YYYY-MM-DD')

    weeks = reports.weekly_sales_earnings(config, since=since)
    return json_response(200, {
        'weeks': weeks,
        'total': sum((w['total'] for w in weeks), ZERO)
    })


def handle_weeks(query: dict, config: AppConfig) -> dict:
    """Reporting weeks of a month.

    Args:
        query: Query parameters (year, month as 0-11; default current month)
        config: Application configuration

    Returns:
        Response mapping week number to its days
    """
    today = date.today()
    try:
        year = int(query.get('year', today.year))
        month_index = int(query.get('month', today.month - 1))
        weeks = weeks_of(year, month_index, config.week_end_weekday)
    except ValueError as e:
        return bad_request(str(e))

    return json_response(200, {
        'year': year,
        'month': month_index,
        'weeks': {str(number): days for number, days in weeks.items()}
    })
