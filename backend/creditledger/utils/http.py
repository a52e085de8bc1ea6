"""API Gateway response helpers."""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any


def _default(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def json_response(status_code: int, body: Any) -> dict:
    """Create a JSON response for a route handler.

    Args:
        status_code: HTTP status code
        body: JSON-serializable body (dates are rendered as YYYY-MM-DD,
            Decimals as numbers)

    Returns:
        Response dict
    """
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(body, default=_default)
    }


def error_body(status_code: int, error: str, message: str) -> dict:
    """Create an error response with an error code and message."""
    return json_response(status_code, {'error': error, 'message': message})


def bad_request(message: str) -> dict:
    return error_body(400, 'bad_request', message)


def not_found(message: str) -> dict:
    return error_body(404, 'not_found', message)


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD.

    Raises:
        ValueError: If the value is not a valid date
    """
    return datetime.strptime(value, '%Y-%m-%d').date()
