"""Main Lambda handler for the client credit ledger API."""

import json
from typing import Any, Optional

from aws_lambda_powertools import Logger

from creditledger.services.config import AppConfig, ensure_categories, load_config

logger = Logger(service="creditledger-api")

_app_config: Optional[AppConfig] = None


def get_app_config() -> AppConfig:
    """Load configuration and category buttons once per container."""
    global _app_config

    if _app_config is None:
        _app_config = load_config()
        ensure_categories()

    return _app_config


def reset_app_config() -> None:
    global _app_config
    _app_config = None


def make_response(status_code: int, body: Any, content_type: str = 'application/json') -> dict:
    """Create API Gateway response.

    Args:
        status_code: HTTP status code
        body: Response body (will be JSON-encoded if dict/list)
        content_type: Content-Type header

    Returns:
        API Gateway response dict
    """
    headers = {
        'Content-Type': content_type,
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Allow-Headers': 'Content-Type,Authorization',
        'Access-Control-Allow-Methods': 'GET,POST,PUT,PATCH,DELETE,OPTIONS'
    }

    if isinstance(body, (dict, list)):
        body = json.dumps(body)

    return {
        'statusCode': status_code,
        'headers': headers,
        'body': body
    }


def error_response(status_code: int, error: str, message: str) -> dict:
    """Create error response."""
    return make_response(status_code, {'error': error, 'message': message})


def with_cors(response: dict) -> dict:
    """Add CORS headers to a route handler's response."""
    headers = make_response(response['statusCode'], '')['headers']
    headers.update(response.get('headers', {}))
    return {**response, 'headers': headers}


def handler(event: dict, context: Any) -> dict:
    """Lambda handler for API Gateway events.

    Args:
        event: API Gateway event
        context: Lambda context

    Returns:
        API Gateway response
    """
    try:
        http_method = event.get('requestContext', {}).get('http', {}).get('method', 'GET')
        path = event.get('rawPath', event.get('path', '/'))
        body_str = event.get('body', '{}')

        # Handle CORS preflight
        if http_method == 'OPTIONS':
            return make_response(200, '')

        try:
            body = json.loads(body_str) if body_str else {}
        except json.JSONDecodeError:
            return error_response(400, 'bad_request', 'Body must be valid JSON')

        query_params = event.get('queryStringParameters', {}) or {}

        return with_cors(route_request(http_method, path, body, query_params))

    except Exception as e:
        logger.exception("Unhandled error", extra={"error": str(e)})
        return error_response(500, 'internal_error', str(e))


def route_request(method: str, path: str, body: dict, query: dict) -> dict:
    """Route request to appropriate handler.

    Args:
        method: HTTP method
        path: Request path
        body: Request body
        query: Query parameters

    Returns:
        API Gateway response
    """
    # Remove /prod prefix if present (API Gateway stage)
    if path.startswith('/prod'):
        path = path[5:]

    config = get_app_config()

    # Import route handlers (lazy to avoid circular imports)
    from creditledger.routes import categories, clients, payouts, reports, transactions

    parts = path.strip('/').split('/')

    # Clients
    if path == '/api/clients' and method == 'GET':
        return clients.handle_list(query)

    if path == '/api/clients' and method == 'POST':
        return clients.handle_create(body)

    if len(parts) == 3 and parts[:2] == ['api', 'clients']:
        if method == 'PATCH':
            return clients.handle_update(parts[2], body)
        if method == 'DELETE':
            return clients.handle_delete(parts[2])

    if len(parts) == 4 and parts[:2] == ['api', 'clients']:
        if parts[3] == 'ledger' and method == 'GET':
            return clients.handle_get_ledger(parts[2], query, config)
        if parts[3] == 'transactions' and method == 'POST':
            return transactions.handle_create(parts[2], body, config)

    # Transactions
    if len(parts) == 3 and parts[:2] == ['api', 'transactions']:
        if method == 'PATCH':
            return transactions.handle_update(parts[2], body)
        if method == 'DELETE':
            return transactions.handle_delete(parts[2])

    if len(parts) == 4 and parts[:2] == ['api', 'transactions'] and parts[3] == 'reprice' and method == 'POST':
        return transactions.handle_reprice(parts[2], body)

    # Categories
    if path == '/api/categories' and method == 'GET':
        return categories.handle_list()

    if path == '/api/categories' and method == 'POST':
        return categories.handle_create(body)

    if path == '/api/categories/order' and method == 'PUT':
        return categories.handle_reorder(body)

    if len(parts) == 3 and parts[:2] == ['api', 'categories'] and method == 'DELETE':
        return categories.handle_delete(parts[2])

    # Prize calculator
    if path == '/api/payouts/calculate' and method == 'POST':
        return payouts.handle_calculate(body)

    if path == '/api/payouts' and method == 'POST':
        return payouts.handle_save(body)

    # Reports
    if path == '/api/weeks' and method == 'GET':
        return reports.handle_weeks(query, config)

    if path == '/api/summary' and method == 'GET':
        return reports.handle_summary(query, config)

    if path == '/api/reports/sales-earnings' and method == 'GET':
        return reports.handle_sales_earnings(query, config)

    logger.warning("Route not found", extra={"method": method, "path": path})
    return error_response(404, 'not_found', f'Route not found: {method} {path}')
