"""Client routes."""

from datetime import date

from creditledger.models.entities import ClientCategory
from creditledger.services import database, ledger
from creditledger.services.config import AppConfig
from creditledger.utils.http import bad_request, json_response, not_found, parse_iso_date


def handle_list(query: dict) -> dict:
    """List clients.

    Args:
        query: Query parameters (category, search)

    Returns:
        Response with client list
    """
    clients = database.list_clients()

    category = query.get('category')
    if category:
        clients = [c for c in clients if c.category.value == category]

    search = (query.get('search') or '').lower()
    if search:
        clients = [c for c in clients if search in c.name.lower() or search in c.code.lower()]

    return json_response(200, {'clients': [c.to_dict() for c in clients]})


def handle_create(body: dict) -> dict:
    """Create a client.

    Args:
        body: Client data (name required; code, phone, category optional)

    Returns:
        Response with created client
    """
    if not body.get('name'):
        return bad_request('name is required')

    category = body.get('category', 'paper')
    if category not in [c.value for c in ClientCategory]:
        return bad_request(f"Unknown client category: {category}")

    client = database.create_client(
        code=body.get('code', ''),
        name=body['name'],
        phone=body.get('phone'),
        category=category
    )
    return json_response(201, client.to_dict())


def handle_update(client_id: str, body: dict) -> dict:
    """Update a client."""
    if database.get_client(client_id) is None:
        return not_found('Client not found')

    if 'category' in body and body['category'] not in [c.value for c in ClientCategory]:
        return bad_request(f"Unknown client category: {body['category']}")

    client = database.update_client(client_id, body)
    return json_response(200, client.to_dict())


def handle_delete(client_id: str) -> dict:
    """Delete a client and its manual ledger records."""
    if not database.delete_client(client_id):
        return not_found('Client not found')
    return json_response(200, {'deleted': client_id})


def handle_get_ledger(client_id: str, query: dict, config: AppConfig) -> dict:
    """Get a client's three ledger columns for one reporting week.

    Args:
        client_id: Client ID
        query: Query parameters (date: any day in the wanted week, default today)
        config: Application configuration

    Returns:
        Response with window bounds, per-column transactions and balances,
        and the client's running main balance
    """
    client = database.get_client(client_id)
    if client is None:
        return not_found('Client not found')

    if query.get('date'):
        try:
            as_of = parse_iso_date(query['date'])
        except ValueError:
            return bad_request('date must be YYYY-MM-DD')
    else:
        as_of = date.today()

    view = ledger.window_view(client, as_of, config)

    return json_response(200, {
        'client': client.to_dict(),
        'start': view['start'],
        'end': view['end'],
        'columns': ledger.columns_to_dict(view['columns']),
        'running_balance': ledger.client_balance(client, config, as_of=view['end'])
    })
