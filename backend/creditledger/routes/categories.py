"""Category button routes."""

from creditledger.models.entities import Operation
from creditledger.services import database
from creditledger.services.config import color_for, ensure_categories
from creditledger.utils.http import bad_request, json_response, not_found


def handle_list() -> dict:
    """List category buttons in display order."""
    categories = ensure_categories()
    return json_response(200, {'categories': [c.to_dict() for c in categories]})


def handle_create(body: dict) -> dict:
    """Create a category button.

    Args:
        body: Category data (label, operation; color optional)

    Returns:
        Response with created category
    """
    label = body.get('label')
    if label is None:
        return bad_request('label is required')

    operation = body.get('operation', 'subtract')
    if operation not in [op.value for op in Operation]:
        return bad_request(f"Unknown operation: {operation}")

    category = database.create_category(label, operation, body.get('color') or color_for(operation))
    return json_response(201, category.to_dict())


def handle_delete(category_id: str) -> dict:
    """Delete a category button.

    Existing transactions keep the label they were created with.
    """
    if not database.delete_category(category_id):
        return not_found('Category not found')
    return json_response(200, {'deleted': category_id})


def handle_reorder(body: dict) -> dict:
    """Save button order from a list of category IDs."""
    ids = body.get('ids')
    if not isinstance(ids, list):
        return bad_request('ids must be a list')

    known = {c.id for c in database.list_categories()}
    unknown = [i for i in ids if i not in known]
    if unknown:
        return bad_request(f"Unknown category ids: {', '.join(map(str, unknown))}")

    database.save_categories_order(ids)
    return json_response(200, {'categories': [c.to_dict() for c in database.list_categories()]})
