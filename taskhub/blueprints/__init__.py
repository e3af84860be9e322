"""
TaskHub
Blueprint registry and shared view helpers.
"""

from flask import jsonify, request

from taskhub.core.exceptions import ValidationError
from taskhub.services.permission_matrix import allowed


def paginate_query(query, default_limit=50, max_limit=200):
    """Apply limit/offset pagination to a SQLAlchemy query.

    Query params:
        limit  — max items (default 50, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    total = query.count()
    try:
        limit = min(max(int(request.args.get("limit", default_limit)), 1), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    items = query.limit(limit).offset(offset).all()
    return items, total


def json_body() -> dict:
    """The request JSON object; ValidationError if it is not an object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def flag(name, default=False) -> bool:
    value = request.args.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes")


def success(data=None, status=200, **extra):
    body = {"success": True, "data": data}
    body.update(extra)
    return jsonify(body), status


def list_response(query, serialize=None):
    items, total = paginate_query(query)
    serialize = serialize or (lambda item: item.to_dict())
    return success([serialize(i) for i in items], total=total)


def include_deleted_for(principal, resource) -> bool:
    """``?include_deleted=true`` is honoured only for roles that may restore."""
    return flag("include_deleted") and allowed(principal.role, resource, "restore")


def deleted_response(summary):
    """Body for a cascade delete: the root plus every entity it took along."""
    model, entity_id = summary["root"]
    return success({
        "id": entity_id,
        "type": model,
        "deleted": [{"type": t, "id": i} for t, i in summary["deleted"]],
        "deleted_count": len(summary["deleted"]),
    })
