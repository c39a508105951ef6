# Overview: Tenant-scoped query helpers shared by every domain service.

"""
Tenant Scoping

Every query against restaurant-owned data goes through scoped(), which
requires restaurant_id as a keyword argument. A record that belongs to
another restaurant is indistinguishable from one that does not exist.
"""

from math import ceil

from ..extensions import db
from ..errors import NotFoundError


def scoped(model, *, restaurant_id: int, active_only: bool = True):
    """Base query for a restaurant-owned model."""
    if restaurant_id is None:
        raise ValueError("restaurant_id is required")
    query = db.session.query(model).filter(model.restaurant_id == restaurant_id)
    if active_only and hasattr(model, "is_active"):
        query = query.filter(model.is_active.is_(True))
    return query


def get_scoped_or_404(model, entity_id, *, restaurant_id: int, message: str, active_only: bool = True):
    """Fetch one record of this restaurant or raise NotFoundError(message)."""
    try:
        entity_id = int(entity_id)
    except (TypeError, ValueError):
        raise NotFoundError(message)

    entity = scoped(model, restaurant_id=restaurant_id, active_only=active_only).filter(
        model.id == entity_id
    ).first()
    if entity is None:
        raise NotFoundError(message)
    return entity


def paginate(query, *, page: int, limit: int) -> tuple[list, dict]:
    """Apply offset/limit and return (rows, pagination block)."""
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": ceil(total / limit) if limit else 0,
    }
