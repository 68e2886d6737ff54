"""
crud.py — Ownership-scoped lookups, pagination and partial updates shared by every resource.

A record owned by another user is reported exactly like a missing one.
"""

import math
from typing import Any, Dict, List, Optional, Tuple, Type

from sqlalchemy.orm import Query, Session

from errors import not_found

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def coerce_positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def page_params(page: Any, limit: Any, default_limit: int = DEFAULT_LIMIT) -> Tuple[int, int]:
    return coerce_positive_int(page, DEFAULT_PAGE), min(coerce_positive_int(limit, default_limit), MAX_LIMIT)


def pagination(total: int, page: int, limit: int) -> Dict[str, int]:
    return {"total": total, "page": page, "limit": limit, "total_pages": math.ceil(total / limit)}


def owned_query(db: Session, model: Type, user_id: str) -> Query:
    return db.query(model).filter(model.user_id == user_id)


def get_owned(db: Session, model: Type, user_id: str, record_id: str, label: str):
    """Fetch a record by id AND owner, or raise Not-Found."""
    record = owned_query(db, model, user_id).filter(model.id == record_id).first()
    if record is None:
        raise not_found(label)
    return record


def list_owned(
    db: Session,
    model: Type,
    user_id: str,
    page: Any = None,
    limit: Any = None,
    search: Optional[str] = None,
    search_column=None,
) -> Tuple[List[Any], Dict[str, int]]:
    """Most-recently-updated records of one owner, optionally filtered by a case-insensitive substring."""
    page, limit = page_params(page, limit)
    query = owned_query(db, model, user_id)
    if search and search_column is not None:
        query = query.filter(search_column.icontains(search, autoescape=True))
    total = query.count()
    items = (
        query.order_by(model.updated_at.desc(), model.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, pagination(total, page, limit)


def apply_changes(record, changes: Dict[str, Any]) -> None:
    """Set only the fields present in ``changes``; None never overwrites a stored value."""
    for field, value in changes.items():
        if value is not None:
            setattr(record, field, value)
