"""
Generic read helpers shared by the services and the authentication resolver.

Writes stay inside the services so that each one runs in its caller's
transaction; these helpers never commit.
"""

from typing import Any, Dict, Optional, Type, TypeVar

from sqlalchemy.orm import Session

T = TypeVar("T")


def _apply_filters(query, model_class, filters: Optional[Dict[str, Any]]):
    for key, value in (filters or {}).items():
        if not hasattr(model_class, key):
            raise AttributeError(f"{model_class.__name__} has no column '{key}'")
        column = getattr(model_class, key)
        query = query.filter(column.is_(None) if value is None else column == value)
    return query


def get_record(session: Session, model_class: Type[T], filters: Dict[str, Any]) -> Optional[T]:
    """
    Return the first record matching every filter, or None.

    A None filter value matches NULL; it is never skipped.
    """
    return _apply_filters(session.query(model_class), model_class, filters).first()


def count_records(
    session: Session, model_class: Type[T], filters: Optional[Dict[str, Any]] = None
) -> int:
    return _apply_filters(session.query(model_class), model_class, filters).count()


def record_exists(session: Session, model_class: Type[T], filters: Dict[str, Any]) -> bool:
    return get_record(session, model_class, filters) is not None
