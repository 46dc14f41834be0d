"""
Conditional status updates driven by explicit transition tables.

A transition is written as a single UPDATE whose WHERE clause pins the
current status to the allowed source states, so of two racing callers
at most one sees rowcount == 1.
"""
from typing import Any, Iterable, List, Mapping, Optional, Set

from sqlalchemy import update
from sqlalchemy.orm import Session


def can_transition(table: Mapping[Any, Set[Any]], current: Any, target: Any) -> bool:
    return target in table.get(current, set())


def allowed_sources(table: Mapping[Any, Set[Any]], target: Any) -> List[Any]:
    """All states from which `target` may be entered."""
    return [state for state, targets in table.items() if target in targets]


def compare_and_set_status(
    db: Session,
    model: Any,
    key_column: Any,
    key: Any,
    table: Mapping[Any, Set[Any]],
    target: Any,
    expected: Optional[Iterable[Any]] = None,
    **values: Any,
) -> bool:
    """
    Atomically move one row to `target`.

    Args:
        db: Active session; the caller owns commit/rollback
        model: ORM class with a `status` column
        key_column: Primary key column of `model`
        key: Primary key value
        table: Transition table (current -> allowed targets)
        target: New status
        expected: Optional narrowing of the source states
        **values: Extra columns written in the same statement

    Returns:
        True if this call performed the transition.
    """
    sources = allowed_sources(table, target)
    if expected is not None:
        expected = list(expected)
        sources = [s for s in sources if s in expected]
    if not sources:
        return False

    stmt = (
        update(model)
        .where(key_column == key, model.status.in_(sources))
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    return result.rowcount == 1
