"""Committed and available-to-promise quantities.

Both are derived on every read from the exit notes that are still in flight;
nothing here is stored. Callers that need the same figure many times within a
request should use :func:`committed_by_product` once and pass the mapping
around instead of caching anything across requests.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from . import store
from .models import Movement, MovementKind, MovementLine, MovementStatus

IN_FLIGHT = (MovementStatus.PENDING.value, MovementStatus.IN_TRANSIT.value)


def _in_flight_lines():
    return (
        select(MovementLine.product_id, func.coalesce(func.sum(MovementLine.quantity), 0))
        .join(Movement, Movement.id == MovementLine.movement_id)
        .where(Movement.kind == MovementKind.EXIT_NOTE.value, Movement.status.in_(IN_FLIGHT))
        .group_by(MovementLine.product_id)
    )


def committed_quantity(db: Session, product_id: str) -> int:
    """Units of ``product_id`` on exit notes that are pending or in transit."""

    statement = _in_flight_lines().where(MovementLine.product_id == product_id)
    row = db.execute(statement).first()
    return int(row[1]) if row else 0


def committed_by_product(db: Session) -> dict[str, int]:
    return {product_id: int(total) for product_id, total in db.execute(_in_flight_lines())}


def available_quantity(
    db: Session,
    product_id: str,
    location: str,
    committed: Optional[dict[str, int]] = None,
) -> int:
    """On-hand units at ``location`` minus units committed to in-flight exit notes."""

    on_hand = store.on_hand(db, product_id, location)
    if committed is None:
        pending = committed_quantity(db, product_id)
    else:
        pending = committed.get(product_id, 0)
    return max(0, on_hand - pending)
