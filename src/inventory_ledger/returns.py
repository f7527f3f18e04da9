"""Reseller return workflow.

::

    pending -> approved -> restored
    pending -> rejected

Approval moves units from the reseller's consignment into a warehouse and
lowers the reseller's debt; restore is its exact inverse and may only happen
once.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from . import catalog, sellers, store
from .config import get_settings
from .errors import AlreadyReversed, InsufficientStock, InvalidStateTransition, ValidationError
from .locations import normalize_location, reseller_location
from .models import DestinationType, Movement, MovementKind, MovementStatus
from .movements import build_line, create_movement, get_movement, list_movements, record_reversal, require_positive, transition
from .schemas import LineInput

logger = logging.getLogger(__name__)


def create_return(
    db: Session,
    seller_id: str,
    lines: Sequence[LineInput],
    *,
    destination: Optional[str] = None,
    reason: Optional[str] = None,
    auto_approve: bool = False,
    created_by: Optional[str] = None,
) -> Movement:
    """Open a return request for units a reseller holds on consignment."""

    if not lines:
        raise ValidationError("A return needs at least one line")
    seller = sellers.get_seller(db, seller_id)
    destination_code = normalize_location(destination or get_settings().destination_warehouse)

    requested: dict[str, int] = {}
    for line in lines:
        require_positive(line.quantity)
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity
    for product_id, quantity in requested.items():
        catalog.get_product(db, product_id)
        outstanding = sellers.outstanding_consignment(db, seller.id, product_id)
        if quantity > outstanding:
            raise InsufficientStock(product_id, reseller_location(seller.id), quantity, outstanding)

    return_lines = []
    for line in lines:
        product = catalog.get_product(db, line.product_id)
        price = line.unit_price if line.unit_price is not None else sellers.price_for(seller, product)
        return_lines.append(build_line(product, line.quantity, price))

    movement = create_movement(
        db,
        MovementKind.RETURN,
        MovementStatus.PENDING,
        return_lines,
        location=reseller_location(seller.id),
        destination=destination_code,
        destination_type=DestinationType.WAREHOUSE.value,
        seller_id=seller.id,
        reason=reason,
        created_by=created_by,
    )
    if auto_approve:
        return approve_return(db, movement.id)
    return movement


def get_return(db: Session, return_id: int) -> Movement:
    return get_movement(db, return_id, MovementKind.RETURN)


def list_returns(
    db: Session,
    *,
    status: Optional[str] = None,
    seller_id: Optional[str] = None,
    skip: int = 0,
    limit: Optional[int] = None,
) -> list[Movement]:
    return list_movements(db, kind=MovementKind.RETURN.value, status=status, seller_id=seller_id, skip=skip, limit=limit)


def _pending_only(requested: MovementStatus):
    def guard(movement: Movement) -> None:
        if movement.status != MovementStatus.PENDING.value:
            raise InvalidStateTransition(movement.id, movement.status, requested.value)

    return guard


def _restore_guard(movement: Movement) -> None:
    if movement.status == MovementStatus.RESTORED.value:
        raise AlreadyReversed(movement.id)
    if movement.status != MovementStatus.APPROVED.value:
        raise InvalidStateTransition(movement.id, movement.status, MovementStatus.RESTORED.value)


def approve_return(db: Session, return_id: int) -> Movement:
    """Accept returned units into the destination warehouse and credit the reseller."""

    movement = get_return(db, return_id)
    transition(db, movement, [MovementStatus.PENDING], MovementStatus.APPROVED, _pending_only(MovementStatus.APPROVED))
    for line in movement.lines:
        sellers.mark_returned(db, movement.seller_id, line.product_id, line.quantity)
        # keyed by destination, so the record already lives in the right warehouse
        store.apply_delta(
            db,
            line.product_id,
            movement.destination,
            line.quantity,
            unit_cost=line.unit_cost,
            unit_price=line.unit_price,
        )
    sellers.adjust_debt(db, movement.seller_id, -movement.total_value)
    logger.info("Return %s approved into %s", movement.number, movement.destination)
    return movement


def reject_return(db: Session, return_id: int, reason: Optional[str] = None) -> Movement:
    movement = get_return(db, return_id)
    transition(db, movement, [MovementStatus.PENDING], MovementStatus.REJECTED, _pending_only(MovementStatus.REJECTED))
    if reason:
        movement.reason = f"{movement.reason}\n{reason}" if movement.reason else reason
        db.flush()
    return movement


def restore_return(
    db: Session,
    return_id: int,
    *,
    reason: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Movement:
    """Undo an approved return: units go back to the reseller, debt goes back up."""

    movement = get_return(db, return_id)
    transition(db, movement, [MovementStatus.APPROVED], MovementStatus.RESTORED, _restore_guard)
    for line in movement.lines:
        sellers.unmark_returned(db, movement.seller_id, line.product_id, line.quantity)
        store.apply_delta(db, line.product_id, movement.destination, -line.quantity)
    sellers.adjust_debt(db, movement.seller_id, movement.total_value)
    record_reversal(db, movement, reason or f"Return {movement.number} restored", created_by)
    return movement
