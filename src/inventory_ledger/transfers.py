"""Exit-note workflow: moving stock out of a warehouse.

Source stock is decremented when the note is created. ``pending`` and
``in_transit`` notes are reported as committed by :mod:`.commitments`. The
destination only sees the units when the note reaches its terminal state:
``arrived`` for a warehouse, ``completed`` for a reseller.

::

    pending -> in_transit -> arrived | completed
    pending -> cancelled
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy import update
from sqlalchemy.orm import Session

from . import catalog, commitments, sellers, store
from .errors import AlreadyReversed, InsufficientStock, InvalidStateTransition, ValidationError
from .locations import normalize_location, reseller_location
from .models import DestinationType, Movement, MovementKind, MovementStatus, utcnow
from .movements import build_line, create_movement, get_movement, list_movements, record_reversal, require_positive, transition
from .schemas import LineInput

logger = logging.getLogger(__name__)

ALLOWED_FROM = {
    MovementStatus.IN_TRANSIT: (MovementStatus.PENDING,),
    MovementStatus.ARRIVED: (MovementStatus.IN_TRANSIT,),
    MovementStatus.COMPLETED: (MovementStatus.IN_TRANSIT,),
    MovementStatus.CANCELLED: (MovementStatus.PENDING,),
}

TERMINAL_FOR = {
    DestinationType.WAREHOUSE.value: MovementStatus.ARRIVED,
    DestinationType.RESELLER.value: MovementStatus.COMPLETED,
}


def _aggregate(lines: Sequence[LineInput]) -> dict[str, int]:
    totals: dict[str, int] = {}
    for line in lines:
        require_positive(line.quantity)
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return totals


def create_exit_note(
    db: Session,
    source: str,
    lines: Sequence[LineInput],
    *,
    destination: Optional[str] = None,
    seller_id: Optional[str] = None,
    reason: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Movement:
    """Create a pending exit note and take its units out of ``source``.

    Every product must be available (on hand minus already committed) at the
    source; otherwise nothing is written.
    """

    if not lines:
        raise ValidationError("An exit note needs at least one line")
    source_code = normalize_location(source)
    seller = None
    if seller_id and destination:
        raise ValidationError("An exit note goes either to a seller or to a warehouse, not both")
    if seller_id:
        seller = sellers.get_seller(db, seller_id)
        destination_code = reseller_location(seller.id)
        destination_type = DestinationType.RESELLER
    else:
        destination_code = normalize_location(destination)
        destination_type = DestinationType.WAREHOUSE
        if destination_code == source_code:
            raise ValidationError("Source and destination warehouse must differ")

    committed = commitments.committed_by_product(db)
    for product_id, quantity in _aggregate(lines).items():
        catalog.get_product(db, product_id)
        available = commitments.available_quantity(db, product_id, source_code, committed)
        if quantity > available:
            logger.warning(
                "Exit note rejected: %s needs %d at %s, %d available", product_id, quantity, source_code, available
            )
            raise InsufficientStock(product_id, source_code, quantity, available)

    note_lines = []
    for line in lines:
        product = catalog.get_product(db, line.product_id)
        record = store.apply_delta(db, product.id, source_code, -line.quantity)
        if line.unit_price is not None:
            price = line.unit_price
        elif seller is not None:
            price = sellers.price_for(seller, product)
        else:
            price = record.unit_price
        note_lines.append(build_line(product, line.quantity, price, record.unit_cost))

    return create_movement(
        db,
        MovementKind.EXIT_NOTE,
        MovementStatus.PENDING,
        note_lines,
        location=source_code,
        destination=destination_code,
        destination_type=destination_type.value,
        seller_id=seller.id if seller else None,
        reason=reason,
        created_by=created_by,
    )


def get_exit_note(db: Session, note_id: int) -> Movement:
    return get_movement(db, note_id, MovementKind.EXIT_NOTE)


def list_exit_notes(
    db: Session,
    *,
    status: Optional[str] = None,
    seller_id: Optional[str] = None,
    skip: int = 0,
    limit: Optional[int] = None,
) -> list[Movement]:
    return list_movements(
        db, kind=MovementKind.EXIT_NOTE.value, status=status, seller_id=seller_id, skip=skip, limit=limit
    )


def _guard_for(requested: MovementStatus):
    def guard(note: Movement) -> None:
        # only a cancelled note counts as reversed; arrived or completed notes are
        # undone through a correction, so cancelling them is an invalid transition
        if note.status == MovementStatus.CANCELLED.value and requested == MovementStatus.CANCELLED:
            raise AlreadyReversed(note.id)
        allowed = [status.value for status in ALLOWED_FROM.get(requested, ())]
        if note.status not in allowed:
            raise InvalidStateTransition(note.id, note.status, requested.value)
        if requested in (MovementStatus.ARRIVED, MovementStatus.COMPLETED):
            if TERMINAL_FOR.get(note.destination_type) != requested:
                raise InvalidStateTransition(note.id, note.status, requested.value)

    return guard


def update_exit_note_status(
    db: Session,
    note_id: int,
    new_status: MovementStatus,
    *,
    reason: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Movement:
    """Advance an exit note through its workflow."""

    new_status = MovementStatus(new_status)
    if new_status == MovementStatus.CANCELLED:
        return cancel_exit_note(db, note_id, reason=reason, created_by=created_by)

    note = get_exit_note(db, note_id)
    if new_status not in ALLOWED_FROM:
        raise InvalidStateTransition(note.id, note.status, new_status.value)
    transition(db, note, ALLOWED_FROM[new_status], new_status, _guard_for(new_status))

    if new_status == MovementStatus.ARRIVED:
        for line in note.lines:
            store.apply_delta(
                db,
                line.product_id,
                note.destination,
                line.quantity,
                unit_cost=line.unit_cost,
                unit_price=line.unit_price,
            )
    elif new_status == MovementStatus.COMPLETED:
        for line in note.lines:
            sellers.credit_consignment(db, note.seller_id, line.product_id, line.quantity, line.unit_price, note.id)
        sellers.adjust_debt(db, note.seller_id, note.total_value)
    return note


def cancel_exit_note(
    db: Session,
    note_id: int,
    *,
    reason: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Movement:
    """Cancel a pending note and give its units back to the source, once."""

    note = get_exit_note(db, note_id)
    transition(db, note, ALLOWED_FROM[MovementStatus.CANCELLED], MovementStatus.CANCELLED, _guard_for(MovementStatus.CANCELLED))
    for line in note.lines:
        store.apply_delta(
            db, line.product_id, note.location, line.quantity, unit_cost=line.unit_cost, unit_price=line.unit_price
        )
    record_reversal(db, note, reason or f"Exit note {note.number} cancelled", created_by)
    return note


def change_exit_note_seller(db: Session, note_id: int, seller_id: str) -> Movement:
    """Reassign an in-flight reseller note and reprice it at the new seller's tier."""

    note = get_exit_note(db, note_id)
    if note.destination_type != DestinationType.RESELLER.value:
        raise ValidationError(f"Exit note {note.number} is not addressed to a reseller")
    seller = sellers.get_seller(db, seller_id)
    in_flight = [MovementStatus.PENDING.value, MovementStatus.IN_TRANSIT.value]
    result = db.execute(
        update(Movement)
        .where(Movement.id == note.id, Movement.status.in_(in_flight))
        .values(
            seller_id=seller.id,
            destination=reseller_location(seller.id),
            version=Movement.version + 1,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.refresh(note)
        raise InvalidStateTransition(note.id, note.status, note.status)
    for line in note.lines:
        line.unit_price = sellers.price_for(seller, catalog.get_product(db, line.product_id))
    db.flush()
    db.refresh(note)
    logger.info("Exit note %s reassigned to seller %s", note.number, seller.id)
    return note
