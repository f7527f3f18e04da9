"""Movement log.

Every command that changes stock is recorded here as a :class:`Movement` with
one or more lines. Quantities on lines are always positive; the direction of a
movement follows from its kind and status, never from a sign. Reversals are
recorded as new ``reversal`` movements pointing at the original, whose status
moves to a terminal value so it stops contributing to replayed balances.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session, selectinload

from . import catalog, store
from .errors import AlreadyReversed, InvalidStateTransition, NotFound, ValidationError
from .locations import is_reseller_location, normalize_location, reseller_location
from .models import (
    NUMBER_PREFIXES,
    DestinationType,
    Movement,
    MovementKind,
    MovementLine,
    MovementStatus,
    Product,
    utcnow,
)
from .schemas import LineInput

logger = logging.getLogger(__name__)

# statuses in which an exit note has already left its source
EXIT_DECREMENTED = {
    MovementStatus.PENDING.value,
    MovementStatus.IN_TRANSIT.value,
    MovementStatus.ARRIVED.value,
    MovementStatus.COMPLETED.value,
}


@dataclass(frozen=True)
class Effect:
    """Signed quantity change a movement line applies to one location."""

    product_id: str
    location: str
    quantity: int


def require_positive(quantity: int) -> int:
    if quantity is None or quantity <= 0:
        raise ValidationError(f"Quantity must be a positive integer, got {quantity!r}")
    return quantity


def require_reason(reason: Optional[str]) -> str:
    if reason is None or not reason.strip():
        raise ValidationError("A reason is required for manual corrections")
    return reason.strip()


def build_line(product: Product, quantity: int, unit_price: float, unit_cost: Optional[float] = None) -> MovementLine:
    return MovementLine(
        product_id=product.id,
        product_name=product.name,
        product_sku=product.sku,
        quantity=require_positive(quantity),
        unit_price=unit_price,
        unit_cost=product.cost if unit_cost is None else unit_cost,
    )


def create_movement(
    db: Session,
    kind: MovementKind,
    status: MovementStatus,
    lines: list[MovementLine],
    *,
    location: Optional[str] = None,
    destination: Optional[str] = None,
    destination_type: Optional[str] = None,
    seller_id: Optional[str] = None,
    supplier: Optional[str] = None,
    reason: Optional[str] = None,
    reverses_id: Optional[int] = None,
    created_by: Optional[str] = None,
) -> Movement:
    if not lines:
        raise ValidationError("A movement needs at least one line")
    now = utcnow()
    movement = Movement(
        kind=kind.value,
        status=status.value,
        location=location,
        destination=destination,
        destination_type=destination_type,
        seller_id=seller_id,
        supplier=supplier,
        reason=reason,
        reverses_id=reverses_id,
        created_by=created_by,
        created_at=now,
        updated_at=now,
        lines=lines,
    )
    db.add(movement)
    db.flush()
    movement.number = f"{NUMBER_PREFIXES[kind]}-{movement.id:06d}"
    db.flush()
    logger.info("Recorded %s %s (%s)", kind.value, movement.number, status.value)
    return movement


def get_movement(db: Session, movement_id: int, kind: Optional[MovementKind] = None) -> Movement:
    statement = (
        select(Movement)
        .options(selectinload(Movement.lines))
        .where(Movement.id == movement_id)
        .execution_options(populate_existing=True)
    )
    movement = db.scalars(statement).first()
    if movement is None or (kind is not None and movement.kind != kind.value):
        raise NotFound(kind.value.replace("_", " ").title() if kind else "Movement", movement_id)
    return movement


def list_movements(
    db: Session,
    *,
    product_id: Optional[str] = None,
    location: Optional[str] = None,
    kind: Optional[str] = None,
    status: Optional[str] = None,
    seller_id: Optional[str] = None,
    skip: int = 0,
    limit: Optional[int] = None,
) -> list[Movement]:
    statement = select(Movement).options(selectinload(Movement.lines))
    if product_id:
        statement = statement.where(Movement.lines.any(MovementLine.product_id == product_id))
    if location:
        code = location if is_reseller_location(location) else normalize_location(location)
        statement = statement.where(or_(Movement.location == code, Movement.destination == code))
    if kind:
        statement = statement.where(Movement.kind == kind)
    if status:
        statement = statement.where(Movement.status == status)
    if seller_id:
        statement = statement.where(Movement.seller_id == seller_id)
    statement = statement.order_by(Movement.created_at, Movement.id).offset(skip)
    if limit is not None:
        statement = statement.limit(limit)
    return list(db.scalars(statement))


def transition(
    db: Session,
    movement: Movement,
    allowed_from: Iterable[str],
    new_status: MovementStatus,
    guard: Callable[[Movement], None],
) -> Movement:
    """Move ``movement`` to ``new_status`` only if its stored status is still allowed.

    ``guard`` raises the workflow specific error for the current status. It is
    called before the update and again after a lost race, with the row
    refreshed, so a concurrent reversal surfaces as the same typed failure.
    """

    guard(movement)
    allowed = [getattr(value, "value", value) for value in allowed_from]
    result = db.execute(
        update(Movement)
        .where(Movement.id == movement.id, Movement.status.in_(allowed))
        .values(status=new_status.value, version=Movement.version + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.refresh(movement)
    if result.rowcount != 1:
        logger.warning("Status of %s changed concurrently to %s", movement.number, movement.status)
        guard(movement)
        raise InvalidStateTransition(movement.id, movement.status, new_status.value)
    logger.info("%s moved to %s", movement.number, new_status.value)
    return movement


def record_reversal(db: Session, original: Movement, reason: Optional[str], created_by: Optional[str] = None) -> Movement:
    """Write the audit record for an undo of ``original``."""

    lines = [
        MovementLine(
            product_id=line.product_id,
            product_name=line.product_name,
            product_sku=line.product_sku,
            quantity=line.quantity,
            unit_price=line.unit_price,
            unit_cost=line.unit_cost,
        )
        for line in original.lines
    ]
    return create_movement(
        db,
        MovementKind.REVERSAL,
        MovementStatus.COMPLETED,
        lines,
        location=original.location,
        destination=original.destination,
        destination_type=original.destination_type,
        seller_id=original.seller_id,
        reason=reason or f"Reversal of {original.number}",
        reverses_id=original.id,
        created_by=created_by,
    )


def record_entry_note(
    db: Session,
    location: str,
    lines: Sequence[LineInput],
    *,
    supplier: Optional[str] = None,
    reason: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Movement:
    """Receive a purchase into a warehouse as one numbered entry note.

    Each line defaults its unit cost and price to the catalog ``cost`` and
    ``sale_price1``. Every line is checked before any stock is written.
    """

    if not lines:
        raise ValidationError("An entry note needs at least one line")
    code = normalize_location(location)
    priced = []
    for line in lines:
        require_positive(line.quantity)
        product = catalog.get_product(db, line.product_id)
        cost = product.cost if line.unit_cost is None else line.unit_cost
        price = product.sale_price1 if line.unit_price is None else line.unit_price
        priced.append((product, line.quantity, cost, price))

    entry_lines = []
    for product, quantity, cost, price in priced:
        store.apply_delta(db, product.id, code, quantity, unit_cost=cost, unit_price=price)
        entry_lines.append(build_line(product, quantity, price, cost))
    return create_movement(
        db,
        MovementKind.ENTRY,
        MovementStatus.COMPLETED,
        entry_lines,
        location=code,
        supplier=supplier.strip() if supplier and supplier.strip() else None,
        reason=reason,
        created_by=created_by,
    )


def record_entry(
    db: Session,
    product_id: str,
    location: str,
    quantity: int,
    *,
    unit_cost: Optional[float] = None,
    unit_price: Optional[float] = None,
    supplier: Optional[str] = None,
    reason: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Movement:
    """Receive a single product; shorthand for a one-line entry note."""

    line = LineInput(product_id=product_id, quantity=quantity, unit_cost=unit_cost, unit_price=unit_price)
    return record_entry_note(db, location, [line], supplier=supplier, reason=reason, created_by=created_by)


def record_sale(
    db: Session,
    product_id: str,
    location: str,
    quantity: int,
    *,
    unit_price: Optional[float] = None,
    reason: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Movement:
    """Sell units out of a warehouse, decrementing stock immediately."""

    require_positive(quantity)
    product = catalog.get_product(db, product_id)
    code = normalize_location(location)
    record = store.apply_delta(db, product.id, code, -quantity)
    price = product.sale_price1 if unit_price is None else unit_price
    return create_movement(
        db,
        MovementKind.SALE,
        MovementStatus.COMPLETED,
        [build_line(product, quantity, price, record.unit_cost)],
        location=code,
        reason=reason,
        created_by=created_by,
    )


def _sale_guard(movement: Movement) -> None:
    if movement.status == MovementStatus.REVERSED.value:
        raise AlreadyReversed(movement.id)
    if movement.status != MovementStatus.COMPLETED.value:
        raise InvalidStateTransition(movement.id, movement.status, MovementStatus.REVERSED.value)


def reverse_sale(
    db: Session,
    sale_id: int,
    *,
    reason: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Movement:
    """Cancel a sale, putting its units back exactly once."""

    sale = get_movement(db, sale_id, MovementKind.SALE)
    transition(db, sale, [MovementStatus.COMPLETED], MovementStatus.REVERSED, _sale_guard)
    for line in sale.lines:
        store.apply_delta(
            db, line.product_id, sale.location, line.quantity, unit_cost=line.unit_cost, unit_price=line.unit_price
        )
    return record_reversal(db, sale, reason or f"Sale {sale.number} cancelled", created_by)


def record_correction(
    db: Session,
    product_id: str,
    location: str,
    reason: str,
    *,
    quantity_delta: Optional[int] = None,
    new_quantity: Optional[int] = None,
    created_by: Optional[str] = None,
) -> Optional[Movement]:
    """Adjust a balance after a physical count.

    Either ``quantity_delta`` (signed) or ``new_quantity`` (absolute recount) is
    given. A recount that matches the current balance records nothing.
    """

    reason = require_reason(reason)
    if (quantity_delta is None) == (new_quantity is None):
        raise ValidationError("Provide exactly one of quantity_delta or new_quantity")
    product = catalog.get_product(db, product_id)
    code = normalize_location(location)

    if quantity_delta is not None:
        if quantity_delta == 0:
            raise ValidationError("Quantity delta must not be zero")
        record = store.apply_delta(db, product.id, code, quantity_delta)
        delta = quantity_delta
    else:
        if store.on_hand(db, product.id, code) == new_quantity:
            logger.info("Recount of %s@%s matches the balance (%d)", product.id, code, new_quantity)
            return None
        # the delta comes from the balance the write replaced, not from the read above
        record, previous = store.replace_quantity(db, product.id, code, new_quantity, reason)
        delta = new_quantity - previous
        if delta == 0:
            return None

    direction = DestinationType.INCREASE if delta > 0 else DestinationType.DECREASE
    return create_movement(
        db,
        MovementKind.CORRECTION,
        MovementStatus.COMPLETED,
        [build_line(product, abs(delta), record.unit_price, record.unit_cost)],
        location=code,
        destination_type=direction.value,
        reason=reason,
        created_by=created_by,
    )


def movement_effects(movement: Movement) -> list[Effect]:
    """Signed effects of ``movement`` under its current status.

    Warehouse effects use the warehouse code; consignment effects use
    ``reseller:<seller_id>``. Cancelled, rejected, restored and reversed
    movements contribute nothing, and neither do reversal records.
    """

    kind = movement.kind
    status = movement.status
    effects: list[Effect] = []
    for line in movement.lines:
        qty = line.quantity
        pid = line.product_id
        if kind == MovementKind.ENTRY.value and status == MovementStatus.COMPLETED.value:
            effects.append(Effect(pid, movement.location, qty))
        elif kind == MovementKind.SALE.value and status == MovementStatus.COMPLETED.value:
            effects.append(Effect(pid, movement.location, -qty))
        elif kind == MovementKind.CORRECTION.value and status == MovementStatus.COMPLETED.value:
            sign = 1 if movement.destination_type == DestinationType.INCREASE.value else -1
            effects.append(Effect(pid, movement.location, sign * qty))
        elif kind == MovementKind.EXIT_NOTE.value and status in EXIT_DECREMENTED:
            effects.append(Effect(pid, movement.location, -qty))
            if status == MovementStatus.ARRIVED.value:
                effects.append(Effect(pid, movement.destination, qty))
            elif status == MovementStatus.COMPLETED.value and movement.seller_id:
                effects.append(Effect(pid, reseller_location(movement.seller_id), qty))
        elif kind == MovementKind.RETURN.value and status == MovementStatus.APPROVED.value:
            effects.append(Effect(pid, movement.destination, qty))
            effects.append(Effect(pid, reseller_location(movement.seller_id), -qty))
    return effects
