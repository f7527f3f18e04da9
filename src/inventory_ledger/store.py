"""Inventory store: the authoritative (product, location) balances.

The store is plain state. It does not know why a quantity changes; the
movement log records that. Every write is a compare-and-swap on the record's
``version`` column, retried a bounded number of times, so two concurrent
decrements can never both pass the non-negative check against the same
stale quantity.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import insert as sa_insert
from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from . import models
from .config import get_settings
from .errors import ConcurrencyConflict, InsufficientStock, ValidationError
from .locations import normalize_location
from .models import InventoryRecord, utcnow

logger = logging.getLogger(__name__)

_INSERT_IGNORE = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}


def get(db: Session, product_id: str, location: str) -> Optional[InventoryRecord]:
    """Return the record for ``(product_id, location)`` or ``None``."""

    statement = (
        select(InventoryRecord)
        .where(InventoryRecord.product_id == product_id, InventoryRecord.location == normalize_location(location))
        .execution_options(populate_existing=True)
    )
    return db.scalars(statement).first()


def on_hand(db: Session, product_id: str, location: str) -> int:
    record = get(db, product_id, location)
    return record.quantity if record else 0


def list_all(
    db: Session,
    location: Optional[str] = None,
    product_id: Optional[str] = None,
) -> list[InventoryRecord]:
    statement = select(InventoryRecord).execution_options(populate_existing=True)
    if location:
        statement = statement.where(InventoryRecord.location == normalize_location(location))
    if product_id:
        statement = statement.where(InventoryRecord.product_id == product_id)
    statement = statement.order_by(InventoryRecord.product_id, InventoryRecord.location)
    return list(db.scalars(statement))


def _weighted(old_total: float, old_quantity: int, incoming: float, quantity: int) -> tuple[float, float]:
    total = old_total + incoming * quantity
    return total, total / (old_quantity + quantity)


def _values_after_delta(
    record: InventoryRecord,
    delta: int,
    unit_cost: Optional[float],
    unit_price: Optional[float],
) -> dict[str, object]:
    new_quantity = record.quantity + delta
    if delta > 0:
        if record.quantity == 0:
            cost = record.unit_cost if unit_cost is None else unit_cost
            price = record.unit_price if unit_price is None else unit_price
            return {
                "quantity": new_quantity,
                "unit_cost": cost,
                "unit_price": price,
                "total_cost": cost * new_quantity,
                "total_price": price * new_quantity,
            }
        total_cost, avg_cost = _weighted(
            record.total_cost, record.quantity, record.unit_cost if unit_cost is None else unit_cost, delta
        )
        total_price, avg_price = _weighted(
            record.total_price, record.quantity, record.unit_price if unit_price is None else unit_price, delta
        )
        return {
            "quantity": new_quantity,
            "unit_cost": avg_cost,
            "unit_price": avg_price,
            "total_cost": total_cost,
            "total_price": total_price,
        }

    # decrements scale totals so the remaining units keep their average value
    if new_quantity == 0:
        return {"quantity": 0, "total_cost": 0.0, "total_price": 0.0}
    return {
        "quantity": new_quantity,
        "total_cost": record.total_cost * new_quantity / record.quantity,
        "total_price": record.total_price * new_quantity / record.quantity,
    }


def _insert(
    db: Session,
    product_id: str,
    location: str,
    quantity: int,
    unit_cost: float,
    unit_price: float,
) -> Optional[InventoryRecord]:
    values = {
        "product_id": product_id,
        "location": location,
        "quantity": quantity,
        "unit_cost": unit_cost,
        "unit_price": unit_price,
        "total_cost": unit_cost * quantity,
        "total_price": unit_price * quantity,
        "version": 1,
        "updated_at": utcnow(),
    }
    insert = _INSERT_IGNORE.get(db.get_bind().dialect.name)
    if insert is None:
        db.execute(sa_insert(InventoryRecord).values(**values))
    else:
        statement = insert(InventoryRecord).values(**values).on_conflict_do_nothing(
            index_elements=["product_id", "location"]
        )
        if db.execute(statement).rowcount != 1:
            # another writer created the key first; the caller retries as an update
            logger.debug("Lost insert race on %s@%s", product_id, location)
            return None
    return get(db, product_id, location)


def _compare_and_swap(db: Session, record_id: int, expected_version: int, values: dict[str, object]) -> bool:
    result = db.execute(
        update(InventoryRecord)
        .where(InventoryRecord.id == record_id, InventoryRecord.version == expected_version)
        .values(**values, version=expected_version + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def apply_delta(
    db: Session,
    product_id: str,
    location: str,
    quantity_delta: int,
    unit_cost: Optional[float] = None,
    unit_price: Optional[float] = None,
) -> InventoryRecord:
    """Add ``quantity_delta`` (signed) to the balance of ``(product_id, location)``.

    Positive deltas create the record on first entry and re-average unit cost and
    price weighted by quantity. Negative deltas fail with ``InsufficientStock``
    when the balance would go below zero and scale the totals proportionally.
    """

    if quantity_delta == 0:
        raise ValidationError("Quantity delta must not be zero")
    location = normalize_location(location)
    retries = get_settings().write_retries

    for _ in range(retries):
        record = get(db, product_id, location)
        if record is None:
            if quantity_delta < 0:
                raise InsufficientStock(product_id, location, -quantity_delta, 0)
            record = _insert(db, product_id, location, quantity_delta, unit_cost or 0.0, unit_price or 0.0)
            if record is None:
                continue
            logger.info("Created %s@%s with %d units", product_id, location, quantity_delta)
            return record

        if record.quantity + quantity_delta < 0:
            raise InsufficientStock(product_id, location, -quantity_delta, record.quantity)
        expected_version = record.version
        values = _values_after_delta(record, quantity_delta, unit_cost, unit_price)
        if _compare_and_swap(db, record.id, expected_version, values):
            db.refresh(record)
            logger.info(
                "Applied %+d to %s@%s, on hand now %d", quantity_delta, product_id, location, record.quantity
            )
            return record
        logger.warning("Version conflict on %s@%s, retrying", product_id, location)

    raise ConcurrencyConflict(product_id, location)


def replace_quantity(
    db: Session,
    product_id: str,
    location: str,
    new_quantity: int,
    reason: str,
) -> tuple[InventoryRecord, int]:
    """Overwrite the balance and return the record with the quantity it replaced.

    The replaced quantity is the one the winning compare-and-swap overwrote, so
    callers can log the exact change even when other writers got in first.
    """

    if new_quantity < 0:
        raise ValidationError("Quantity must not be negative")
    if not reason or not reason.strip():
        raise ValidationError("A reason is required to override a stock balance")
    location = normalize_location(location)
    retries = get_settings().write_retries

    for _ in range(retries):
        record = get(db, product_id, location)
        if record is None:
            product = db.get(models.Product, product_id)
            cost = product.cost if product else 0.0
            price = product.sale_price1 if product else 0.0
            record = _insert(db, product_id, location, new_quantity, cost, price)
            if record is None:
                continue
            logger.warning("Set %s@%s to %d (new record): %s", product_id, location, new_quantity, reason)
            return record, 0

        previous = record.quantity
        expected_version = record.version
        values = {
            "quantity": new_quantity,
            "total_cost": record.unit_cost * new_quantity,
            "total_price": record.unit_price * new_quantity,
        }
        if _compare_and_swap(db, record.id, expected_version, values):
            db.refresh(record)
            logger.warning("Set %s@%s from %d to %d: %s", product_id, location, previous, new_quantity, reason)
            return record, previous
        logger.warning("Version conflict on %s@%s, retrying", product_id, location)

    raise ConcurrencyConflict(product_id, location)


def set_quantity(
    db: Session,
    product_id: str,
    location: str,
    new_quantity: int,
    reason: str,
) -> InventoryRecord:
    """Overwrite the balance, keeping the current unit cost and price."""

    record, _ = replace_quantity(db, product_id, location, new_quantity, reason)
    return record
