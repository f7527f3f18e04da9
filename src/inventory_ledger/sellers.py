"""Reseller directory and consignment helpers."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import case, select, update
from sqlalchemy.orm import Session

from . import models, schemas
from .errors import InsufficientStock, NotFound, ValidationError
from .locations import reseller_location
from .models import utcnow

logger = logging.getLogger(__name__)

PRICE_TIERS = ("price1", "price2")


def get_seller(db: Session, seller_id: str) -> models.Seller:
    seller = db.get(models.Seller, seller_id)
    if seller is None:
        raise NotFound("Seller", seller_id)
    return seller


def list_sellers(db: Session, *, skip: int = 0, limit: int = 50) -> list[models.Seller]:
    statement = select(models.Seller).order_by(models.Seller.id).offset(skip).limit(limit)
    return list(db.scalars(statement))


def create_seller(db: Session, payload: schemas.SellerCreate) -> models.Seller:
    if payload.price_tier not in PRICE_TIERS:
        raise ValidationError(f"Unknown price tier '{payload.price_tier}'")
    if db.get(models.Seller, payload.id) is not None:
        raise ValidationError(f"Seller '{payload.id}' already exists")
    seller = models.Seller(
        id=payload.id,
        name=payload.name,
        email=payload.email,
        price_tier=payload.price_tier,
        debt=payload.debt,
        is_active=True,
    )
    db.add(seller)
    db.flush()
    return seller


def adjust_debt(db: Session, seller_id: str, delta: float) -> models.Seller:
    """Add ``delta`` to the seller's debt atomically, never going below zero."""

    seller = get_seller(db, seller_id)
    new_debt = models.Seller.debt + delta
    db.execute(
        update(models.Seller)
        .where(models.Seller.id == seller_id)
        .values(debt=case((new_debt < 0, 0.0), else_=new_debt))
        .execution_options(synchronize_session=False)
    )
    db.refresh(seller)
    logger.info("Seller %s debt adjusted by %.2f to %.2f", seller_id, delta, seller.debt)
    return seller


def price_for(seller: Optional[models.Seller], product: models.Product) -> float:
    """Unit price a seller pays for a product according to the seller's tier."""

    if seller is not None and seller.price_tier == "price2":
        return product.sale_price2
    return product.sale_price1


def get_consignment(db: Session, seller_id: str, product_id: str) -> Optional[models.ConsignmentRecord]:
    statement = select(models.ConsignmentRecord).where(
        models.ConsignmentRecord.seller_id == seller_id,
        models.ConsignmentRecord.product_id == product_id,
    )
    return db.scalars(statement).first()


def list_consignment(db: Session, seller_id: str) -> list[models.ConsignmentRecord]:
    get_seller(db, seller_id)
    statement = (
        select(models.ConsignmentRecord)
        .where(models.ConsignmentRecord.seller_id == seller_id)
        .order_by(models.ConsignmentRecord.product_id)
    )
    return list(db.scalars(statement))


def outstanding_consignment(db: Session, seller_id: str, product_id: str) -> int:
    record = get_consignment(db, seller_id, product_id)
    return record.outstanding if record else 0


def credit_consignment(
    db: Session,
    seller_id: str,
    product_id: str,
    quantity: int,
    unit_price: float,
    exit_note_id: Optional[int] = None,
) -> models.ConsignmentRecord:
    """Add delivered units to the reseller's consignment."""

    record = get_consignment(db, seller_id, product_id)
    if record is None:
        record = models.ConsignmentRecord(
            seller_id=seller_id,
            product_id=product_id,
            quantity=quantity,
            returned_quantity=0,
            unit_price=unit_price,
            last_exit_note_id=exit_note_id,
        )
        db.add(record)
    else:
        db.execute(
            update(models.ConsignmentRecord)
            .where(models.ConsignmentRecord.id == record.id)
            .values(
                quantity=models.ConsignmentRecord.quantity + quantity,
                unit_price=unit_price,
                last_exit_note_id=exit_note_id,
                last_delivery_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
    db.flush()
    db.refresh(record)
    return record


def mark_returned(db: Session, seller_id: str, product_id: str, quantity: int) -> models.ConsignmentRecord:
    """Release ``quantity`` units from the reseller's outstanding consignment."""

    record = get_consignment(db, seller_id, product_id)
    if record is None:
        raise InsufficientStock(product_id, reseller_location(seller_id), quantity, 0)
    result = db.execute(
        update(models.ConsignmentRecord)
        .where(
            models.ConsignmentRecord.id == record.id,
            models.ConsignmentRecord.quantity - models.ConsignmentRecord.returned_quantity >= quantity,
        )
        .values(returned_quantity=models.ConsignmentRecord.returned_quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    db.refresh(record)
    if result.rowcount != 1:
        raise InsufficientStock(product_id, reseller_location(seller_id), quantity, record.outstanding)
    return record


def unmark_returned(db: Session, seller_id: str, product_id: str, quantity: int) -> models.ConsignmentRecord:
    """Inverse of :func:`mark_returned`."""

    record = get_consignment(db, seller_id, product_id)
    if record is None:
        raise InsufficientStock(product_id, reseller_location(seller_id), quantity, 0)
    result = db.execute(
        update(models.ConsignmentRecord)
        .where(
            models.ConsignmentRecord.id == record.id,
            models.ConsignmentRecord.returned_quantity >= quantity,
        )
        .values(returned_quantity=models.ConsignmentRecord.returned_quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    db.refresh(record)
    if result.rowcount != 1:
        raise InsufficientStock(product_id, reseller_location(seller_id), quantity, record.returned_quantity)
    return record
