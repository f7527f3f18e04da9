"""Catalog access helpers.

The product catalog is owned by the importer; the ledger keeps a local copy and
only ever writes consolidation metadata back to it.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import models, schemas
from .errors import NotFound


def get_product(db: Session, product_id: str) -> models.Product:
    product = db.get(models.Product, product_id)
    if product is None:
        raise NotFound("Product", product_id)
    return product


def find_product(db: Session, product_id: str) -> Optional[models.Product]:
    return db.get(models.Product, product_id)


def list_products(db: Session, *, skip: int = 0, limit: int = 50) -> list[models.Product]:
    statement = select(models.Product).order_by(models.Product.id).offset(skip).limit(limit)
    return list(db.scalars(statement))


def upsert_product(db: Session, payload: schemas.ProductUpsert) -> models.Product:
    product = db.get(models.Product, payload.id)
    if product is None:
        product = models.Product(id=payload.id, consolidated_children=[])
        db.add(product)
    product.sku = payload.sku
    product.name = payload.name
    product.cost = payload.cost
    product.sale_price1 = payload.sale_price1
    product.sale_price2 = payload.sale_price2 if payload.sale_price2 is not None else payload.sale_price1
    product.weight = payload.weight
    product.size = payload.size
    db.flush()
    return product


def hidden_product_ids(db: Session) -> set[str]:
    """Ids of products absorbed into a consolidated parent."""

    statement = select(models.Product).where(models.Product.is_consolidated.is_(True))
    hidden: set[str] = set()
    for parent in db.scalars(statement):
        hidden.update(parent.consolidated_children or [])
    return hidden


def sellable_products(db: Session) -> list[models.Product]:
    hidden = hidden_product_ids(db)
    statement = select(models.Product).order_by(models.Product.id)
    return [product for product in db.scalars(statement) if product.id not in hidden]
