"""Bundle several catalog products under one sellable parent.

Pure catalog metadata: inventory records and movements of the children are
never touched, so undoing a consolidation needs no stock changes either.
"""

from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy.orm import Session

from . import catalog, models
from .errors import ValidationError

logger = logging.getLogger(__name__)


def _descendants(db: Session, product_id: str) -> set[str]:
    seen: set[str] = set()
    stack = [product_id]
    while stack:
        current = catalog.find_product(db, stack.pop())
        if current is None or not current.is_consolidated:
            continue
        for child_id in current.consolidated_children or []:
            if child_id not in seen:
                seen.add(child_id)
                stack.append(child_id)
    return seen


def consolidate(db: Session, parent_id: str, child_ids: Sequence[str]) -> models.Product:
    """Mark ``parent_id`` as a bundle absorbing ``child_ids``."""

    if not child_ids:
        raise ValidationError("A consolidation needs at least one child product")
    children = list(dict.fromkeys(child_ids))
    parent = catalog.get_product(db, parent_id)
    for child_id in children:
        if child_id == parent.id:
            raise ValidationError(f"Product {parent.id} cannot be its own child")
        catalog.get_product(db, child_id)
        if parent.id in _descendants(db, child_id):
            raise ValidationError(f"Consolidating {child_id} into {parent.id} would create a cycle")

    parent.is_consolidated = True
    parent.consolidated_children = children
    db.flush()
    logger.info("Product %s now bundles %s", parent.id, ", ".join(children))
    return parent


def unconsolidate(db: Session, parent_id: str) -> models.Product:
    """Clear the bundle flag and expose the children again."""

    parent = catalog.get_product(db, parent_id)
    if not parent.is_consolidated:
        raise ValidationError(f"Product {parent.id} is not consolidated")
    parent.is_consolidated = False
    parent.consolidated_children = []
    db.flush()
    logger.info("Product %s unbundled", parent.id)
    return parent
