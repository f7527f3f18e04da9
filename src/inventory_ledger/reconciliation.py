"""Replay the movement log and compare it with recorded balances.

Read-only. Discrepancies are reported with the movements that built the
expected figure; fixing them is an operator decision made through a correction.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import store
from .locations import is_reseller_location, normalize_location, reseller_location
from .models import ConsignmentRecord, Movement, utcnow
from .movements import list_movements, movement_effects

logger = logging.getLogger(__name__)

Key = tuple[str, str]


@dataclass(slots=True)
class ReconciliationScope:
    product_id: Optional[str] = None
    location: Optional[str] = None

    def normalized(self) -> "ReconciliationScope":
        location = self.location
        if location and not is_reseller_location(location):
            location = normalize_location(location)
        return ReconciliationScope(product_id=self.product_id, location=location)

    def includes(self, product_id: str, location: str) -> bool:
        if self.product_id and product_id != self.product_id:
            return False
        if self.location and location != self.location:
            return False
        return True


@dataclass(slots=True)
class Contribution:
    movement_id: int
    number: Optional[str]
    kind: str
    status: str
    quantity: int
    counterparty: Optional[str]
    created_at: datetime


@dataclass(slots=True)
class DiscrepancyReport:
    product_id: str
    location: str
    recorded: int
    expected: int
    difference: int
    contributions: list[Contribution] = field(default_factory=list)


@dataclass(slots=True)
class ReconciliationResult:
    as_of: datetime
    scope: ReconciliationScope
    checked: int
    discrepancies: list[DiscrepancyReport] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.discrepancies


def _counterparty(movement: Movement, location: str) -> Optional[str]:
    if location == movement.location:
        return movement.counterparty
    return movement.location


def _recorded_balances(db: Session, scope: ReconciliationScope) -> dict[Key, int]:
    balances: dict[Key, int] = {}
    if not is_reseller_location(scope.location):
        for record in store.list_all(db, location=scope.location, product_id=scope.product_id):
            balances[(record.product_id, record.location)] = record.quantity
    if scope.location is None or is_reseller_location(scope.location):
        for record in db.scalars(select(ConsignmentRecord)):
            key = (record.product_id, reseller_location(record.seller_id))
            if scope.includes(*key):
                balances[key] = record.outstanding
    return balances


def run_reconciliation(db: Session, scope: Optional[ReconciliationScope] = None) -> ReconciliationResult:
    """Compare every recorded balance in ``scope`` with the replayed movement log."""

    scope = (scope or ReconciliationScope()).normalized()
    as_of = utcnow()

    expected: dict[Key, int] = defaultdict(int)
    contributions: dict[Key, list[Contribution]] = defaultdict(list)
    for movement in list_movements(db, product_id=scope.product_id):
        for effect in movement_effects(movement):
            key = (effect.product_id, effect.location)
            if not scope.includes(*key):
                continue
            expected[key] += effect.quantity
            contributions[key].append(
                Contribution(
                    movement_id=movement.id,
                    number=movement.number,
                    kind=movement.kind,
                    status=movement.status,
                    quantity=effect.quantity,
                    counterparty=_counterparty(movement, effect.location),
                    created_at=movement.created_at,
                )
            )

    recorded = _recorded_balances(db, scope)
    keys = sorted(set(expected) | set(recorded))
    discrepancies = []
    for key in keys:
        have = recorded.get(key, 0)
        want = expected.get(key, 0)
        if have != want:
            product_id, location = key
            discrepancies.append(
                DiscrepancyReport(
                    product_id=product_id,
                    location=location,
                    recorded=have,
                    expected=want,
                    difference=have - want,
                    contributions=contributions.get(key, []),
                )
            )

    if discrepancies:
        logger.warning("Reconciliation found %d discrepancies in %d balances", len(discrepancies), len(keys))
    else:
        logger.info("Reconciliation clean across %d balances", len(keys))
    return ReconciliationResult(as_of=as_of, scope=scope, checked=len(keys), discrepancies=discrepancies)


def list_discrepancies(db: Session, scope: Optional[ReconciliationScope] = None) -> list[DiscrepancyReport]:
    return run_reconciliation(db, scope).discrepancies
