from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ... import reconciliation
from ...schemas import DiscrepancyRead, ReconciliationRead
from ..deps import get_db

router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])


@router.get("", response_model=ReconciliationRead)
def run_reconciliation(
    product_id: Optional[str] = None,
    location: Optional[str] = None,
    db: Session = Depends(get_db),
) -> ReconciliationRead:
    scope = reconciliation.ReconciliationScope(product_id=product_id, location=location)
    return ReconciliationRead.model_validate(reconciliation.run_reconciliation(db, scope))


@router.get("/discrepancies", response_model=list[DiscrepancyRead])
def list_discrepancies(
    product_id: Optional[str] = None,
    location: Optional[str] = None,
    db: Session = Depends(get_db),
) -> list[DiscrepancyRead]:
    scope = reconciliation.ReconciliationScope(product_id=product_id, location=location)
    return [DiscrepancyRead.model_validate(report) for report in reconciliation.list_discrepancies(db, scope)]
