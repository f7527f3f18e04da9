from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ... import movements
from ...schemas import MovementRead, ReversalRequest, SaleCreate
from ..deps import get_db

router = APIRouter(prefix="/sales", tags=["sales"])


@router.post("", response_model=MovementRead, status_code=status.HTTP_201_CREATED)
def record_sale(payload: SaleCreate, db: Session = Depends(get_db)) -> MovementRead:
    movement = movements.record_sale(
        db,
        payload.product_id,
        payload.location,
        payload.quantity,
        unit_price=payload.unit_price,
        reason=payload.reason,
        created_by=payload.created_by,
    )
    return MovementRead.model_validate(movement)


@router.post("/{sale_id}/reversal", response_model=MovementRead)
def reverse_sale(
    sale_id: int,
    payload: Optional[ReversalRequest] = None,
    db: Session = Depends(get_db),
) -> MovementRead:
    payload = payload or ReversalRequest()
    reversal = movements.reverse_sale(db, sale_id, reason=payload.reason, created_by=payload.created_by)
    return MovementRead.model_validate(reversal)
