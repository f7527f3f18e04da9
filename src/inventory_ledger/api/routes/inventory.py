from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ... import catalog, commitments, movements, store
from ...locations import normalize_location
from ...schemas import (
    AvailabilityRead,
    CorrectionCreate,
    CorrectionResult,
    EntryCreate,
    InventoryRecordRead,
    MovementRead,
)
from ..deps import get_db, pagination_params

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("", response_model=list[InventoryRecordRead])
def list_inventory(
    location: Optional[str] = None,
    product_id: Optional[str] = None,
    sellable_only: bool = False,
    db: Session = Depends(get_db),
) -> list[InventoryRecordRead]:
    committed = commitments.committed_by_product(db)
    hidden = catalog.hidden_product_ids(db) if sellable_only else set()
    results = []
    for record in store.list_all(db, location=location, product_id=product_id):
        if record.product_id in hidden:
            continue
        row = InventoryRecordRead.model_validate(record)
        row.committed = committed.get(record.product_id, 0)
        row.available = max(0, record.quantity - row.committed)
        results.append(row)
    return results


@router.get("/available", response_model=AvailabilityRead)
def available_quantity(product_id: str, location: str, db: Session = Depends(get_db)) -> AvailabilityRead:
    catalog.get_product(db, product_id)
    code = normalize_location(location)
    return AvailabilityRead(
        product_id=product_id,
        location=code,
        on_hand=store.on_hand(db, product_id, code),
        committed=commitments.committed_quantity(db, product_id),
        available=commitments.available_quantity(db, product_id, code),
    )


@router.post("/entries", response_model=MovementRead, status_code=status.HTTP_201_CREATED)
def record_entry(payload: EntryCreate, db: Session = Depends(get_db)) -> MovementRead:
    movement = movements.record_entry_note(
        db,
        payload.location,
        payload.lines,
        supplier=payload.supplier,
        reason=payload.reason,
        created_by=payload.created_by,
    )
    return MovementRead.model_validate(movement)


@router.post("/corrections", response_model=CorrectionResult)
def record_correction(payload: CorrectionCreate, db: Session = Depends(get_db)) -> CorrectionResult:
    movement = movements.record_correction(
        db,
        payload.product_id,
        payload.location,
        payload.reason,
        quantity_delta=payload.quantity_delta,
        new_quantity=payload.new_quantity,
        created_by=payload.created_by,
    )
    record = store.get(db, payload.product_id, payload.location)
    return CorrectionResult(
        movement=MovementRead.model_validate(movement) if movement else None,
        record=InventoryRecordRead.model_validate(record) if record else None,
    )


@router.get("/movements", response_model=list[MovementRead])
def list_movements(
    product_id: Optional[str] = None,
    location: Optional[str] = None,
    kind: Optional[str] = None,
    status_filter: Optional[str] = None,
    pagination: tuple[int, int] = Depends(pagination_params),
    db: Session = Depends(get_db),
) -> list[MovementRead]:
    limit, offset = pagination
    results = movements.list_movements(
        db, product_id=product_id, location=location, kind=kind, status=status_filter, skip=offset, limit=limit
    )
    return [MovementRead.model_validate(movement) for movement in results]
