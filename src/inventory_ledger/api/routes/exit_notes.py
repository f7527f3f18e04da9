from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ... import transfers
from ...schemas import ExitNoteCreate, ExitNoteSellerUpdate, ExitNoteStatusUpdate, MovementRead, ReversalRequest
from ..deps import get_db, pagination_params

router = APIRouter(prefix="/exit-notes", tags=["exit-notes"])


@router.post("", response_model=MovementRead, status_code=status.HTTP_201_CREATED)
def create_exit_note(payload: ExitNoteCreate, db: Session = Depends(get_db)) -> MovementRead:
    note = transfers.create_exit_note(
        db,
        payload.source,
        payload.lines,
        destination=payload.destination,
        seller_id=payload.seller_id,
        reason=payload.reason,
        created_by=payload.created_by,
    )
    return MovementRead.model_validate(note)


@router.get("", response_model=list[MovementRead])
def list_exit_notes(
    status_filter: Optional[str] = None,
    seller_id: Optional[str] = None,
    pagination: tuple[int, int] = Depends(pagination_params),
    db: Session = Depends(get_db),
) -> list[MovementRead]:
    limit, offset = pagination
    notes = transfers.list_exit_notes(db, status=status_filter, seller_id=seller_id, skip=offset, limit=limit)
    return [MovementRead.model_validate(note) for note in notes]


@router.get("/{note_id}", response_model=MovementRead)
def get_exit_note(note_id: int, db: Session = Depends(get_db)) -> MovementRead:
    return MovementRead.model_validate(transfers.get_exit_note(db, note_id))


@router.patch("/{note_id}/status", response_model=MovementRead)
def update_exit_note_status(
    note_id: int, payload: ExitNoteStatusUpdate, db: Session = Depends(get_db)
) -> MovementRead:
    note = transfers.update_exit_note_status(
        db, note_id, payload.status, reason=payload.reason, created_by=payload.created_by
    )
    return MovementRead.model_validate(note)


@router.put("/{note_id}/seller", response_model=MovementRead)
def change_exit_note_seller(
    note_id: int, payload: ExitNoteSellerUpdate, db: Session = Depends(get_db)
) -> MovementRead:
    return MovementRead.model_validate(transfers.change_exit_note_seller(db, note_id, payload.seller_id))


@router.delete("/{note_id}", response_model=MovementRead)
def cancel_exit_note(
    note_id: int,
    payload: Optional[ReversalRequest] = None,
    db: Session = Depends(get_db),
) -> MovementRead:
    payload = payload or ReversalRequest()
    note = transfers.cancel_exit_note(db, note_id, reason=payload.reason, created_by=payload.created_by)
    return MovementRead.model_validate(note)
