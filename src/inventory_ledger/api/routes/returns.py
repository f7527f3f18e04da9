from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from ... import returns
from ...models import Movement
from ...notifications import Notifier, notify_safely
from ...schemas import MovementRead, ReturnCreate, ReturnDecision
from ..deps import get_db, notifier_dependency, pagination_params

router = APIRouter(prefix="/returns", tags=["returns"])


def _payload(movement: Movement) -> dict[str, object]:
    return {
        "return_id": movement.id,
        "number": movement.number,
        "seller_id": movement.seller_id,
        "status": movement.status,
        "total_value": movement.total_value,
    }


@router.post("", response_model=MovementRead, status_code=status.HTTP_201_CREATED)
def create_return(
    payload: ReturnCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(notifier_dependency),
) -> MovementRead:
    movement = returns.create_return(
        db,
        payload.seller_id,
        payload.lines,
        destination=payload.destination,
        reason=payload.reason,
        auto_approve=payload.auto_approve,
        created_by=payload.created_by,
    )
    event = "return.approved" if payload.auto_approve else "return.requested"
    background_tasks.add_task(notify_safely, notifier, event, _payload(movement))
    return MovementRead.model_validate(movement)


@router.get("", response_model=list[MovementRead])
def list_returns(
    status_filter: Optional[str] = None,
    seller_id: Optional[str] = None,
    pagination: tuple[int, int] = Depends(pagination_params),
    db: Session = Depends(get_db),
) -> list[MovementRead]:
    limit, offset = pagination
    results = returns.list_returns(db, status=status_filter, seller_id=seller_id, skip=offset, limit=limit)
    return [MovementRead.model_validate(movement) for movement in results]


@router.get("/{return_id}", response_model=MovementRead)
def get_return(return_id: int, db: Session = Depends(get_db)) -> MovementRead:
    return MovementRead.model_validate(returns.get_return(db, return_id))


@router.post("/{return_id}/approve", response_model=MovementRead)
def approve_return(
    return_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(notifier_dependency),
) -> MovementRead:
    movement = returns.approve_return(db, return_id)
    background_tasks.add_task(notify_safely, notifier, "return.approved", _payload(movement))
    return MovementRead.model_validate(movement)


@router.post("/{return_id}/reject", response_model=MovementRead)
def reject_return(
    return_id: int,
    payload: Optional[ReturnDecision] = None,
    db: Session = Depends(get_db),
) -> MovementRead:
    reason = payload.reason if payload else None
    return MovementRead.model_validate(returns.reject_return(db, return_id, reason))


@router.post("/{return_id}/restore", response_model=MovementRead)
def restore_return(
    return_id: int,
    background_tasks: BackgroundTasks,
    payload: Optional[ReturnDecision] = None,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(notifier_dependency),
) -> MovementRead:
    payload = payload or ReturnDecision()
    movement = returns.restore_return(db, return_id, reason=payload.reason, created_by=payload.created_by)
    background_tasks.add_task(notify_safely, notifier, "return.restored", _payload(movement))
    return MovementRead.model_validate(movement)
