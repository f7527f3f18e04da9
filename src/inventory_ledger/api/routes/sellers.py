from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ... import sellers
from ...schemas import ConsignmentRead, SellerCreate, SellerRead
from ..deps import get_db, pagination_params

router = APIRouter(prefix="/sellers", tags=["sellers"])


@router.post("", response_model=SellerRead, status_code=status.HTTP_201_CREATED)
def create_seller(payload: SellerCreate, db: Session = Depends(get_db)) -> SellerRead:
    return SellerRead.model_validate(sellers.create_seller(db, payload))


@router.get("", response_model=list[SellerRead])
def list_sellers(
    pagination: tuple[int, int] = Depends(pagination_params),
    db: Session = Depends(get_db),
) -> list[SellerRead]:
    limit, offset = pagination
    return [SellerRead.model_validate(seller) for seller in sellers.list_sellers(db, skip=offset, limit=limit)]


@router.get("/{seller_id}", response_model=SellerRead)
def get_seller(seller_id: str, db: Session = Depends(get_db)) -> SellerRead:
    return SellerRead.model_validate(sellers.get_seller(db, seller_id))


@router.get("/{seller_id}/consignment", response_model=list[ConsignmentRead])
def list_consignment(seller_id: str, db: Session = Depends(get_db)) -> list[ConsignmentRead]:
    return [ConsignmentRead.model_validate(record) for record in sellers.list_consignment(db, seller_id)]
