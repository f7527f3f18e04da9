from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ... import catalog, consolidation
from ...schemas import ConsolidationRequest, ProductRead, ProductUpsert
from ..deps import get_db, pagination_params

router = APIRouter(prefix="/products", tags=["products"])


@router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
def upsert_product(payload: ProductUpsert, db: Session = Depends(get_db)) -> ProductRead:
    return ProductRead.model_validate(catalog.upsert_product(db, payload))


@router.get("", response_model=list[ProductRead])
def list_products(
    sellable_only: bool = False,
    pagination: tuple[int, int] = Depends(pagination_params),
    db: Session = Depends(get_db),
) -> list[ProductRead]:
    if sellable_only:
        products = catalog.sellable_products(db)
    else:
        limit, offset = pagination
        products = catalog.list_products(db, skip=offset, limit=limit)
    return [ProductRead.model_validate(product) for product in products]


@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: str, db: Session = Depends(get_db)) -> ProductRead:
    return ProductRead.model_validate(catalog.get_product(db, product_id))


@router.post("/{product_id}/consolidation", response_model=ProductRead)
def consolidate_product(product_id: str, payload: ConsolidationRequest, db: Session = Depends(get_db)) -> ProductRead:
    return ProductRead.model_validate(consolidation.consolidate(db, product_id, payload.child_ids))


@router.delete("/{product_id}/consolidation", response_model=ProductRead)
def unconsolidate_product(product_id: str, db: Session = Depends(get_db)) -> ProductRead:
    return ProductRead.model_validate(consolidation.unconsolidate(db, product_id))
