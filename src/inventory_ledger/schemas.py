"""Pydantic schemas for API payloads."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import MovementStatus


class ProductUpsert(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    sku: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    cost: float = Field(0.0, ge=0)
    sale_price1: float = Field(0.0, ge=0)
    sale_price2: Optional[float] = Field(None, ge=0)
    weight: Optional[float] = Field(None, ge=0)
    size: Optional[str] = Field(None, max_length=32)


class ProductRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    sku: str
    name: str
    cost: float
    sale_price1: float
    sale_price2: float
    weight: Optional[float] = None
    size: Optional[str] = None
    is_consolidated: bool
    consolidated_children: List[str] = Field(default_factory=list)


class ConsolidationRequest(BaseModel):
    child_ids: List[str] = Field(..., min_length=1)


class SellerCreate(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=128)
    email: Optional[str] = Field(None, max_length=128)
    price_tier: Literal["price1", "price2"] = "price1"
    debt: float = Field(0.0, ge=0)


class SellerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: Optional[str] = None
    price_tier: str
    debt: float
    is_active: bool
    created_at: datetime


class ConsignmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    seller_id: str
    product_id: str
    quantity: int
    returned_quantity: int
    outstanding: int
    unit_price: float
    last_exit_note_id: Optional[int] = None
    last_delivery_at: datetime


class InventoryRecordRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    location: str
    quantity: int
    unit_cost: float
    unit_price: float
    total_cost: float
    total_price: float
    updated_at: datetime
    committed: Optional[int] = None
    available: Optional[int] = None


class AvailabilityRead(BaseModel):
    product_id: str
    location: str
    on_hand: int
    committed: int
    available: int


class LineInput(BaseModel):
    product_id: str
    quantity: int = Field(..., description="Positive number of units")
    unit_price: Optional[float] = Field(None, ge=0)
    unit_cost: Optional[float] = Field(None, ge=0)


class EntryCreate(BaseModel):
    location: str
    lines: List[LineInput] = Field(..., min_length=1)
    supplier: Optional[str] = Field(None, max_length=128)
    reason: Optional[str] = None
    created_by: Optional[str] = None


class SaleCreate(BaseModel):
    product_id: str
    location: str
    quantity: int
    unit_price: Optional[float] = Field(None, ge=0)
    reason: Optional[str] = None
    created_by: Optional[str] = None


class CorrectionCreate(BaseModel):
    product_id: str
    location: str
    reason: str
    quantity_delta: Optional[int] = None
    new_quantity: Optional[int] = Field(None, ge=0)
    created_by: Optional[str] = None


class ReversalRequest(BaseModel):
    reason: Optional[str] = None
    created_by: Optional[str] = None


class MovementLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    product_name: str
    product_sku: str
    quantity: int
    unit_price: float
    unit_cost: float


class MovementRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    number: Optional[str] = None
    kind: str
    status: str
    location: Optional[str] = None
    destination: Optional[str] = None
    destination_type: Optional[str] = None
    seller_id: Optional[str] = None
    supplier: Optional[str] = None
    reason: Optional[str] = None
    reverses_id: Optional[int] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    total_value: float
    total_cost: float
    lines: List[MovementLineRead] = Field(default_factory=list)


class CorrectionResult(BaseModel):
    movement: Optional[MovementRead] = None
    record: Optional[InventoryRecordRead] = None


class ExitNoteCreate(BaseModel):
    source: str
    lines: List[LineInput] = Field(..., min_length=1)
    destination: Optional[str] = None
    seller_id: Optional[str] = None
    reason: Optional[str] = None
    created_by: Optional[str] = None


class ExitNoteStatusUpdate(BaseModel):
    status: MovementStatus
    reason: Optional[str] = None
    created_by: Optional[str] = None


class ExitNoteSellerUpdate(BaseModel):
    seller_id: str


class ReturnCreate(BaseModel):
    seller_id: str
    lines: List[LineInput] = Field(..., min_length=1)
    destination: Optional[str] = None
    reason: Optional[str] = None
    auto_approve: bool = False
    created_by: Optional[str] = None


class ReturnDecision(BaseModel):
    reason: Optional[str] = None
    created_by: Optional[str] = None


class ScopeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: Optional[str] = None
    location: Optional[str] = None


class ContributionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    movement_id: int
    number: Optional[str] = None
    kind: str
    status: str
    quantity: int
    counterparty: Optional[str] = None
    created_at: datetime


class DiscrepancyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    location: str
    recorded: int
    expected: int
    difference: int
    contributions: List[ContributionRead] = Field(default_factory=list)


class ReconciliationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    as_of: datetime
    scope: ScopeRead
    checked: int
    is_clean: bool
    discrepancies: List[DiscrepancyRead] = Field(default_factory=list)


class ErrorRead(BaseModel):
    error: str
    detail: str
