"""Database models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MovementKind(str, Enum):
    ENTRY = "entry"
    EXIT_NOTE = "exit_note"
    SALE = "sale"
    RETURN = "return"
    CORRECTION = "correction"
    REVERSAL = "reversal"


class MovementStatus(str, Enum):
    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    ARRIVED = "arrived"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    APPROVED = "approved"
    REJECTED = "rejected"
    RESTORED = "restored"
    REVERSED = "reversed"


class DestinationType(str, Enum):
    WAREHOUSE = "warehouse"
    RESELLER = "reseller"
    INCREASE = "increase"
    DECREASE = "decrease"


NUMBER_PREFIXES = {
    MovementKind.ENTRY: "EN",
    MovementKind.EXIT_NOTE: "EX",
    MovementKind.SALE: "SA",
    MovementKind.RETURN: "RT",
    MovementKind.CORRECTION: "CR",
    MovementKind.REVERSAL: "RV",
}


class Product(Base):
    """Local copy of a catalog product."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    sku: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    sale_price1: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    sale_price2: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    size: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    is_consolidated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    consolidated_children: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<Product id={self.id!r} sku={self.sku!r}>"


class Seller(Base):
    """A reseller holding consignment stock and a running debt."""

    __tablename__ = "sellers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    price_tier: Mapped[str] = mapped_column(String(16), nullable=False, default="price1")
    debt: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class InventoryRecord(Base):
    """Authoritative on-hand balance of one product at one warehouse."""

    __tablename__ = "inventory_records"
    __table_args__ = (
        UniqueConstraint("product_id", "location", name="uq_inventory_product_location"),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), nullable=False, index=True)
    location: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<InventoryRecord {self.product_id}@{self.location} qty={self.quantity}>"


class Movement(Base):
    """A stock-affecting event. Status may change; the row is never deleted."""

    __tablename__ = "movements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, unique=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    # source for exits and sales, target for entries and corrections
    location: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    destination: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    destination_type: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    seller_id: Mapped[Optional[str]] = mapped_column(ForeignKey("sellers.id"), nullable=True, index=True)
    supplier: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reverses_id: Mapped[Optional[int]] = mapped_column(ForeignKey("movements.id"), nullable=True, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    lines: Mapped[list["MovementLine"]] = relationship(
        back_populates="movement", cascade="all, delete-orphan", order_by="MovementLine.id"
    )

    @property
    def total_value(self) -> float:
        return sum(line.quantity * line.unit_price for line in self.lines)

    @property
    def total_cost(self) -> float:
        return sum(line.quantity * line.unit_cost for line in self.lines)

    @property
    def counterparty(self) -> Optional[str]:
        if self.seller_id:
            return f"reseller:{self.seller_id}"
        return self.destination

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<Movement {self.number or self.id} kind={self.kind} status={self.status}>"


class MovementLine(Base):
    """One product line of a movement, with catalog data copied at creation time."""

    __tablename__ = "movement_lines"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_movement_line_quantity_positive"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    movement_id: Mapped[int] = mapped_column(ForeignKey("movements.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), nullable=False, index=True)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_sku: Mapped[str] = mapped_column(String(64), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    unit_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    movement: Mapped[Movement] = relationship(back_populates="lines")


class ConsignmentRecord(Base):
    """Stock delivered to a reseller and not yet returned."""

    __tablename__ = "consignment_records"
    __table_args__ = (
        UniqueConstraint("seller_id", "product_id", name="uq_consignment_seller_product"),
        CheckConstraint("returned_quantity >= 0", name="ck_consignment_returned_non_negative"),
        CheckConstraint("returned_quantity <= quantity", name="ck_consignment_returned_within_quantity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    seller_id: Mapped[str] = mapped_column(ForeignKey("sellers.id"), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    returned_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_exit_note_id: Mapped[Optional[int]] = mapped_column(ForeignKey("movements.id"), nullable=True)
    last_delivery_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def outstanding(self) -> int:
        return self.quantity - self.returned_quantity
