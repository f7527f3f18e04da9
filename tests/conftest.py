from collections.abc import Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from inventory_ledger import catalog, movements, sellers, transfers
from inventory_ledger.app import create_app
from inventory_ledger.config import get_settings
from inventory_ledger.database import get_engine, get_session_factory, init_database, reset_engine
from inventory_ledger.schemas import LineInput, ProductUpsert, SellerCreate


@pytest.fixture(name="db_engine", autouse=True)
def db_engine_fixture(tmp_path, monkeypatch) -> Generator[Any, None, None]:
    monkeypatch.setenv("LEDGER_DATABASE_URL", f"sqlite:///{tmp_path / 'ledger.db'}")
    get_settings.cache_clear()
    reset_engine()
    init_database()
    yield get_engine()
    reset_engine()
    get_settings.cache_clear()


@pytest.fixture(name="db")
def db_fixture(db_engine) -> Generator[Session, None, None]:  # type: ignore[annotations]
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(name="client")
def client_fixture(db_engine) -> Generator[TestClient, None, None]:  # type: ignore[annotations]
    with TestClient(create_app()) as client:
        yield client


def add_product(db: Session, product_id: str = "P1", **overrides: Any):
    values = {
        "id": product_id,
        "sku": f"SKU-{product_id}",
        "name": f"Product {product_id}",
        "cost": 2.0,
        "sale_price1": 5.0,
        "sale_price2": 4.0,
    }
    values.update(overrides)
    return catalog.upsert_product(db, ProductUpsert(**values))


def add_seller(db: Session, seller_id: str = "S1", price_tier: str = "price1", debt: float = 0.0):
    return sellers.create_seller(
        db, SellerCreate(id=seller_id, name=f"Seller {seller_id}", price_tier=price_tier, debt=debt)
    )


def lines(*pairs: tuple[str, int]) -> list[LineInput]:
    return [LineInput(product_id=product_id, quantity=quantity) for product_id, quantity in pairs]


@pytest.fixture(name="stocked")
def stocked_fixture(db: Session):
    """P1 with 10 units at the origin warehouse."""

    product = add_product(db)
    movements.record_entry(db, product.id, "origin", 10)
    return product


@pytest.fixture(name="consigned")
def consigned_fixture(db: Session, stocked):  # type: ignore[annotations]
    """Seller S1 holding 4 units of P1 delivered through a completed exit note."""

    add_seller(db)
    note = transfers.create_exit_note(db, "origin", lines(("P1", 4)), seller_id="S1")
    transfers.update_exit_note_status(db, note.id, "in_transit")
    transfers.update_exit_note_status(db, note.id, "completed")
    return note
