import pytest

from conftest import add_product, add_seller, lines
from inventory_ledger import commitments, movements, sellers, store, transfers
from inventory_ledger.database import get_session_factory, session_scope
from inventory_ledger.errors import (
    AlreadyReversed,
    InsufficientStock,
    InvalidStateTransition,
    NotFound,
    ValidationError,
)
from inventory_ledger.models import MovementKind, MovementStatus


def test_create_decrements_source_and_commits(db, stocked) -> None:
    note = transfers.create_exit_note(db, "Bodega USA", lines(("P1", 4)), destination="Bodega Ecuador")

    assert note.status == MovementStatus.PENDING.value
    assert note.number == f"EX-{note.id:06d}"
    assert (note.location, note.destination, note.destination_type) == ("origin", "destination", "warehouse")
    assert note.lines[0].unit_price == 5.0
    assert store.on_hand(db, "P1", "origin") == 6
    assert store.on_hand(db, "P1", "destination") == 0
    assert commitments.committed_quantity(db, "P1") == 4
    assert commitments.available_quantity(db, "P1", "origin") == 2


def test_over_available_is_rejected_without_writes(db, stocked) -> None:
    before = len(movements.list_movements(db))

    with pytest.raises(InsufficientStock) as excinfo:
        transfers.create_exit_note(db, "origin", lines(("P1", 11)), destination="destination")

    assert excinfo.value.available == 10
    assert store.on_hand(db, "P1", "origin") == 10
    assert len(movements.list_movements(db)) == before


def test_lines_are_aggregated_per_product(db, stocked) -> None:
    with pytest.raises(InsufficientStock):
        transfers.create_exit_note(db, "origin", lines(("P1", 6), ("P1", 5)), destination="destination")
    assert store.on_hand(db, "P1", "origin") == 10


def test_in_flight_notes_reduce_availability(db, stocked) -> None:
    transfers.create_exit_note(db, "origin", lines(("P1", 4)), destination="destination")

    with pytest.raises(InsufficientStock):
        transfers.create_exit_note(db, "origin", lines(("P1", 3)), destination="destination")
    assert store.on_hand(db, "P1", "origin") == 6


def test_source_and_destination_must_differ(db, stocked) -> None:
    with pytest.raises(ValidationError):
        transfers.create_exit_note(db, "origin", lines(("P1", 1)), destination="usa")
    with pytest.raises(ValidationError):
        transfers.create_exit_note(db, "origin", lines(("P1", 0)), destination="destination")
    with pytest.raises(NotFound):
        transfers.create_exit_note(db, "origin", lines(("P1", 1)), seller_id="nobody")


def test_warehouse_transfer_arrives_at_destination(db, stocked) -> None:
    note = transfers.create_exit_note(db, "origin", lines(("P1", 4)), destination="destination")

    transfers.update_exit_note_status(db, note.id, MovementStatus.IN_TRANSIT)
    assert commitments.committed_quantity(db, "P1") == 4

    transfers.update_exit_note_status(db, note.id, "arrived")

    assert transfers.get_exit_note(db, note.id).status == MovementStatus.ARRIVED.value
    assert store.on_hand(db, "P1", "origin") == 6
    destination = store.get(db, "P1", "destination")
    assert destination.quantity == 4
    assert destination.unit_cost == 2.0
    assert commitments.committed_quantity(db, "P1") == 0
    assert commitments.available_quantity(db, "P1", "origin") == 6


def test_status_cannot_skip_transit(db, stocked) -> None:
    note = transfers.create_exit_note(db, "origin", lines(("P1", 4)), destination="destination")

    with pytest.raises(InvalidStateTransition):
        transfers.update_exit_note_status(db, note.id, "arrived")
    with pytest.raises(InvalidStateTransition):
        transfers.update_exit_note_status(db, note.id, "approved")
    assert transfers.get_exit_note(db, note.id).status == MovementStatus.PENDING.value


def test_terminal_status_must_match_destination(db, stocked) -> None:
    note = transfers.create_exit_note(db, "origin", lines(("P1", 4)), destination="destination")
    transfers.update_exit_note_status(db, note.id, "in_transit")

    with pytest.raises(InvalidStateTransition):
        transfers.update_exit_note_status(db, note.id, "completed")


def test_cancel_restores_source_once(db, stocked) -> None:
    note = transfers.create_exit_note(db, "origin", lines(("P1", 4)), destination="destination")

    transfers.cancel_exit_note(db, note.id, reason="wrong truck")

    assert transfers.get_exit_note(db, note.id).status == MovementStatus.CANCELLED.value
    assert store.on_hand(db, "P1", "origin") == 10
    assert commitments.committed_quantity(db, "P1") == 0
    reversals = movements.list_movements(db, kind=MovementKind.REVERSAL.value)
    assert [r.reverses_id for r in reversals] == [note.id]

    with pytest.raises(AlreadyReversed):
        transfers.cancel_exit_note(db, note.id)
    with pytest.raises(AlreadyReversed):
        transfers.update_exit_note_status(db, note.id, "cancelled")
    assert store.on_hand(db, "P1", "origin") == 10


def test_cancel_after_dispatch_is_rejected(db, stocked) -> None:
    note = transfers.create_exit_note(db, "origin", lines(("P1", 4)), destination="destination")
    transfers.update_exit_note_status(db, note.id, "in_transit")

    with pytest.raises(InvalidStateTransition):
        transfers.cancel_exit_note(db, note.id)
    assert store.on_hand(db, "P1", "origin") == 6


def test_concurrent_cancel_reverses_once(db, stocked, monkeypatch) -> None:
    note = transfers.create_exit_note(db, "origin", lines(("P1", 4)), destination="destination")
    db.commit()

    other = get_session_factory()()
    try:
        stale = transfers.get_exit_note(other, note.id)
        assert stale.status == MovementStatus.PENDING.value

        with session_scope() as session:
            transfers.cancel_exit_note(session, note.id)

        # the second writer still holds the note as pending in memory
        monkeypatch.setattr(transfers, "get_exit_note", lambda session, note_id: stale)
        with pytest.raises(AlreadyReversed):
            transfers.cancel_exit_note(other, note.id)
        other.rollback()
    finally:
        other.close()

    assert store.on_hand(db, "P1", "origin") == 10
    reversals = movements.list_movements(db, kind=MovementKind.REVERSAL.value)
    assert len(reversals) == 1


def test_reseller_note_completes_into_consignment(db, stocked) -> None:
    add_seller(db, price_tier="price2")
    note = transfers.create_exit_note(db, "origin", lines(("P1", 4)), seller_id="S1")

    assert note.destination == "reseller:S1"
    assert note.destination_type == "reseller"
    assert note.lines[0].unit_price == 4.0

    transfers.update_exit_note_status(db, note.id, "in_transit")
    with pytest.raises(InvalidStateTransition):
        transfers.update_exit_note_status(db, note.id, "arrived")
    transfers.update_exit_note_status(db, note.id, "completed")

    record = sellers.get_consignment(db, "S1", "P1")
    assert record.quantity == 4
    assert record.outstanding == 4
    assert record.last_exit_note_id == note.id
    assert sellers.get_seller(db, "S1").debt == 16.0
    assert store.on_hand(db, "P1", "origin") == 6


def test_change_seller_reprices_in_flight_note(db, stocked) -> None:
    add_seller(db, "S1", price_tier="price2")
    add_seller(db, "S2", price_tier="price1")
    note = transfers.create_exit_note(db, "origin", lines(("P1", 2)), seller_id="S1")

    changed = transfers.change_exit_note_seller(db, note.id, "S2")

    assert changed.seller_id == "S2"
    assert changed.destination == "reseller:S2"
    assert changed.lines[0].unit_price == 5.0

    transfers.update_exit_note_status(db, note.id, "in_transit")
    transfers.update_exit_note_status(db, note.id, "completed")
    with pytest.raises(InvalidStateTransition):
        transfers.change_exit_note_seller(db, note.id, "S1")


def test_change_seller_requires_reseller_note(db, stocked) -> None:
    add_seller(db)
    note = transfers.create_exit_note(db, "origin", lines(("P1", 2)), destination="destination")

    with pytest.raises(ValidationError):
        transfers.change_exit_note_seller(db, note.id, "S1")


def test_list_exit_notes_filters_by_status(db, stocked) -> None:
    add_product(db, "P2")
    movements.record_entry(db, "P2", "origin", 3)
    first = transfers.create_exit_note(db, "origin", lines(("P1", 1)), destination="destination")
    transfers.create_exit_note(db, "origin", lines(("P2", 1)), destination="destination")
    transfers.cancel_exit_note(db, first.id)

    assert [n.id for n in transfers.list_exit_notes(db, status="cancelled")] == [first.id]
    assert len(transfers.list_exit_notes(db)) == 2


def test_delivered_notes_cannot_be_cancelled(db, stocked) -> None:
    add_seller(db)
    to_warehouse = transfers.create_exit_note(db, "origin", lines(("P1", 2)), destination="destination")
    to_seller = transfers.create_exit_note(db, "origin", lines(("P1", 2)), seller_id="S1")
    transfers.update_exit_note_status(db, to_warehouse.id, "in_transit")
    transfers.update_exit_note_status(db, to_warehouse.id, "arrived")
    transfers.update_exit_note_status(db, to_seller.id, "in_transit")
    transfers.update_exit_note_status(db, to_seller.id, "completed")

    for note in (to_warehouse, to_seller):
        with pytest.raises(InvalidStateTransition):
            transfers.cancel_exit_note(db, note.id)
    assert store.on_hand(db, "P1", "origin") == 6
    assert store.on_hand(db, "P1", "destination") == 2
    assert movements.list_movements(db, kind=MovementKind.REVERSAL.value) == []


def test_seller_and_warehouse_destination_are_exclusive(db, stocked) -> None:
    add_seller(db)

    with pytest.raises(ValidationError):
        transfers.create_exit_note(db, "origin", lines(("P1", 1)), destination="destination", seller_id="S1")
    assert store.on_hand(db, "P1", "origin") == 10
