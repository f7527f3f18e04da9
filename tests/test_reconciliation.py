from conftest import add_product, lines
from inventory_ledger import movements, returns, store, transfers
from inventory_ledger.reconciliation import ReconciliationScope, list_discrepancies, run_reconciliation


def test_transfer_then_override_reports_one_discrepancy(db) -> None:
    add_product(db)
    movements.record_entry(db, "P1", "origin", 10)
    note = transfers.create_exit_note(db, "origin", lines(("P1", 4)), destination="destination")
    transfers.update_exit_note_status(db, note.id, "in_transit")
    transfers.update_exit_note_status(db, note.id, "arrived")

    assert run_reconciliation(db).is_clean

    store.set_quantity(db, "P1", "origin", 5, "recount without movement")
    result = run_reconciliation(db)

    assert len(result.discrepancies) == 1
    report = result.discrepancies[0]
    assert (report.product_id, report.location) == ("P1", "origin")
    assert (report.recorded, report.expected, report.difference) == (5, 6, -1)
    assert sorted(c.quantity for c in report.contributions) == [-4, 10]
    exit_contribution = next(c for c in report.contributions if c.quantity == -4)
    assert exit_contribution.counterparty == "destination"


def test_reconciliation_does_not_correct(db) -> None:
    add_product(db)
    movements.record_entry(db, "P1", "origin", 10)
    store.set_quantity(db, "P1", "origin", 7, "manual override")

    run_reconciliation(db)
    run_reconciliation(db)

    assert store.on_hand(db, "P1", "origin") == 7
    assert len(movements.list_movements(db)) == 1


def test_reversed_and_cancelled_movements_replay_to_zero(db) -> None:
    add_product(db)
    movements.record_entry(db, "P1", "origin", 10)
    sale = movements.record_sale(db, "P1", "origin", 2)
    movements.reverse_sale(db, sale.id)
    note = transfers.create_exit_note(db, "origin", lines(("P1", 3)), destination="destination")
    transfers.cancel_exit_note(db, note.id)
    movements.record_correction(db, "P1", "origin", "count", new_quantity=9)

    result = run_reconciliation(db)

    assert result.is_clean
    assert result.checked == 1


def test_consignment_balances_are_reconciled(db, consigned) -> None:
    request = returns.create_return(db, "S1", lines(("P1", 1)), auto_approve=True)
    returns.restore_return(db, request.id)
    second = returns.create_return(db, "S1", lines(("P1", 2)), auto_approve=True)

    result = run_reconciliation(db)

    assert result.is_clean
    keys = {("P1", "origin"), ("P1", "destination"), ("P1", "reseller:S1")}
    assert result.checked == len(keys)
    assert second.status == "approved"


def test_scope_limits_the_report(db) -> None:
    add_product(db)
    add_product(db, "P2")
    movements.record_entry(db, "P1", "origin", 10)
    movements.record_entry(db, "P2", "destination", 10)
    store.set_quantity(db, "P1", "origin", 1, "override")
    store.set_quantity(db, "P2", "destination", 1, "override")

    assert len(list_discrepancies(db)) == 2
    scoped = list_discrepancies(db, ReconciliationScope(location="Bodega USA"))
    assert [(d.product_id, d.location) for d in scoped] == [("P1", "origin")]
    by_product = run_reconciliation(db, ReconciliationScope(product_id="P2"))
    assert by_product.scope.product_id == "P2"
    assert [d.product_id for d in by_product.discrepancies] == ["P2"]


def test_record_without_movements_is_reported(db) -> None:
    add_product(db)
    store.set_quantity(db, "P1", "destination", 3, "opening balance")

    report = list_discrepancies(db)[0]
    assert (report.recorded, report.expected, report.contributions) == (3, 0, [])
