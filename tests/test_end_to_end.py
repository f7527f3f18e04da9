from fastapi.testclient import TestClient

from inventory_ledger import notifications

API = "/api/v1"


class RecordingNotifier:
    def __init__(self) -> None:
        self.events = []

    def send(self, event, payload) -> None:
        self.events.append((event, dict(payload)))


def _seed(client: TestClient) -> None:
    product_payload = {"id": "P1", "sku": "SKU-P1", "name": "Lipstick", "cost": 2.0, "sale_price1": 5.0}
    response = client.post(f"{API}/products", json=product_payload)
    assert response.status_code == 201, response.text
    assert response.json()["sale_price2"] == 5.0

    response = client.post(f"{API}/sellers", json={"id": "S1", "name": "Ana"})
    assert response.status_code == 201, response.text

    entry_payload = {"location": "Bodega USA", "supplier": "Acme", "lines": [{"product_id": "P1", "quantity": 10}]}
    response = client.post(f"{API}/inventory/entries", json=entry_payload)
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["location"] == "origin"
    assert body["supplier"] == "Acme"
    assert body["total_cost"] == 20.0


def test_reseller_flow(client: TestClient, monkeypatch) -> None:
    recorder = RecordingNotifier()
    monkeypatch.setattr(notifications, "_notifier", recorder)
    _seed(client)

    # ship to the reseller
    note_payload = {"source": "origin", "seller_id": "S1", "lines": [{"product_id": "P1", "quantity": 4}]}
    response = client.post(f"{API}/exit-notes", json=note_payload)
    assert response.status_code == 201, response.text
    note = response.json()
    assert note["status"] == "pending"
    assert note["total_value"] == 20.0

    response = client.get(f"{API}/inventory/available", params={"product_id": "P1", "location": "usa"})
    assert response.json() == {"product_id": "P1", "location": "origin", "on_hand": 6, "committed": 4, "available": 2}

    for status_name in ("in_transit", "completed"):
        response = client.patch(f"{API}/exit-notes/{note['id']}/status", json={"status": status_name})
        assert response.status_code == 200, response.text
        assert response.json()["status"] == status_name

    assert client.get(f"{API}/sellers/S1").json()["debt"] == 20.0
    consignment = client.get(f"{API}/sellers/S1/consignment").json()
    assert consignment[0]["outstanding"] == 4

    # take one unit back
    return_payload = {"seller_id": "S1", "lines": [{"product_id": "P1", "quantity": 1}]}
    response = client.post(f"{API}/returns", json=return_payload)
    assert response.status_code == 201, response.text
    return_id = response.json()["id"]

    response = client.post(f"{API}/returns/{return_id}/approve")
    assert response.status_code == 200, response.text
    assert response.json()["status"] == "approved"
    assert client.get(f"{API}/sellers/S1").json()["debt"] == 15.0
    assert [event for event, _ in recorder.events] == ["return.requested", "return.approved"]

    inventory = client.get(f"{API}/inventory", params={"product_id": "P1"}).json()
    assert {(row["location"], row["quantity"]) for row in inventory} == {("origin", 6), ("destination", 1)}

    report = client.get(f"{API}/reconciliation").json()
    assert report["is_clean"] is True
    assert report["checked"] == 3


def test_errors_map_to_status_codes(client: TestClient) -> None:
    _seed(client)

    response = client.get(f"{API}/products/NOPE")
    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"

    response = client.post(
        f"{API}/inventory/entries", json={"location": "Mars", "lines": [{"product_id": "P1", "quantity": 1}]}
    )
    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"

    too_many = {"source": "origin", "destination": "destination", "lines": [{"product_id": "P1", "quantity": 11}]}
    response = client.post(f"{API}/exit-notes", json=too_many)
    assert response.status_code == 409
    assert response.json()["error"] == "InsufficientStock"

    note_payload = {"source": "origin", "destination": "destination", "lines": [{"product_id": "P1", "quantity": 2}]}
    note_id = client.post(f"{API}/exit-notes", json=note_payload).json()["id"]
    assert client.delete(f"{API}/exit-notes/{note_id}").status_code == 200
    response = client.delete(f"{API}/exit-notes/{note_id}")
    assert response.status_code == 409
    assert response.json()["error"] == "AlreadyReversed"

    response = client.patch(f"{API}/exit-notes/{note_id}/status", json={"status": "in_transit"})
    assert response.status_code == 409
    assert response.json()["error"] == "InvalidStateTransition"

    on_hand = client.get(f"{API}/inventory/available", params={"product_id": "P1", "location": "origin"}).json()
    assert on_hand["on_hand"] == 10


def test_corrections_and_discrepancies(client: TestClient) -> None:
    _seed(client)

    response = client.post(
        f"{API}/inventory/corrections",
        json={"product_id": "P1", "location": "origin", "reason": "cycle count", "new_quantity": 8},
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["movement"]["destination_type"] == "decrease"
    assert body["record"]["quantity"] == 8
    assert client.get(f"{API}/reconciliation/discrepancies").json() == []

    sale = client.post(f"{API}/sales", json={"product_id": "P1", "location": "origin", "quantity": 3}).json()
    response = client.post(f"{API}/sales/{sale['id']}/reversal")
    assert response.status_code == 200, response.text
    assert response.json()["kind"] == "reversal"

    movements = client.get(f"{API}/inventory/movements", params={"product_id": "P1"}).json()
    assert [m["kind"] for m in movements] == ["entry", "correction", "sale", "reversal"]
    assert movements[2]["status"] == "reversed"


def test_consolidation_endpoints(client: TestClient) -> None:
    _seed(client)
    client.post(f"{API}/products", json={"id": "KIT", "sku": "KIT", "name": "Gift kit"})

    response = client.post(f"{API}/products/KIT/consolidation", json={"child_ids": ["P1"]})
    assert response.status_code == 200, response.text
    assert response.json()["consolidated_children"] == ["P1"]

    sellable = client.get(f"{API}/products", params={"sellable_only": True}).json()
    assert [p["id"] for p in sellable] == ["KIT"]
    assert client.get(f"{API}/inventory", params={"sellable_only": True}).json() == []

    response = client.delete(f"{API}/products/KIT/consolidation")
    assert response.json()["is_consolidated"] is False


def test_health(client: TestClient) -> None:
    response = client.get(f"{API}/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
