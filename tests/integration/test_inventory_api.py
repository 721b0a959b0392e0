"""
Integration tests for inventory, classifications, transfers and purchase orders.
"""

import pytest
from httpx import AsyncClient

from repairtix.models import Location

pytestmark = pytest.mark.integration


async def _create_item(client: AsyncClient, headers: dict, location: Location, **overrides) -> dict:
    payload = {
        "name": "Galaxy S22 Battery",
        "cost_price": 12.0,
        "selling_price": 39.99,
        "location_id": str(location.id),
        "initial_quantity": 8,
    }
    payload.update(overrides)
    response = await client.post("/api/inventory", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestInventoryItems:
    @pytest.mark.asyncio
    async def test_create_with_initial_stock(
        self, client: AsyncClient, admin_headers: dict, test_location: Location, second_location: Location
    ):
        """Test that initial stock lands at the given location."""
        item = await _create_item(client, admin_headers, test_location)

        assert item["sku"]
        assert item["location_quantities"] == {str(test_location.id): 8, str(second_location.id): 0}

    @pytest.mark.asyncio
    async def test_technician_is_read_only(
        self, client: AsyncClient, admin_headers: dict, technician_headers: dict, test_location: Location
    ):
        """Test that technician has read-only inventory access."""
        item = await _create_item(client, admin_headers, test_location)

        listed = await client.get("/api/inventory", headers=technician_headers)
        changed = await client.put(f"/api/inventory/{item['id']}", json={"name": "X"}, headers=technician_headers)

        assert listed.status_code == 200
        assert changed.status_code == 403

    @pytest.mark.asyncio
    async def test_adjust_and_set_quantity(self, client: AsyncClient, admin_headers: dict, test_location: Location):
        """Test adjusting and setting the quantity at a location."""
        item = await _create_item(client, admin_headers, test_location)

        adjusted = await client.post(
            f"/api/inventory/{item['id']}/adjust",
            json={"location_id": str(test_location.id), "delta": -10},
            headers=admin_headers,
        )
        assert adjusted.json()["quantity"] == -2

        counted = await client.put(
            f"/api/inventory/{item['id']}/quantity",
            json={"location_id": str(test_location.id), "quantity": 5},
            headers=admin_headers,
        )
        assert counted.json()["quantity"] == 5

        read = await client.get(f"/api/inventory/{item['id']}/quantity/{test_location.id}", headers=admin_headers)
        assert read.json()["quantity"] == 5

    @pytest.mark.asyncio
    async def test_delete_with_stock_rejected(self, client: AsyncClient, admin_headers: dict, test_location: Location):
        """Test that deleting an item with stock is rejected."""
        item = await _create_item(client, admin_headers, test_location)

        response = await client.delete(f"/api/inventory/{item['id']}", headers=admin_headers)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_classification_hierarchy(self, client: AsyncClient, admin_headers: dict, test_location: Location):
        """Test categories, subcategories and duplicate names."""
        category = await client.post("/api/inventory-categories", json={"name": "Screens"}, headers=admin_headers)
        assert category.status_code == 201
        category_id = category.json()["id"]

        orphan = await client.post("/api/inventory-subcategories", json={"name": "OLED"}, headers=admin_headers)
        assert orphan.status_code == 400

        sub = await client.post(
            "/api/inventory-subcategories", json={"name": "OLED", "category_id": category_id}, headers=admin_headers
        )
        assert sub.status_code == 201

        duplicate = await client.post("/api/inventory-categories", json={"name": "Screens"}, headers=admin_headers)
        assert duplicate.status_code == 409

        item = await _create_item(
            client, admin_headers, test_location, category_id=category_id, subcategory_id=sub.json()["id"]
        )
        assert item["category_id"] == category_id


class TestTransfersApi:
    @pytest.mark.asyncio
    async def test_transfer_from_current_location(
        self,
        client: AsyncClient,
        admin_headers: dict,
        manager_headers: dict,
        test_location: Location,
        second_location: Location,
    ):
        """Test a transfer from the current location."""
        item = await _create_item(client, admin_headers, test_location)

        created = await client.post(
            "/api/inventory-transfers",
            json={"to_location_id": str(second_location.id), "inventory_item_id": item["id"], "quantity": 3},
            headers=manager_headers,
        )
        assert created.status_code == 201
        transfer = created.json()
        assert transfer["from_location_id"] == str(test_location.id)
        assert transfer["status"] == "pending"

        completed = await client.post(f"/api/inventory-transfers/{transfer['id']}/complete", headers=manager_headers)
        assert completed.json()["status"] == "completed"

        stock = (await client.get(f"/api/inventory/{item['id']}", headers=admin_headers)).json()
        assert stock["location_quantities"] == {str(test_location.id): 5, str(second_location.id): 3}

        pending = await client.get("/api/inventory-transfers", params={"status": "pending"}, headers=admin_headers)
        assert pending.json() == []

    @pytest.mark.asyncio
    async def test_frontdesk_cannot_transfer(
        self,
        client: AsyncClient,
        admin_headers: dict,
        frontdesk_headers: dict,
        test_location: Location,
        second_location: Location,
    ):
        """Test that frontdesk cannot create transfers."""
        item = await _create_item(client, admin_headers, test_location)

        response = await client.post(
            "/api/inventory-transfers",
            json={"to_location_id": str(second_location.id), "inventory_item_id": item["id"], "quantity": 1},
            headers=frontdesk_headers,
        )

        assert response.status_code == 403


class TestPurchaseOrdersApi:
    @pytest.mark.asyncio
    async def test_order_lifecycle(self, client: AsyncClient, admin_headers: dict, test_location: Location):
        """Test the purchase order lifecycle."""
        item = await _create_item(client, admin_headers, test_location)

        created = await client.post(
            "/api/purchase-orders",
            json={
                "supplier": "Mobile Parts Co",
                "items": [{"inventory_item_id": item["id"], "quantity_ordered": 8, "unit_cost": 14.0}],
            },
            headers=admin_headers,
        )
        assert created.status_code == 201
        po = created.json()
        assert po["po_number"].startswith("PO-")
        assert po["location_id"] == str(test_location.id)
        assert po["total_amount"] == 112.0

        early = await client.post(
            f"/api/purchase-orders/{po['id']}/receive",
            json={"items": [{"id": po["items"][0]["id"], "quantity_received": 8}]},
            headers=admin_headers,
        )
        assert early.status_code == 400

        ordered = await client.post(f"/api/purchase-orders/{po['id']}/order", headers=admin_headers)
        assert ordered.json()["status"] == "ordered"

        received = await client.post(
            f"/api/purchase-orders/{po['id']}/receive",
            json={"items": [{"id": po["items"][0]["id"], "quantity_received": 8}]},
            headers=admin_headers,
        )
        assert received.status_code == 200
        assert received.json()["status"] == "received"

        stock = (await client.get(f"/api/inventory/{item['id']}", headers=admin_headers)).json()
        assert stock["location_quantities"][str(test_location.id)] == 16
        assert stock["cost_price"] == 13.0

    @pytest.mark.asyncio
    async def test_repeated_line_rejected_on_receive(
        self, client: AsyncClient, admin_headers: dict, test_location: Location
    ):
        """Test listing the same line twice cannot receive more than was ordered"""
        item = await _create_item(client, admin_headers, test_location)
        po = (
            await client.post(
                "/api/purchase-orders",
                json={
                    "supplier": "Mobile Parts Co",
                    "items": [{"inventory_item_id": item["id"], "quantity_ordered": 5, "unit_cost": 12.0}],
                },
                headers=admin_headers,
            )
        ).json()
        await client.post(f"/api/purchase-orders/{po['id']}/order", headers=admin_headers)

        line = {"id": po["items"][0]["id"], "quantity_received": 5}
        response = await client.post(
            f"/api/purchase-orders/{po['id']}/receive", json={"items": [line] * 3}, headers=admin_headers
        )

        assert response.status_code == 400
        assert "only be received once" in response.json()["detail"]

        stock = (await client.get(f"/api/inventory/{item['id']}", headers=admin_headers)).json()
        assert stock["location_quantities"][str(test_location.id)] == 8
        refetched = (await client.get(f"/api/purchase-orders/{po['id']}", headers=admin_headers)).json()
        assert refetched["status"] == "ordered"

    @pytest.mark.asyncio
    async def test_draft_can_be_deleted(self, client: AsyncClient, admin_headers: dict, test_location: Location):
        """Test that a draft purchase order can be deleted."""
        item = await _create_item(client, admin_headers, test_location)
        po = (
            await client.post(
                "/api/purchase-orders",
                json={
                    "supplier": "Mobile Parts Co",
                    "items": [{"inventory_item_id": item["id"], "quantity_ordered": 1, "unit_cost": 1.0}],
                },
                headers=admin_headers,
            )
        ).json()

        deleted = await client.delete(f"/api/purchase-orders/{po['id']}", headers=admin_headers)
        missing = await client.get(f"/api/purchase-orders/{po['id']}", headers=admin_headers)

        assert deleted.status_code == 204
        assert missing.status_code == 404
