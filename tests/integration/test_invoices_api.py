"""
Integration tests for invoices, line items, payments and refunds.
"""

import pytest
from httpx import AsyncClient

from repairtix.models import Company, Customer, Location

pytestmark = pytest.mark.integration


async def _invoice(client: AsyncClient, headers: dict, customer: Customer) -> dict:
    response = await client.post("/api/invoices", json={"customer_id": str(customer.id)}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def _part(client: AsyncClient, headers: dict, location: Location, quantity: int = 3) -> dict:
    response = await client.post(
        "/api/inventory",
        json={
            "name": "Pixel 7 Charging Port",
            "selling_price": 40.0,
            "location_id": str(location.id),
            "initial_quantity": quantity,
        },
        headers=headers,
    )
    return response.json()


class TestInvoiceLifecycle:
    @pytest.mark.asyncio
    async def test_items_drive_totals_and_stock(
        self, client: AsyncClient, admin_headers: dict, test_customer: Customer, test_location: Location
    ):
        """Test that invoice items drive totals and stock."""
        invoice = await _invoice(client, admin_headers, test_customer)
        part = await _part(client, admin_headers, test_location)

        with_part = await client.post(
            f"/api/invoices/{invoice['id']}/items",
            json={"inventory_item_id": part["id"], "quantity": 2},
            headers=admin_headers,
        )
        assert with_part.status_code == 201
        with_labor = await client.post(
            f"/api/invoices/{invoice['id']}/items",
            json={"description": "Labor", "unit_price": 20.0, "type": "service", "is_taxable": False},
            headers=admin_headers,
        )
        data = with_labor.json()

        assert len(data["items"]) == 2
        assert data["subtotal"] == 100.0
        assert data["tax_amount"] == 6.6
        assert data["total_amount"] == 106.6

        stock = (await client.get(f"/api/inventory/{part['id']}", headers=admin_headers)).json()
        assert stock["location_quantities"][str(test_location.id)] == 1

    @pytest.mark.asyncio
    async def test_stock_check(
        self, client: AsyncClient, admin_headers: dict, test_customer: Customer, test_location: Location
    ):
        """Test the stock check at the invoice location."""
        invoice = await _invoice(client, admin_headers, test_customer)
        part = await _part(client, admin_headers, test_location, quantity=1)

        response = await client.post(
            f"/api/invoices/{invoice['id']}/items",
            json={"inventory_item_id": part["id"], "quantity": 2},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Insufficient stock. Available: 1, Requested: 2"

    @pytest.mark.asyncio
    async def test_pay_then_refund(self, client: AsyncClient, manager_headers: dict, test_customer: Customer):
        """Test paying and then refunding an invoice."""
        invoice = await _invoice(client, manager_headers, test_customer)
        await client.post(
            f"/api/invoices/{invoice['id']}/items",
            json={"description": "Screen replacement", "unit_price": 100.0},
            headers=manager_headers,
        )

        paid = await client.post(
            f"/api/invoices/{invoice['id']}/paid",
            json={"payment_method": "card", "payment_reference": "txn_42"},
            headers=manager_headers,
        )
        assert paid.json()["status"] == "paid"
        assert paid.json()["payment_reference"] == "txn_42"

        too_much = await client.post(
            f"/api/invoices/{invoice['id']}/refund", json={"amount": 500.0}, headers=manager_headers
        )
        assert too_much.status_code == 400

        refunded = await client.post(
            f"/api/invoices/{invoice['id']}/refund",
            json={"amount": 108.25, "reason": "Customer changed mind", "method": "card"},
            headers=manager_headers,
        )
        assert refunded.json()["status"] == "cancelled"
        assert refunded.json()["refund_amount"] == 108.25

    @pytest.mark.asyncio
    async def test_filter_by_status(self, client: AsyncClient, admin_headers: dict, test_customer: Customer):
        """Test filtering tickets by status."""
        draft = await _invoice(client, admin_headers, test_customer)
        paid = await _invoice(client, admin_headers, test_customer)
        await client.post(f"/api/invoices/{paid['id']}/paid", json={"payment_method": "cash"}, headers=admin_headers)

        response = await client.get("/api/invoices", params={"status": "draft"}, headers=admin_headers)

        assert [i["id"] for i in response.json()] == [draft["id"]]


class TestInvoicePermissions:
    @pytest.mark.asyncio
    async def test_technician_cannot_create(
        self, client: AsyncClient, technician_headers: dict, test_customer: Customer
    ):
        """Test that technician cannot create invoices."""
        response = await client.post(
            "/api/invoices", json={"customer_id": str(test_customer.id)}, headers=technician_headers
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_technician_cannot_mark_paid(
        self, client: AsyncClient, admin_headers: dict, technician_headers: dict, test_customer: Customer
    ):
        """Test that technician cannot mark invoices paid."""
        invoice = await _invoice(client, admin_headers, test_customer)

        response = await client.post(
            f"/api/invoices/{invoice['id']}/paid", json={"payment_method": "cash"}, headers=technician_headers
        )

        assert response.status_code == 403
        assert "invoices.markPaid" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_price_change_without_permission(
        self, client: AsyncClient, admin_headers: dict, manager_headers: dict, test_customer: Customer
    ):
        """Test that a price change without permission is rejected."""
        matrix = (await client.get("/api/permissions/matrix", headers=admin_headers)).json()
        reduced = [p for p in matrix["manager"] if p != "invoices.modifyPrices"]
        updated = await client.put(
            "/api/permissions/roles/manager", json={"permissions": reduced}, headers=admin_headers
        )
        assert updated.status_code == 200

        invoice = await _invoice(client, manager_headers, test_customer)
        line = (
            await client.post(
                f"/api/invoices/{invoice['id']}/items",
                json={"description": "Labor", "unit_price": 50.0},
                headers=manager_headers,
            )
        ).json()["items"][0]

        denied = await client.put(
            f"/api/invoices/{invoice['id']}/items/{line['id']}", json={"unit_price": 10.0}, headers=manager_headers
        )
        allowed = await client.put(
            f"/api/invoices/{invoice['id']}/items/{line['id']}", json={"quantity": 2}, headers=manager_headers
        )

        assert denied.status_code == 403
        assert allowed.status_code == 200
        assert allowed.json()["subtotal"] == 100.0

    @pytest.mark.asyncio
    async def test_superuser_picks_location(
        self,
        client: AsyncClient,
        superuser_headers: dict,
        test_company: Company,
        test_customer: Customer,
        test_location: Location,
    ):
        """Test that superuser can pick the invoice location."""
        headers = {**superuser_headers, "X-Impersonate-Company": str(test_company.id)}

        missing = await client.post("/api/invoices", json={"customer_id": str(test_customer.id)}, headers=headers)
        created = await client.post(
            "/api/invoices",
            json={"customer_id": str(test_customer.id), "location_id": str(test_location.id)},
            headers=headers,
        )

        assert missing.status_code == 400
        assert created.status_code == 201
        assert created.json()["location_id"] == str(test_location.id)
