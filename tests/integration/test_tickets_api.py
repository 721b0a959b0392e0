"""
Integration tests for customers and repair tickets.
"""

import pytest
from httpx import AsyncClient

from repairtix.models import Customer, Location, User

pytestmark = pytest.mark.integration


def _ticket(customer: Customer, **overrides) -> dict:
    data = {
        "customer_id": str(customer.id),
        "device_type": "Phone",
        "device_brand": "Apple",
        "device_model": "iPhone 13",
        "issue_description": "Cracked screen",
    }
    data.update(overrides)
    return data


class TestCustomers:
    @pytest.mark.asyncio
    async def test_frontdesk_creates_customer(self, client: AsyncClient, frontdesk_headers: dict):
        """Test that frontdesk can create a customer."""
        response = await client.post(
            "/api/customers",
            json={"first_name": "John", "last_name": "Smith", "phone": "555-0100"},
            headers=frontdesk_headers,
        )

        assert response.status_code == 201
        assert response.json()["first_name"] == "John"

    @pytest.mark.asyncio
    async def test_technician_cannot_create_customer(self, client: AsyncClient, technician_headers: dict):
        """Test that technician cannot create customers."""
        response = await client.post(
            "/api/customers", json={"first_name": "John", "last_name": "Smith"}, headers=technician_headers
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_frontdesk_cannot_delete_customer(
        self, client: AsyncClient, frontdesk_headers: dict, test_customer: Customer
    ):
        """Test that frontdesk cannot delete a customer."""
        response = await client.delete(f"/api/customers/{test_customer.id}", headers=frontdesk_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_search(self, client: AsyncClient, admin_headers: dict, test_customer: Customer):
        """Test searching customers by name, email and phone."""
        response = await client.get("/api/customers", params={"search": "jane"}, headers=admin_headers)

        assert response.status_code == 200
        assert [c["id"] for c in response.json()] == [str(test_customer.id)]


class TestTickets:
    @pytest.mark.asyncio
    async def test_create_ticket_at_current_location(
        self, client: AsyncClient, frontdesk_headers: dict, test_customer: Customer, test_location: Location
    ):
        """Test that tickets are created at the current location."""
        response = await client.post("/api/tickets", json=_ticket(test_customer), headers=frontdesk_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["ticket_number"].startswith("TKT-")
        assert data["status"] == "new"
        assert data["priority"] == "medium"
        assert data["location_id"] == str(test_location.id)

    @pytest.mark.asyncio
    async def test_manager_cannot_create_ticket(
        self, client: AsyncClient, manager_headers: dict, test_customer: Customer
    ):
        """Test that manager without the permission cannot create tickets."""
        response = await client.post("/api/tickets", json=_ticket(test_customer), headers=manager_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_assign_moves_new_ticket_to_assigned(
        self,
        client: AsyncClient,
        admin_headers: dict,
        test_customer: Customer,
        technician_user: User,
    ):
        """Test that assigning a new ticket moves it to assigned."""
        ticket = (await client.post("/api/tickets", json=_ticket(test_customer), headers=admin_headers)).json()

        response = await client.post(
            f"/api/tickets/{ticket['id']}/assign",
            json={"technician_id": str(technician_user.id)},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "assigned"
        assert response.json()["technician_id"] == str(technician_user.id)

    @pytest.mark.asyncio
    async def test_completed_status_sets_completed_date(
        self, client: AsyncClient, admin_headers: dict, technician_headers: dict, test_customer: Customer
    ):
        """Test that completing a ticket sets the completed date."""
        ticket = (await client.post("/api/tickets", json=_ticket(test_customer), headers=admin_headers)).json()

        completed = await client.post(
            f"/api/tickets/{ticket['id']}/status", json={"status": "completed"}, headers=technician_headers
        )
        assert completed.json()["completed_date"] is not None

        reopened = await client.post(
            f"/api/tickets/{ticket['id']}/status", json={"status": "in_progress"}, headers=technician_headers
        )
        assert reopened.json()["completed_date"] is None

    @pytest.mark.asyncio
    async def test_notes_are_appended(
        self, client: AsyncClient, admin_headers: dict, technician_headers: dict, test_customer: Customer
    ):
        """Test that notes are appended with a blank line."""
        ticket = (await client.post("/api/tickets", json=_ticket(test_customer), headers=admin_headers)).json()

        await client.post(
            f"/api/tickets/{ticket['id']}/diagnostic-notes", json={"notes": "LCD dead"}, headers=technician_headers
        )
        response = await client.post(
            f"/api/tickets/{ticket['id']}/diagnostic-notes",
            json={"notes": "Digitizer fine"},
            headers=technician_headers,
        )

        assert response.json()["diagnostic_notes"] == "LCD dead\n\nDigitizer fine"

    @pytest.mark.asyncio
    async def test_unknown_customer_rejected(self, client: AsyncClient, admin_headers: dict, other_admin: User):
        """Test that an unknown customer is rejected."""
        response = await client.post(
            "/api/tickets",
            json={"customer_id": str(other_admin.id), "device_type": "Phone", "issue_description": "Broken"},
            headers=admin_headers,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_list_is_scoped_to_location(
        self,
        client: AsyncClient,
        admin_headers: dict,
        test_customer: Customer,
        admin_user: User,
        second_location: Location,
    ):
        """Test that ticket listing is scoped to the current location."""
        created = (await client.post("/api/tickets", json=_ticket(test_customer), headers=admin_headers)).json()

        here = await client.get("/api/tickets", headers=admin_headers)
        assert [t["id"] for t in here.json()] == [created["id"]]

        switched = await client.put(
            "/api/users/me/current-location", json={"location_id": str(second_location.id)}, headers=admin_headers
        )
        assert switched.status_code == 200

        there = await client.get("/api/tickets", headers=admin_headers)
        assert there.json() == []
