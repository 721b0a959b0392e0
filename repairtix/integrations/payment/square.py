"""
Square payments adapter.

Used for two things: testing a company's own Square credentials, and charging
the platform's monthly subscription fee to a company's stored card (with the
platform's Square account from settings).
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

import httpx

from repairtix.config.settings import get_settings
from repairtix.errors import PaymentError
from repairtix.integrations import TestConnectionResult

logger = logging.getLogger(__name__)

SQUARE_VERSION = "2024-01-18"
SQUARE_URLS = {
    "production": "https://connect.squareup.com",
    "sandbox": "https://connect.squareupsandbox.com",
}


@dataclass
class ChargeResult:
    payment_id: str
    status: str


def _to_cents(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1")))


def _error_message(response: httpx.Response) -> str:
    try:
        errors = response.json().get("errors") or []
    except (ValueError, AttributeError):
        errors = []
    message = "; ".join(e.get("detail") or e.get("code") or "" for e in errors if isinstance(e, dict))
    return message or f"Square API error: {response.status_code}"


class SquareAdapter:
    """Thin async client over the Square REST API."""

    def __init__(
        self,
        access_token: Optional[str],
        location_id: Optional[str] = None,
        environment: str = "sandbox",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 15.0,
    ):
        self.access_token = access_token
        self.location_id = location_id
        self.base_url = SQUARE_URLS.get(environment, SQUARE_URLS["sandbox"])
        self.transport = transport
        self.timeout = timeout

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "SquareAdapter":
        settings = get_settings()
        return cls(
            access_token=settings.SQUARE_ACCESS_TOKEN,
            location_id=settings.SQUARE_LOCATION_ID,
            environment=settings.SQUARE_ENVIRONMENT,
            transport=transport,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            transport=self.transport,
            timeout=self.timeout,
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Square-Version": SQUARE_VERSION,
                "Content-Type": "application/json",
            },
        )

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        if not self.access_token:
            raise PaymentError("Square access token not configured", code="NOT_CONFIGURED")
        try:
            async with self._client() as client:
                response = await client.post(path, json=body)
        except httpx.HTTPError as e:
            raise PaymentError(f"Square request failed: {e}", code="NETWORK_ERROR") from e

        if not response.is_success:
            raise PaymentError(_error_message(response), code=str(response.status_code))
        try:
            data = response.json()
        except ValueError as e:
            raise PaymentError("Square returned an invalid response", code="INVALID_RESPONSE") from e
        if not isinstance(data, dict):
            raise PaymentError("Square returned an invalid response", code="INVALID_RESPONSE")
        return data

    @staticmethod
    def _field(data: dict[str, Any], key: str) -> dict[str, Any]:
        value = data.get(key)
        if not isinstance(value, dict) or "id" not in value:
            raise PaymentError(f"Square response is missing {key}", code="INVALID_RESPONSE")
        return value

    async def test_connection(self) -> TestConnectionResult:
        if not self.access_token:
            return TestConnectionResult(success=False, error="Access token is required")
        try:
            async with self._client() as client:
                response = await client.get("/v2/locations")
        except httpx.HTTPError as e:
            logger.error(f"Square connection test error: {e}")
            return TestConnectionResult(success=False, error=str(e) or "Unknown error testing connection")

        if response.is_success:
            try:
                locations = response.json().get("locations")
            except (ValueError, AttributeError):
                return TestConnectionResult(success=False, error="Square returned an invalid response")
            if locations:
                return TestConnectionResult(success=True)
            return TestConnectionResult(
                success=False,
                error="Failed to retrieve location information. Please verify your access token has the correct permissions.",
            )
        return TestConnectionResult(success=False, error=_error_message(response))

    async def create_customer(self, company_name: str, email: Optional[str] = None) -> str:
        body: dict[str, Any] = {"idempotency_key": str(uuid.uuid4()), "company_name": company_name}
        if email:
            body["email_address"] = email
        data = await self._post("/v2/customers", body)
        return self._field(data, "customer")["id"]

    async def save_card(self, customer_id: str, card_token: str) -> str:
        """Store a card nonce on a customer and return the card id."""
        data = await self._post(
            "/v2/cards",
            {
                "idempotency_key": str(uuid.uuid4()),
                "source_id": card_token,
                "card": {"customer_id": customer_id},
            },
        )
        return self._field(data, "card")["id"]

    async def charge_card(
        self,
        customer_id: str,
        card_id: str,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
        note: Optional[str] = None,
    ) -> ChargeResult:
        body: dict[str, Any] = {
            "idempotency_key": idempotency_key,
            "source_id": card_id,
            "customer_id": customer_id,
            "amount_money": {"amount": _to_cents(amount), "currency": currency},
            "autocomplete": True,
        }
        if self.location_id:
            body["location_id"] = self.location_id
        if note:
            body["note"] = note

        data = await self._post("/v2/payments", body)
        payment = self._field(data, "payment")
        if payment.get("status") not in ("COMPLETED", "APPROVED"):
            raise PaymentError(f"Payment not completed: {payment.get('status')}", code=payment.get("status"))
        return ChargeResult(payment_id=payment["id"], status=payment["status"])
