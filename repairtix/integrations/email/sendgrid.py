"""SendGrid e-mail adapter (connection test only)."""

import logging
from typing import Optional

import httpx

from repairtix.integrations import TestConnectionResult

logger = logging.getLogger(__name__)

SENDGRID_API_URL = "https://api.sendgrid.com"


class SendGridAdapter:
    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = 10.0):
        self.transport = transport
        self.timeout = timeout

    async def test_connection(self, credentials: dict[str, str]) -> TestConnectionResult:
        """
        Validate an API key against the user profile endpoint.

        Args:
            credentials: Decrypted credentials, must contain ``apiKey``
        """
        api_key = credentials.get("apiKey")
        if not api_key:
            return TestConnectionResult(success=False, error="API key not found in credentials")

        try:
            async with httpx.AsyncClient(
                base_url=SENDGRID_API_URL, transport=self.transport, timeout=self.timeout
            ) as client:
                response = await client.get(
                    "/v3/user/profile",
                    headers={"Authorization": f"Bearer {api_key}"},
                )
        except httpx.HTTPError as e:
            logger.error(f"SendGrid connection test error: {e}")
            return TestConnectionResult(success=False, error=str(e) or "Unknown error testing connection")

        if response.is_success:
            return TestConnectionResult(success=True)
        if response.status_code == 401:
            return TestConnectionResult(
                success=False, error="Invalid API key. Please check your SendGrid API key."
            )
        return TestConnectionResult(
            success=False, error=f"SendGrid API error: {response.status_code} - {response.text}"
        )
