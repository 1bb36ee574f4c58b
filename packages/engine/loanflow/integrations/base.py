# This project was developed with assistance from AI tools.
"""Base client for third-party vendor APIs.

Requests are retried with exponential backoff. A 401 rotates to the next
stored credential (round-robin) before the next attempt. Exhaustion raises
IntegrationError carrying the last status and body.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from pydantic import BaseModel

from ..core.config import settings
from ..errors import IntegrationError

logger = logging.getLogger(__name__)


class IntegrationResult(BaseModel):
    """Normalized outcome of a vendor call."""

    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None


class BaseIntegrationClient:
    """Async HTTP client with retries and credential rotation."""

    vendor: str = "integration"

    def __init__(
        self,
        base_url: str,
        *,
        credentials: list[dict[str, str]] | None = None,
        client: httpx.AsyncClient | None = None,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
        timeout: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.credentials: list[dict[str, str]] = list(credentials or [])
        self._credential_index = 0
        self.max_attempts = max_attempts or settings.INTEGRATION_MAX_ATTEMPTS
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.INTEGRATION_BACKOFF_SECONDS
        )
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.INTEGRATION_TIMEOUT_SECONDS,
        )
        self._sleep = sleep

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # -- Credentials --

    def store_credentials(self, credentials: list[dict[str, str]]) -> None:
        self.credentials = list(credentials)
        self._credential_index = 0

    @property
    def credential_index(self) -> int:
        return self._credential_index

    def current_credential(self) -> dict[str, str]:
        if not self.credentials:
            return {}
        return self.credentials[self._credential_index]

    def rotate_credential(self) -> None:
        """Advance to the next credential. No-op with fewer than two."""
        if len(self.credentials) <= 1:
            return
        self._credential_index = (self._credential_index + 1) % len(self.credentials)
        logger.info("%s: rotated to credential %d", self.vendor, self._credential_index)

    def build_headers(self, credential: dict[str, str]) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credential.get('token', '')}",
            "Accept": "application/json",
        }

    # -- Requests --

    async def request(self, method: str, endpoint: str, payload: dict | None = None) -> Any:
        """Send a request, retrying failures with doubling delays.

        Returns the decoded JSON body (None for an empty body).
        """
        attempts = 0
        delay = self.backoff_seconds
        url = f"{self.base_url}{endpoint}"

        while True:
            credential = self.current_credential()
            try:
                response = await self._client.request(
                    method, url, json=payload or {}, headers=self.build_headers(credential),
                )
            except httpx.HTTPError as exc:
                error = IntegrationError(str(exc) or exc.__class__.__name__)
            else:
                if response.status_code == 401:
                    self.rotate_credential()
                    error = IntegrationError("Unauthorized", status=401)
                elif response.is_success:
                    if not response.content:
                        return None
                    try:
                        return response.json()
                    except ValueError:
                        error = IntegrationError("Invalid JSON", status=response.status_code, body=response.text)
                else:
                    error = IntegrationError("HTTP Error", status=response.status_code, body=response.text)

            attempts += 1
            if attempts >= self.max_attempts:
                logger.error(
                    "%s %s %s failed after %d attempts: %s",
                    self.vendor, method, endpoint, attempts, error,
                )
                raise error

            logger.warning(
                "%s %s %s attempt %d failed (%s); retrying in %.1fs",
                self.vendor, method, endpoint, attempts, error, delay,
            )
            await self._sleep(delay)
            delay *= 2
