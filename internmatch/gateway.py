"""HTTP client for the assistant gateway.

The gateway is a stateless turn processor: it receives the user's message,
the prior transcript, the current phase and the user type, and answers with
a reply plus optional phase, portfolio and match extractions.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from internmatch.config import settings
from internmatch.errors import GatewayUnavailable
from internmatch.models.gateway import GatewayRequest

logger = logging.getLogger(__name__)


class AssistantGateway:
    """Interface of the turn-processing service."""

    async def process_turn(self, request: GatewayRequest) -> Any:
        raise NotImplementedError


class HttpAssistantGateway(AssistantGateway):
    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url or settings.gateway_url
        self.timeout = timeout if timeout is not None else settings.gateway_timeout
        self._client = client

    async def process_turn(self, request: GatewayRequest) -> Any:
        """POST one turn and return the decoded JSON body.

        Raises:
            GatewayUnavailable: on transport errors, timeouts, undecodable
                bodies, and HTTP error statuses that carry no ``error`` field.
        """
        payload = request.to_wire()
        try:
            if self._client is not None:
                response = await self._client.post(self.url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(
                    timeout=self.timeout,
                    headers={"Accept": "application/json"},
                ) as client:
                    response = await client.post(self.url, json=payload)
        except httpx.HTTPError as exc:
            raise GatewayUnavailable(f"Gateway request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise GatewayUnavailable(
                f"Gateway returned a non-JSON body (HTTP {response.status_code})"
            ) from exc

        if response.is_error:
            # The gateway reports its own failures as {"error": ...} with a 4xx/5xx status.
            if isinstance(body, dict) and body.get("error") is not None:
                logger.debug("Gateway reported HTTP %s with error body", response.status_code)
                return body
            raise GatewayUnavailable(f"Gateway answered HTTP {response.status_code}")
        return body
