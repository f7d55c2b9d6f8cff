"""
Push gateway client.

Sends one multicast request (title, body, data, list of device tokens) to an
Expo-compatible push endpoint. The gateway decides how each device receives
it; this client only reports per-token acceptance back to the dispatcher.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import httpx
from dotenv import load_dotenv

from league_engine.utils.constants import EXPO_MAX_TOKENS_PER_REQUEST

load_dotenv()

logger = logging.getLogger(__name__)

PUSH_GATEWAY_URL = os.getenv("PUSH_GATEWAY_URL", "https://exp.host/--/api/v2/push/send")
PUSH_GATEWAY_ACCESS_TOKEN = os.getenv("PUSH_GATEWAY_ACCESS_TOKEN")
PUSH_TIMEOUT_SECONDS = float(os.getenv("PUSH_TIMEOUT_SECONDS", "10"))
PUSH_BATCH_SIZE = int(os.getenv("PUSH_BATCH_SIZE", str(EXPO_MAX_TOKENS_PER_REQUEST)))


class PushGatewayError(Exception):
    """The gateway rejected or failed to answer a whole batch."""


@dataclass
class NotificationRequest:
    """A single multicast notification. Built per dispatch, never stored."""

    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)
    tokens: List[str] = field(default_factory=list)


@dataclass
class BatchResult:
    """Per-token outcome of one gateway call."""

    success_count: int = 0
    failure_count: int = 0
    failed_tokens: List[str] = field(default_factory=list)


class PushGateway:
    """Async HTTP client for an Expo-style multicast push endpoint."""

    def __init__(
        self,
        url: str = PUSH_GATEWAY_URL,
        access_token: Optional[str] = PUSH_GATEWAY_ACCESS_TOKEN,
        timeout: float = PUSH_TIMEOUT_SECONDS,
        max_tokens_per_request: int = PUSH_BATCH_SIZE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if max_tokens_per_request < 1:
            raise ValueError("max_tokens_per_request must be at least 1")
        self.url = url
        self.access_token = access_token
        self.timeout = timeout
        self.max_tokens_per_request = max_tokens_per_request
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def send_multicast(self, request: NotificationRequest) -> BatchResult:
        """
        Send one request for up to max_tokens_per_request tokens.

        Args:
            request: Notification with its batch of target tokens

        Returns:
            BatchResult with accepted and rejected token counts

        Raises:
            ValueError: If the batch exceeds the per-request cap
            PushGatewayError: On transport failure or a non-2xx response
        """
        if not request.tokens:
            return BatchResult()
        if len(request.tokens) > self.max_tokens_per_request:
            raise ValueError(
                f"Batch of {len(request.tokens)} tokens exceeds gateway limit "
                f"of {self.max_tokens_per_request}"
            )

        payload = {
            "to": request.tokens,
            "title": request.title,
            "body": request.body,
            "data": request.data,
            "sound": "default",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.url, json=payload, headers=self._headers())
                resp.raise_for_status()
                body = resp.json()
        except httpx.HTTPStatusError as e:
            raise PushGatewayError(
                f"Push gateway returned {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.RequestError as e:
            raise PushGatewayError(f"Push gateway request failed: {e}") from e

        return self._parse_tickets(request.tokens, body)

    def _parse_tickets(self, tokens: List[str], body: dict) -> BatchResult:
        """Map the gateway's per-token tickets (same order as tokens) to a BatchResult."""
        tickets = body.get("data") if isinstance(body, dict) else None
        if isinstance(tickets, dict):
            # Single-recipient responses come back as one ticket object
            tickets = [tickets]
        if not isinstance(tickets, list):
            errors = body.get("errors") if isinstance(body, dict) else None
            raise PushGatewayError(f"Unexpected push gateway response: {errors or body}")

        result = BatchResult()
        for token, ticket in zip(tokens, tickets):
            if ticket.get("status") == "ok":
                result.success_count += 1
                continue
            result.failure_count += 1
            result.failed_tokens.append(token)
            reason = (ticket.get("details") or {}).get("error") or ticket.get("message")
            # Stale tokens are expected; device registration owns cleanup
            logger.info(f"Push gateway rejected token {token[:12]}...: {reason}")

        # Tokens without a ticket were not accepted
        for token in tokens[len(tickets):]:
            result.failure_count += 1
            result.failed_tokens.append(token)
        return result


# Global singleton
_push_gateway: Optional[PushGateway] = None


def get_push_gateway() -> PushGateway:
    """Get the global push gateway instance."""
    global _push_gateway
    if _push_gateway is None:
        _push_gateway = PushGateway()
    return _push_gateway
