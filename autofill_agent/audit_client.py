from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class AuditClient:
    """Posts run outcomes to an optional audit endpoint; no-op when unconfigured."""

    def __init__(
        self,
        base_url: Optional[str],
        token: Optional[str],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.token = token
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def record(self, event: Dict[str, Any]) -> None:
        if not self.base_url:
            return
        event = {"event_id": str(uuid.uuid4()), **event}
        async with httpx.AsyncClient(timeout=5.0, transport=self._transport) as client:
            try:
                resp = await client.post(f"{self.base_url}/events", json=event, headers=self._headers())
                resp.raise_for_status()
            except httpx.HTTPError as exc:
                logger.warning("Audit event %s not recorded: %s", event["event_id"], exc)

    async def ping(self) -> bool:
        if not self.base_url:
            return True
        try:
            async with httpx.AsyncClient(timeout=3.0, transport=self._transport) as client:
                resp = await client.get(f"{self.base_url}/health")
                resp.raise_for_status()
            return True
        except httpx.HTTPError:
            return False
