"""Async client for Relay's public quote API."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ..config import settings


class RelayProvider:
    """Thin wrapper around https://api.relay.link endpoints."""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        configured = base_url or settings.relay_base_url
        self.base_url = (configured or "https://api.relay.link").rstrip("/")
        self.timeout_s = timeout_s if timeout_s is not None else settings.relay_timeout_seconds
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "accept": "application/json, text/plain, */*",
            "content-type": "application/json",
            "user-agent": settings.relay_user_agent,
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request; non-2xx raises ``httpx.HTTPStatusError``."""
        merged_headers = {**self._headers(), **(headers or {})}

        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_s,
            transport=self._transport,
        ) as client:
            response = await client.request(method, path, json=json, headers=merged_headers, **kwargs)
            response.raise_for_status()
            return response

    async def quote(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Request a swap quote from Relay.

        `payload` follows the schema documented at https://docs.relay.link/
        (user, originChainId, destinationChainId, amount, tradeType, ...).
        Non-2xx responses raise ``httpx.HTTPStatusError``.
        """

        resp = await self._request("POST", "/quote", json=payload)
        return resp.json()
