"""Async client for the Relay solver API."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from .base import Provider
from ..config import Settings, settings as default_settings


class RelayProvider(Provider):
    """Thin wrapper around https://api.relay.link endpoints."""

    name = "relay"

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_s: Optional[int] = None,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        cfg = config or default_settings
        self.base_url = (base_url or cfg.relay_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else cfg.relay_api_key
        self.timeout_s = timeout_s or cfg.request_timeout_seconds
        self._transport = transport

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    async def ready(self) -> bool:
        return bool(self.base_url)

    async def health_check(self) -> Dict[str, Any]:
        return {
            "status": "healthy" if await self.ready() else "disabled",
            "base_url": self.base_url,
            "api_key": self.has_api_key,
        }

    def _headers(self) -> Dict[str, str]:
        headers = {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": "dustsweep/0.1",
        }
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
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
        """POST /quote.

        `payload` follows https://docs.relay.link/ (user, recipient,
        originChainId, destinationChainId, originCurrency, destinationCurrency,
        amount, tradeType, referrer, usePermit).
        """

        resp = await self._request("POST", "/quote", json=payload)
        return resp.json()

