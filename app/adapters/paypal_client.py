"""PayPal Orders v2 REST client (client-credentials auth, create, capture).

Only transport-level failures are retried. Every mutating call carries a
``PayPal-Request-Id`` so the provider deduplicates a retried request; a
non-2xx answer is final and raised as the matching provider error.
"""

from __future__ import annotations

import asyncio
import logging
import time
from functools import lru_cache
from typing import Any, Dict, Optional

import httpx

from app.core.config import Settings, get_settings
from app.common.errors import (
    CaptureFailed,
    ConfigurationError,
    OrderCreationFailed,
    PaymentProviderUnavailable,
)

logger = logging.getLogger("payments.paypal")

# Refresh the access token this many seconds before PayPal says it expires.
_TOKEN_EXPIRY_MARGIN_S = 60


class PayPalClient:
    retry_backoff_s: float = 0.5

    def __init__(self, settings: Optional[Settings] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.settings = settings or get_settings()
        self.base_url = self.settings.paypal_api_base
        self._transport = transport
        self._token: Optional[str] = None
        self._token_expires_at: float = 0.0
        self._token_lock = asyncio.Lock()

    def _http(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(connect=3.0, read=self.settings.paypal_timeout_s, write=5.0, pool=5.0)
        return httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=self._transport)

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        max_retries = self.settings.paypal_max_retries
        for attempt in range(max_retries):
            try:
                async with self._http() as client:
                    return await client.request(method, path, **kwargs)
            except httpx.TransportError as e:
                if attempt < max_retries - 1:
                    backoff = self.retry_backoff_s * (attempt + 1)
                    logger.warning("paypal.transport_error path=%s attempt=%d err=%s retry_in=%.1fs",
                                   path, attempt + 1, type(e).__name__, backoff)
                    await asyncio.sleep(backoff)
                    continue
                logger.error("paypal.unreachable path=%s err=%s", path, e)
                raise PaymentProviderUnavailable(provider_detail=str(e)) from e
        raise PaymentProviderUnavailable()  # pragma: no cover (loop always returns or raises)

    # ---- auth ----------------------------------------------------------------
    def invalidate_token(self) -> None:
        self._token = None
        self._token_expires_at = 0.0

    async def access_token(self) -> str:
        if not self.settings.paypal_configured:
            raise ConfigurationError("PayPal credentials not configured")
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token
        async with self._token_lock:
            if self._token and time.monotonic() < self._token_expires_at:
                return self._token
            resp = await self._send(
                "POST",
                "/v1/oauth2/token",
                auth=(self.settings.paypal_client_id, self.settings.paypal_secret_key),
                data={"grant_type": "client_credentials"},
                headers={"Accept": "application/json"},
            )
            if resp.status_code >= 400:
                logger.error("paypal.auth_error status=%s body=%s", resp.status_code, resp.text)
                raise PaymentProviderUnavailable(provider_status=resp.status_code, provider_detail=resp.text)
            data = resp.json()
            self._token = data["access_token"]
            ttl = int(data.get("expires_in") or 0) - _TOKEN_EXPIRY_MARGIN_S
            self._token_expires_at = time.monotonic() + max(ttl, 0)
            return self._token

    async def _authorized(self, method: str, path: str, *, request_id: Optional[str] = None,
                          json: Optional[Dict[str, Any]] = None) -> httpx.Response:
        for attempt in range(2):
            token = await self.access_token()
            headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
            if request_id:
                headers["PayPal-Request-Id"] = request_id
            resp = await self._send(method, path, headers=headers, json=json)
            if resp.status_code == 401 and attempt == 0:
                # Token revoked or expired early; fetch a fresh one once.
                self.invalidate_token()
                continue
            return resp
        return resp

    # ---- orders --------------------------------------------------------------
    async def create_order(self, payload: Dict[str, Any], *, request_id: Optional[str] = None) -> Dict[str, Any]:
        resp = await self._authorized("POST", "/v2/checkout/orders", request_id=request_id, json=payload)
        if resp.status_code >= 400:
            logger.error("paypal.order_create_error status=%s body=%s", resp.status_code, resp.text)
            raise OrderCreationFailed(provider_status=resp.status_code, provider_detail=resp.text)
        return resp.json()

    async def capture_order(self, order_id: str, *, request_id: Optional[str] = None) -> Dict[str, Any]:
        resp = await self._authorized("POST", f"/v2/checkout/orders/{order_id}/capture", request_id=request_id)
        if resp.status_code >= 400:
            logger.error("paypal.capture_error order_id=%s status=%s body=%s", order_id, resp.status_code, resp.text)
            raise CaptureFailed(provider_status=resp.status_code, provider_detail=resp.text)
        return resp.json()


@lru_cache()
def get_paypal_client() -> PayPalClient:
    return PayPalClient()


def approval_url(order: Dict[str, Any]) -> Optional[str]:
    """Pick the buyer approval link out of an order's HATEOAS links."""
    links = order.get("links") or []
    for rel in ("payer-action", "approve"):
        for link in links:
            if link.get("rel") == rel and link.get("href"):
                return link["href"]
    return None
