"""PayPal service - Integration with the PayPal REST API"""

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from ...config import (
    PAYPAL_CLIENT_ID,
    PAYPAL_CLIENT_SECRET,
    PAYPAL_CURRENCY,
    PAYPAL_MODE,
    PAYPAL_TIMEOUT_SECONDS,
    PAYPAL_WEBHOOK_ID,
)
from .errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

LIVE_BASE_URL = "https://api-m.paypal.com"
SANDBOX_BASE_URL = "https://api-m.sandbox.paypal.com"


def normalize_paypal_mode(mode: Optional[str]) -> str:
    """Anything other than 'live' runs against the sandbox"""
    return "live" if (mode or "").strip().lower() == "live" else "sandbox"


def find_link(data: Optional[dict], rel: str) -> Optional[str]:
    """href of the first HATEOAS link with the given rel"""
    links = (data or {}).get("links")
    if not isinstance(links, list):
        return None
    for link in links:
        if isinstance(link, dict) and str(link.get("rel") or "").lower() == rel:
            return link.get("href")
    return None


def _parse_body(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return None


class PayPalService:
    """
    Thin async client over the PayPal REST API.

    Every operation exchanges client credentials for a fresh bearer token;
    tokens are not cached between operations.
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        mode: Optional[str] = None,
        webhook_id: Optional[str] = None,
        currency: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id if client_id is not None else PAYPAL_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else PAYPAL_CLIENT_SECRET
        self.mode = normalize_paypal_mode(mode if mode is not None else PAYPAL_MODE)
        self.webhook_id = webhook_id if webhook_id is not None else PAYPAL_WEBHOOK_ID
        self.currency = (currency or PAYPAL_CURRENCY).upper()
        self.timeout = timeout if timeout is not None else PAYPAL_TIMEOUT_SECONDS
        self.transport = transport

        if not self.is_configured():
            logger.warning("PAYPAL_CLIENT_ID / PAYPAL_CLIENT_SECRET not set; PayPal endpoints will fail until configured")

    @property
    def base_url(self) -> str:
        return LIVE_BASE_URL if self.mode == "live" else SANDBOX_BASE_URL

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def public_config(self) -> dict:
        """Values the web checkout needs to render PayPal buttons"""
        self._require_credentials()
        return {"client_id": self.client_id, "mode": self.mode, "currency": self.currency}

    def _require_credentials(self) -> None:
        if not self.is_configured():
            raise ConfigurationError(
                "PayPal no está configurado (faltan PAYPAL_CLIENT_ID / PAYPAL_CLIENT_SECRET)"
            )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    async def _get_access_token(self, http_client: httpx.AsyncClient) -> str:
        self._require_credentials()
        try:
            response = await http_client.post(
                "/v1/oauth2/token",
                auth=(self.client_id, self.client_secret),
                data={"grant_type": "client_credentials"},
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error(f"❌ PayPal token request failed: {e}")
            raise UpstreamError(f"No se pudo contactar a PayPal: {e}")

        data = _parse_body(response)
        if response.status_code != 200:
            logger.error(f"❌ PayPal token exchange failed: HTTP {response.status_code}")
            message = (data or {}).get("error_description") or (data or {}).get("message")
            raise UpstreamError(
                message or "Error obteniendo access token PayPal",
                provider_status=response.status_code,
                body=data,
            )

        token = (data or {}).get("access_token")
        if not token:
            raise UpstreamError("Respuesta inválida de PayPal (sin access_token)", body=data)
        return token

    async def _call(
        self, method: str, path: str, action: str, payload: Optional[dict] = None
    ) -> Optional[dict]:
        """Authenticate, then issue one JSON request; non-2xx answers raise UpstreamError"""
        async with self._client() as http_client:
            token = await self._get_access_token(http_client)
            try:
                response = await http_client.request(
                    method,
                    path,
                    json=payload,
                    headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
                )
            except httpx.HTTPError as e:
                logger.error(f"❌ PayPal {action} request failed: {e}")
                raise UpstreamError(f"No se pudo contactar a PayPal: {e}")

        data = _parse_body(response)
        if response.status_code < 200 or response.status_code >= 300:
            logger.error(f"❌ PayPal {action} failed: HTTP {response.status_code} {data}")
            raise UpstreamError(
                (data or {}).get("message") or f"Error de PayPal en {action}",
                provider_status=response.status_code,
                body=data,
            )
        return data

    # ============================================================================
    # ORDERS (one-off payments)
    # ============================================================================

    async def create_order(self, amount_value: str, currency: str, reference_id: str, description: str) -> dict:
        payload = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": reference_id,
                    "amount": {"currency_code": currency, "value": amount_value},
                    "description": description,
                }
            ],
        }
        data = await self._call("POST", "/v2/checkout/orders", "create order", payload)
        logger.info(f"✅ Created PayPal order {(data or {}).get('id')} for {reference_id}")
        return data or {}

    async def get_order(self, order_id: str) -> dict:
        data = await self._call("GET", f"/v2/checkout/orders/{quote(str(order_id), safe='')}", "get order")
        return data or {}

    async def capture_order(self, order_id: str) -> dict:
        data = await self._call(
            "POST", f"/v2/checkout/orders/{quote(str(order_id), safe='')}/capture", "capture order"
        )
        return data or {}

    # ============================================================================
    # BILLING SUBSCRIPTIONS (recurring)
    # ============================================================================

    async def create_subscription(self, plan_id: str, custom_id: str, application_context: dict) -> dict:
        payload = {
            "plan_id": plan_id,
            "custom_id": custom_id,
            "application_context": application_context,
        }
        data = await self._call("POST", "/v1/billing/subscriptions", "create subscription", payload)
        return data or {}

    async def get_subscription(self, subscription_id: str) -> dict:
        data = await self._call(
            "GET", f"/v1/billing/subscriptions/{quote(str(subscription_id), safe='')}", "get subscription"
        )
        return data or {}

    async def cancel_subscription(self, subscription_id: str, reason: str) -> None:
        await self._call(
            "POST",
            f"/v1/billing/subscriptions/{quote(str(subscription_id), safe='')}/cancel",
            "cancel subscription",
            {"reason": reason},
        )
        logger.info(f"✅ Cancelled PayPal subscription {subscription_id}")

    async def revise_subscription(self, subscription_id: str, plan_id: str, application_context: dict) -> dict:
        payload = {"plan_id": plan_id, "application_context": application_context}
        data = await self._call(
            "POST",
            f"/v1/billing/subscriptions/{quote(str(subscription_id), safe='')}/revise",
            "revise subscription",
            payload,
        )
        return data or {}

    # ============================================================================
    # WEBHOOKS
    # ============================================================================

    async def verify_webhook_signature(self, transmission: dict, event: dict) -> bool:
        """
        Ask PayPal whether a webhook delivery is authentic.

        `transmission` holds the five paypal-* transmission headers (see
        webhook_security.extract_paypal_transmission_headers).
        """
        webhook_id = (self.webhook_id or "").strip()
        if not webhook_id:
            raise ConfigurationError("Falta PAYPAL_WEBHOOK_ID para verificar webhooks de PayPal")

        payload = {
            "transmission_id": transmission["transmission_id"],
            "transmission_time": transmission["transmission_time"],
            "cert_url": transmission["cert_url"],
            "auth_algo": transmission["auth_algo"],
            "transmission_sig": transmission["transmission_sig"],
            "webhook_id": webhook_id,
            "webhook_event": event,
        }
        data = await self._call(
            "POST", "/v1/notifications/verify-webhook-signature", "verify webhook", payload
        )
        return str((data or {}).get("verification_status") or "").upper() == "SUCCESS"


paypal_service = PayPalService()
