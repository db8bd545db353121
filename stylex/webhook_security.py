"""
Webhook Security Module

PayPal webhooks are authenticated by PayPal itself: the five transmission
headers are forwarded, together with the event body and our webhook id, to
PayPal's verify-webhook-signature endpoint. This module only collects and
validates those headers.
"""

import logging
from typing import Mapping

from .domain.billing.errors import ValidationError

logger = logging.getLogger(__name__)

# Header name -> key expected by the verification payload
PAYPAL_TRANSMISSION_HEADERS = {
    "paypal-transmission-id": "transmission_id",
    "paypal-transmission-time": "transmission_time",
    "paypal-transmission-sig": "transmission_sig",
    "paypal-cert-url": "cert_url",
    "paypal-auth-algo": "auth_algo",
}


def extract_paypal_transmission_headers(headers: Mapping[str, str]) -> dict:
    """
    Collect the PayPal transmission headers, case-insensitively.

    Raises:
        ValidationError: if any of the five headers is missing or blank
    """
    lowered = {str(k).lower(): v for k, v in headers.items()}

    transmission = {}
    missing = []
    for header, key in PAYPAL_TRANSMISSION_HEADERS.items():
        value = (lowered.get(header) or "").strip()
        if not value:
            missing.append(header)
        transmission[key] = value

    if missing:
        logger.warning(f"⚠️ PayPal webhook rejected, missing headers: {', '.join(missing)}")
        raise ValidationError("Headers de webhook PayPal incompletos", details={"missing": missing})

    return transmission
