"""
Razorpay integration: gateway order creation over the REST API and
payment signature verification.
"""

import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

import requests

import config

logger = logging.getLogger("aether")


class GatewayError(Exception):
    """Raised when the payment gateway rejects or fails a request."""


def compute_signature(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    body = f"{gateway_order_id}|{gateway_payment_id}"
    return hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(secret: str, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
    if not secret or not signature:
        return False
    expected = compute_signature(secret, gateway_order_id, gateway_payment_id)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


class RazorpayGateway:
    def __init__(self, key_id: str, key_secret: str, api_url: str = config.RAZORPAY_API_URL, timeout: float = 15):
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def create_order(self, amount: int, currency: str, receipt: str, notes: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Create a gateway order for `amount` minor currency units."""
        payload = {"amount": amount, "currency": currency, "receipt": receipt, "notes": notes or {}}
        try:
            response = requests.post(
                f"{self.api_url}/orders",
                auth=(self.key_id, self.key_secret),
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise GatewayError(f"Razorpay unreachable: {exc}") from exc
        if response.status_code >= 400:
            raise GatewayError(f"Razorpay order creation failed ({response.status_code}): {response.text[:200]}")
        return response.json()

    def verify_signature(self, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
        return verify_signature(self.key_secret, gateway_order_id, gateway_payment_id, signature)


_gateway: Optional[RazorpayGateway] = None


def get_gateway() -> Optional[RazorpayGateway]:
    """FastAPI dependency: the configured gateway, or None when keys are missing."""
    global _gateway
    if _gateway is None:
        if config.RAZORPAY_KEY_ID and config.RAZORPAY_KEY_SECRET:
            _gateway = RazorpayGateway(config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET)
            logger.info("Razorpay initialized")
        else:
            logger.warning("Razorpay keys missing, payment order creation disabled")
    return _gateway
