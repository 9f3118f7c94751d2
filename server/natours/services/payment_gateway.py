"""Payment provider client: order creation and callback signature checks."""

import hashlib
import hmac
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ..core.config import settings
from ..core.exceptions import PaymentGatewayError
from ..core.observability import get_logger

logger = get_logger(__name__)


def payment_signature(order_id: str, payment_id: str, secret: str) -> str:
    """Hex HMAC-SHA256 of ``order_id|payment_id`` under the key secret."""
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_payment_signature(order_id: str, payment_id: str, signature: Optional[str], secret: str) -> bool:
    """
    Check a provider callback signature in constant time.

    Returns False for missing parts rather than raising, since the callback
    redirects the browser either way.
    """
    if not (order_id and payment_id and signature and secret):
        return False
    expected = payment_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected, signature)


def to_minor_units(price: float) -> int:
    """Convert a price to the provider's smallest currency unit."""
    return int(round(price * 100))


class RazorpayGateway:
    """Thin async client over the Razorpay orders API."""

    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.key_id = key_id if key_id is not None else settings.razorpay_key_id
        self.key_secret = key_secret if key_secret is not None else settings.razorpay_key_secret
        self.api_url = (api_url or settings.razorpay_api_url).rstrip("/")
        self.timeout = timeout

    @property
    def public_key(self) -> str:
        return self.key_id

    def verify(self, order_id: str, payment_id: str, signature: Optional[str]) -> bool:
        return verify_payment_signature(order_id, payment_id, signature, self.key_secret)

    async def _request(self, method: str, path: str, event: str, **kwargs: Any) -> dict[str, Any]:
        if not self.key_id or not self.key_secret:
            raise PaymentGatewayError(detail="Payments are not configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method,
                    f"{self.api_url}{path}",
                    auth=(self.key_id, self.key_secret),
                    **kwargs,
                )
        except httpx.HTTPError as e:
            logger.error(f"{event}_transport_error", error=str(e), path=path)
            raise PaymentGatewayError(detail="Could not reach the payment provider") from e

        if response.status_code >= 400:
            logger.warning(
                f"{event}_rejected",
                status_code=response.status_code,
                body=response.text[:500],
                path=path,
            )
            raise PaymentGatewayError(
                detail="The payment provider rejected the request",
                provider_status=response.status_code,
            )
        return response.json()

    async def create_order(self, amount: int, currency: str, receipt: str, notes: Optional[dict] = None) -> dict[str, Any]:
        """
        Create a payment order.

        Args:
            amount: Amount in minor units
            currency: ISO 4217 currency code
            receipt: Our reference for the order
            notes: Free-form key/values echoed back by the provider

        Returns:
            The provider's order document

        Raises:
            PaymentGatewayError: If the provider is unreachable or refuses the order
        """
        payload = {"amount": amount, "currency": currency, "receipt": receipt, "notes": notes or {}}
        order = await self._request("POST", "/orders", "payment_order", json=payload)
        logger.info("payment_order_created", order_id=order.get("id"), amount=amount, currency=currency)
        return order

    async def fetch_order(self, order_id: str) -> dict[str, Any]:
        """
        Read an order back from the provider.

        Raises:
            PaymentGatewayError: If the provider is unreachable or does not know the order
        """
        return await self._request("GET", f"/orders/{quote(order_id, safe='')}", "payment_order_fetch")
