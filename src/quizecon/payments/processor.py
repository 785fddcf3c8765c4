"""
Payment processor client with provider abstraction.

The processor hosts the checkout page and delivers payment notifications back
to the webhook. This module only creates checkout sessions; one client is
built in the app lifespan and injected through ``app.state``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from quizecon.config import Settings
from quizecon.errors import PaymentProcessorError
from quizecon.payments.packs import HintPack

logger = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


class PaymentProcessor(ABC):
    """Abstract base class for payment processors."""

    @abstractmethod
    async def create_checkout_session(
        self,
        user_id: str,
        pack: HintPack,
        metadata: dict[str, str] | None = None,
    ) -> CheckoutSession:
        """Create a hosted checkout for ``pack``. Raises PaymentProcessorError."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""


class StripeCheckoutProcessor(PaymentProcessor):
    """Checkout Sessions over the processor's form-encoded REST API, via httpx."""

    def __init__(
        self,
        secret_key: str,
        price_ids: dict[str, str],
        success_url: str,
        cancel_url: str,
        base_url: str = "https://api.stripe.com/v1",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.price_ids = price_ids
        self.success_url = success_url
        self.cancel_url = cancel_url
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=DEFAULT_TIMEOUT_SECONDS,
            headers={"Authorization": f"Bearer {secret_key}"},
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> StripeCheckoutProcessor:
        return cls(
            secret_key=settings.payment_secret_key,
            price_ids=settings.payment_price_ids,
            success_url=settings.checkout_success_url,
            cancel_url=settings.checkout_cancel_url,
            base_url=settings.payment_api_base_url,
        )

    def _form(self, user_id: str, pack: HintPack, metadata: dict[str, str]) -> dict[str, Any]:
        price_id = self.price_ids.get(pack.key)
        if not price_id:
            raise PaymentProcessorError(f"No processor price configured for {pack.key}")
        form: dict[str, Any] = {
            "mode": "payment",
            "success_url": self.success_url,
            "cancel_url": self.cancel_url,
            "client_reference_id": user_id,
            "line_items[0][price]": price_id,
            "line_items[0][quantity]": "1",
            "metadata[user_id]": user_id,
            "metadata[pack_key]": pack.key,
            "metadata[quantity]": str(pack.quantity),
        }
        for key, value in metadata.items():
            form[f"metadata[{key}]"] = value
        return form

    async def create_checkout_session(
        self,
        user_id: str,
        pack: HintPack,
        metadata: dict[str, str] | None = None,
    ) -> CheckoutSession:
        form = self._form(user_id, pack, metadata or {})
        try:
            response = await self._client.post("/checkout/sessions", data=form)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "checkout_session_failed",
                user_id=user_id,
                pack_key=pack.key,
                status=exc.response.status_code,
            )
            raise PaymentProcessorError("Payment processor rejected the checkout request") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("checkout_session_failed", user_id=user_id, pack_key=pack.key, error=str(exc))
            raise PaymentProcessorError("Payment processor unavailable") from exc

        session_id = body.get("id")
        url = body.get("url")
        if not session_id or not url:
            raise PaymentProcessorError("Payment processor returned an incomplete checkout session")
        return CheckoutSession(id=session_id, url=url)

    async def aclose(self) -> None:
        await self._client.aclose()
