from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from urllib.parse import urlparse

import stripe

from app.core.config import (
    BILLING_CURRENCY,
    STRIPE_CHECKOUT_HOST,
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_TOLERANCE_SECONDS,
)
from app.core.errors import (
    BillingNotConfigured,
    CheckoutCreationFailed,
    InvalidWebhookSignature,
    ValidationError,
)

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class CheckoutRequest:
    external_id: str
    restaurant_slug: str
    restaurant_name: str
    plan_id: str
    plan_name: str
    amount: Decimal
    success_url: str
    cancel_url: str
    plan_description: str = ""
    customer_email: str | None = None
    currency: str = BILLING_CURRENCY

    @property
    def metadata(self) -> dict[str, str]:
        return {
            "restaurantSlug": self.restaurant_slug,
            "planId": self.plan_id,
            "externalId": self.external_id,
        }


@dataclass
class CheckoutSession:
    session_id: str | None
    url: str
    raw: dict[str, Any] = field(default_factory=dict)


class BillingGateway(ABC):
    provider = "unknown"

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Indica se há credenciais para chamar o provedor."""

    @abstractmethod
    def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSession:
        """Cria a sessão de checkout de assinatura mensal no provedor."""


class StripeCheckoutGateway(BillingGateway):
    provider = "stripe"

    def __init__(
        self,
        *,
        secret_key: str = STRIPE_SECRET_KEY,
        checkout_host: str = STRIPE_CHECKOUT_HOST,
    ) -> None:
        self.secret_key = secret_key
        self.checkout_host = checkout_host.lower()

    @property
    def is_configured(self) -> bool:
        return bool(self.secret_key)

    def build_session_params(self, request: CheckoutRequest) -> dict[str, Any]:
        product_data: dict[str, Any] = {"name": request.plan_name}
        if request.plan_description:
            product_data["description"] = request.plan_description
        params: dict[str, Any] = {
            "mode": "subscription",
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
            "client_reference_id": request.external_id,
            "line_items": [
                {
                    "quantity": 1,
                    "price_data": {
                        "currency": request.currency,
                        "unit_amount": to_minor_units(request.amount),
                        "recurring": {"interval": "month"},
                        "product_data": product_data,
                    },
                }
            ],
            "metadata": request.metadata,
            "subscription_data": {"metadata": request.metadata},
        }
        if request.customer_email:
            params["customer_email"] = request.customer_email
        return params

    def is_checkout_url(self, url: Any) -> bool:
        if not isinstance(url, str) or not url:
            return False
        parsed = urlparse(url)
        return parsed.scheme == "https" and (parsed.hostname or "").lower() == self.checkout_host

    def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSession:
        if not self.is_configured:
            raise BillingNotConfigured("Chave do Stripe não configurada.")

        log_extra = {"external_id": request.external_id, "tenant": request.restaurant_slug}
        try:
            session = stripe.checkout.Session.create(api_key=self.secret_key, **self.build_session_params(request))
        except stripe.StripeError as exc:
            status_code = exc.http_status or 502
            logger.warning("Stripe recusou a sessão de checkout status=%s", status_code, extra=log_extra)
            message = exc.user_message or f"Erro ao iniciar a contratação no Stripe (HTTP {status_code})."
            raise CheckoutCreationFailed(message, status_code=status_code, details=exc.json_body) from exc

        checkout_url = getattr(session, "url", None)
        session_id = getattr(session, "id", None)
        if not self.is_checkout_url(checkout_url):
            logger.warning("Resposta do Stripe sem URL de checkout válida url=%s", checkout_url, extra=log_extra)
            raise CheckoutCreationFailed(
                "Resposta do gateway sem URL de checkout válida.",
                details={"id": session_id, "url": checkout_url},
            )

        return CheckoutSession(session_id=session_id, url=checkout_url, raw={"id": session_id, "url": checkout_url})


def verify_webhook_event(
    payload: bytes,
    signature_header: str | None,
    secret: str | None,
    *,
    tolerance_seconds: int = STRIPE_WEBHOOK_TOLERANCE_SECONDS,
) -> None:
    """Valida o cabeçalho ``Stripe-Signature`` com o SDK do Stripe."""
    if not signature_header or not secret:
        raise InvalidWebhookSignature()
    try:
        stripe.Webhook.construct_event(payload, signature_header, secret, tolerance=tolerance_seconds)
    except stripe.SignatureVerificationError as exc:
        raise InvalidWebhookSignature() from exc
    except ValueError as exc:
        raise ValidationError("Payload JSON inválido.") from exc
