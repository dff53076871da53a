# app/services/stripe_gateway.py
from typing import Any, Dict

import stripe

from app.domain.errors import InvalidWebhookSignature, PaymentProviderError
from app.utils import settings
from app.utils.logging import get_logger

logger = get_logger(__name__)

WEBHOOK_TOLERANCE_SECONDS = 300


def configure_stripe() -> None:
    """Klucz API + timeout klienta HTTP. Wolane raz przy starcie aplikacji."""
    if settings.STRIPE_SECRET_KEY:
        stripe.api_key = settings.STRIPE_SECRET_KEY
    else:
        logger.warning("Brak STRIPE_SECRET_KEY, platnosci Stripe nie beda dzialac")

    # kazde wywolanie Stripe ma twardy limit czasu, sdk sam ponawia bledy sieci
    stripe.default_http_client = stripe.RequestsClient(timeout=settings.STRIPE_TIMEOUT_SECONDS)
    stripe.max_network_retries = 2


def _intent_dict(intent) -> Dict[str, Any]:
    metadata = getattr(intent, "metadata", None)
    return {
        "id": intent.id,
        "client_secret": getattr(intent, "client_secret", None),
        "amount": getattr(intent, "amount", None),
        "currency": getattr(intent, "currency", None),
        "status": getattr(intent, "status", None),
        "order_id": getattr(metadata, "order_id", None) if metadata is not None else None,
    }


class StripeGateway:
    """
    Cienka warstwa na SDK Stripe. Zwraca zwykle dicty, bledy Stripe -> PaymentProviderError.
    """

    def create_payment_intent(self, amount: int, currency: str, order_id: int) -> Dict[str, Any]:
        logger.info(f"Stripe PaymentIntent.create order={order_id} amount={amount} {currency}")
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                metadata={"order_id": str(order_id)},
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error tworzenia PaymentIntent dla zamowienia {order_id}: {e}")
            raise PaymentProviderError(f"Nie udalo sie utworzyc platnosci: {e}") from e
        return _intent_dict(intent)

    def retrieve_payment_intent(self, intent_id: str) -> Dict[str, Any]:
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id)
        except stripe.StripeError as e:
            raise PaymentProviderError(f"Nie udalo sie pobrac platnosci {intent_id}: {e}") from e
        return _intent_dict(intent)

    def create_checkout_session(
        self,
        order_id: int,
        line_items: list,
        success_url: str,
        cancel_url: str,
    ) -> Dict[str, Any]:
        logger.info(f"Stripe checkout.Session.create order={order_id}")
        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                line_items=line_items,
                success_url=success_url,
                cancel_url=cancel_url,
                metadata={"order_id": str(order_id)},
                # webhook charge.succeeded czyta order_id z metadanych intentu
                payment_intent_data={"metadata": {"order_id": str(order_id)}},
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error tworzenia checkout session dla zamowienia {order_id}: {e}")
            raise PaymentProviderError(f"Nie udalo sie utworzyc sesji platnosci: {e}") from e
        return {"id": session.id, "url": session.url}

    def retrieve_checkout_session(self, session_id: str) -> Dict[str, Any]:
        try:
            session = stripe.checkout.Session.retrieve(session_id)
        except stripe.StripeError as e:
            raise PaymentProviderError(f"Nie udalo sie pobrac sesji {session_id}: {e}") from e
        metadata = getattr(session, "metadata", None)
        payment_intent = getattr(session, "payment_intent", None)
        if payment_intent is not None and not isinstance(payment_intent, str):
            payment_intent = payment_intent.id
        return {
            "id": session.id,
            "payment_status": getattr(session, "payment_status", None),
            "payment_intent": payment_intent,
            "order_id": getattr(metadata, "order_id", None) if metadata is not None else None,
        }

    def verify_webhook(self, payload: bytes, sig_header: str | None, secret: str) -> None:
        """HMAC-SHA256 naglowka Stripe-Signature (stala czasowo porownanie, tolerancja 300s)."""
        if not sig_header:
            raise InvalidWebhookSignature("Brak naglowka Stripe-Signature")
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"), sig_header, secret, WEBHOOK_TOLERANCE_SECONDS
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
            raise InvalidWebhookSignature("Niepoprawny podpis webhooka") from e
