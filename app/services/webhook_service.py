# app/services/webhook_service.py
import json
from datetime import datetime, timezone
from typing import Any, Dict, Tuple

from sqlalchemy.orm import Session

from app.domain.errors import InvalidWebhookSignature
from app.domain.money import to_fixed_string, parse_amount
from app.repos.order_repo import OrderRepo
from app.services.stripe_gateway import StripeGateway
from app.utils import settings
from app.utils.logging import get_logger

logger = get_logger(__name__)


class WebhookService:
    """
    Webhook Stripe -> jedyne miejsce ktore oznacza zamowienie jako oplacone.
    Stripe dostarcza at-least-once, wiec przejscie na is_paid jest compare-and-set.
    """

    def __init__(self, db: Session, gateway: StripeGateway | None = None, secret: str | None = None):
        self.repo = OrderRepo(db)
        self.gateway = gateway or StripeGateway()
        self.secret = settings.STRIPE_WEBHOOK_SECRET if secret is None else secret

    def handle_payment_webhook(self, payload: bytes, sig_header: str | None) -> Tuple[int, Dict[str, Any]]:
        if not self.secret:
            logger.error("Brak STRIPE_WEBHOOK_SECRET, nie mozna zweryfikowac webhooka")
            return 500, {"error": "Webhook secret not configured"}

        try:
            self.gateway.verify_webhook(payload, sig_header, self.secret)
        except InvalidWebhookSignature as e:
            logger.warning(f"Odrzucony webhook Stripe: {e}")
            return 400, {"error": str(e)}

        try:
            event = json.loads(payload)
        except ValueError:
            logger.warning("Webhook Stripe z niepoprawnym JSON")
            return 400, {"error": "Invalid payload"}

        event_type = event.get("type")
        if event_type != "charge.succeeded":
            logger.info(f"Webhook Stripe {event_type} zignorowany")
            return 200, {"message": f"event {event_type} ignored"}

        charge = event.get("data", {}).get("object", {})
        order_id = (charge.get("metadata") or {}).get("order_id")
        if not order_id:
            logger.info(f"charge.succeeded {charge.get('id')} bez order_id w metadanych, pomijam")
            return 200, {"message": "no order_id"}

        try:
            order_id = int(order_id)
        except (TypeError, ValueError):
            # metadane z innego flow na tym samym koncie Stripe, 200 zeby Stripe nie ponawial
            logger.warning(f"charge.succeeded {charge.get('id')} z nieznanym order_id {order_id!r}, pomijam")
            return 200, {"message": "unknown order", "order_id": str(order_id)}

        return 200, self._mark_paid(order_id, charge)

    def _mark_paid(self, order_id: int, charge: Dict[str, Any]) -> Dict[str, Any]:
        billing = charge.get("billing_details") or {}
        payment_result = {
            "provider_reference_id": charge.get("id"),
            "status": "COMPLETED",
            "payer_email": billing.get("email") or "",
            "amount_paid": to_fixed_string(parse_amount(charge.get("amount", 0)) / 100),
        }

        updated = self.repo.mark_paid_if_unpaid(order_id, datetime.now(timezone.utc), payment_result)
        if updated == 0:
            # redelivery albo nieznane zamowienie, w obu przypadkach nic do zrobienia
            logger.info(f"Zamowienie {order_id} juz oplacone albo nie istnieje, webhook bez zmian")
            return {"message": "already paid", "order_id": order_id}

        logger.info(f"Zamowienie {order_id} oplacone, charge {charge.get('id')}")
        return {"message": "Order marked as paid", "order_id": order_id}
