# app/services/payment_service.py
import uuid
from typing import Any, Dict

from sqlalchemy.orm import Session

from app.domain.errors import NotFound, PaymentProviderError
from app.domain.money import to_minor_units
from app.repos.order_repo import OrderRepo
from app.services.inflight import InFlightRegistry, get_inflight_registry
from app.services.lock_service import LockService
from app.services.stripe_gateway import StripeGateway
from app.utils import settings
from app.utils.logging import get_logger

logger = get_logger(__name__)

# intent w tych stanach mozna jeszcze oplacic, kazdy inny (succeeded, canceled, processing) -> nowy
REUSABLE_INTENT_STATUSES = {"requires_payment_method", "requires_confirmation", "requires_action"}


class PaymentIntentService:
    """
    Jeden aktywny PaymentIntent na zamowienie.

    Rownolegle wejscia na strone zamowienia w tym procesie czekaja na jedno
    wywolanie (InFlightRegistry), miedzy procesami opcjonalnie lock w Redisie.
    """

    def __init__(
        self,
        db: Session,
        gateway: StripeGateway | None = None,
        registry: InFlightRegistry | None = None,
        lock_service: LockService | None = None,
    ):
        self.repo = OrderRepo(db)
        self.gateway = gateway or StripeGateway()
        self.registry = registry or get_inflight_registry()
        if lock_service is None and settings.PAYMENT_INTENT_REDIS_LOCK:
            lock_service = LockService()
        self.lock_service = lock_service

    def get_or_create_payment_intent(self, order_id: int, expected_total) -> str:
        amount = to_minor_units(expected_total)
        return self.registry.run(order_id, amount, lambda: self._reconcile(order_id, amount))

    def create_checkout_session(self, order_id: int, user_id: int) -> Dict[str, Any]:
        """Hostowany Stripe Checkout dla zamowienia (alternatywa dla Elements na stronie zamowienia)."""
        order = self._get_owned_order(order_id, user_id)
        if order.is_paid:
            raise ValueError("Zamówienie jest już opłacone")

        line_items = [
            {
                "quantity": item.qty,
                "price_data": {
                    "currency": settings.PAYMENT_CURRENCY,
                    "unit_amount": to_minor_units(item.price),
                    "product_data": {"name": item.name, **({"images": [item.image]} if item.image else {})},
                },
            }
            for item in order.items
        ]
        session = self.gateway.create_checkout_session(
            order_id=order.id,
            line_items=line_items,
            success_url=(
                f"{settings.SERVER_URL}/order/{order.id}/stripe-payment-success"
                "?session_id={CHECKOUT_SESSION_ID}"
            ),
            cancel_url=f"{settings.SERVER_URL}/order/{order.id}",
        )
        logger.info(f"Checkout session {session['id']} dla zamowienia {order.id}")
        return {"url": session["url"], "session_id": session["id"]}

    def verify_payment_success(
        self,
        order_id: int,
        user_id: int,
        payment_intent_id: str | None = None,
        session_id: str | None = None,
    ) -> Dict[str, Any]:
        """
        Strona powrotu po platnosci. Sam stan zamowienia zmienia tylko webhook,
        tutaj sprawdzamy czy intent nalezy do zamowienia i czy przeszedl.
        """
        order = self._get_owned_order(order_id, user_id)
        order_page = f"/order/{order.id}"

        if not payment_intent_id and session_id:
            payment_intent_id = self.gateway.retrieve_checkout_session(session_id)["payment_intent"]
        if not payment_intent_id:
            return {"success": False, "redirect_to": order_page}

        intent = self.gateway.retrieve_payment_intent(payment_intent_id)
        if intent["order_id"] is None or str(intent["order_id"]) != str(order.id):
            logger.warning(f"Intent {payment_intent_id} nie nalezy do zamowienia {order.id}")
            raise NotFound("Płatność nie należy do tego zamówienia")

        if intent["status"] != "succeeded":
            return {"success": False, "redirect_to": order_page}
        return {"success": True, "redirect_to": order_page}

    def _reconcile(self, order_id: int, amount: int) -> str:
        if self.lock_service is None:
            return self._reconcile_order(order_id, amount)

        # miedzy procesami: ten sam mutex co przy rezerwacjach, wlasciciel = losowy token
        key = f"payment_intent:{order_id}:lock"
        owner = uuid.uuid4().hex
        if not self.lock_service.wait_acquire(
            key, owner, ttl=settings.PAYMENT_INTENT_LOCK_TTL, timeout=settings.PAYMENT_INTENT_WAIT_SECONDS
        ):
            raise PaymentProviderError(f"Inny proces tworzy platnosc dla zamowienia {order_id}")
        try:
            return self._reconcile_order(order_id, amount)
        finally:
            self.lock_service.release(key, owner)

    def _reconcile_order(self, order_id: int, amount: int) -> str:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFound("Zamówienie nie istnieje")
        # inny proces mogl w miedzyczasie zapisac nowy intent
        self.repo.refresh(order)
        if order.is_paid:
            raise ValueError("Zamówienie jest już opłacone")

        reference = (order.payment_result or {}).get("provider_reference_id") or ""
        if reference.startswith("pi_"):
            try:
                intent = self.gateway.retrieve_payment_intent(reference)
                if self._is_reusable(intent, order_id, amount):
                    logger.info(f"Uzywam istniejacego intentu {reference} dla zamowienia {order_id}")
                    return intent["client_secret"]
                logger.info(
                    f"Intent {reference} nieaktualny (status={intent['status']}, amount={intent['amount']}), tworze nowy"
                )
            except PaymentProviderError as e:
                logger.warning(f"Nie udalo sie pobrac intentu {reference}, traktuje jako nieaktualny: {e}")

        intent = self.gateway.create_payment_intent(amount, settings.PAYMENT_CURRENCY, order_id)

        # zapis referencji zanim oddamy client_secret, tylko dla nieoplaconego zamowienia
        updated = self.repo.set_payment_result_if_unpaid(
            order_id,
            {
                "provider_reference_id": intent["id"],
                "status": "pending",
                "payer_email": "",
                "amount_paid": "0.00",
            },
        )
        if updated == 0:
            logger.warning(f"Zamowienie {order_id} oplacone w trakcie tworzenia intentu {intent['id']}")
        else:
            logger.info(f"Intent {intent['id']} zapisany dla zamowienia {order_id}")
        return intent["client_secret"]

    @staticmethod
    def _is_reusable(intent: Dict[str, Any], order_id: int, amount: int) -> bool:
        return (
            intent["id"].startswith("pi_")
            and intent["amount"] == amount
            and intent["currency"] == settings.PAYMENT_CURRENCY
            and str(intent["order_id"]) == str(order_id)
            and intent["status"] in REUSABLE_INTENT_STATUSES
        )

    def _get_owned_order(self, order_id: int, user_id: int):
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFound("Zamówienie nie istnieje")
        if order.user_id != user_id:
            raise PermissionError("Brak dostępu do zamówienia")
        return order
