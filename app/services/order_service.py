# app/services/order_service.py
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy.orm import Session

from app.data.models.cart import CartModel
from app.data.models.order import OrderModel, OrderItemModel
from app.domain.errors import ConcurrentModification, NotFound, PaymentProviderError
from app.domain.money import ZERO, to_fixed_string
from app.repos.cart_repo import CartRepo
from app.repos.order_repo import OrderRepo
from app.repos.user_repo import UserRepo
from app.utils.logging import get_logger

logger = get_logger(__name__)


class OrderService:
    """
    Serwis odpowiedzialny za domenę zamówień.
    Separacja od CartService, koszyk czytamy i czyscimy tylko przez CartRepo.
    """

    def __init__(self, db: Session):
        self.repo = OrderRepo(db)
        self.cart_repo = CartRepo(db)
        self.user_repo = UserRepo(db)

    def create_order(self, user_id: int, session_cart_id: str | None = None) -> Dict[str, Any]:
        """
        Use Case: Tworzenie zamówienia z koszyka.

        1. Sprawdza kroki checkoutu (koszyk, adres, metoda platnosci), brak -> redirect
        2. Jedna transakcja: zamowienie + pozycje + wyczyszczenie koszyka
        3. Konflikt wersji koszyka albo jakikolwiek blad -> rollback calosci
        """
        user = self.user_repo.get_user(user_id)
        if not user:
            raise NotFound("Użytkownik nie istnieje")

        cart = self._find_cart(user_id, session_cart_id)
        if not cart or not cart.items:
            return {"success": False, "message": "Koszyk jest pusty", "redirect_to": "/cart"}
        if not user.address:
            return {"success": False, "message": "Brak adresu dostawy", "redirect_to": "/shipping-address"}
        if not user.payment_method:
            return {"success": False, "message": "Brak metody płatności", "redirect_to": "/payment-method"}

        try:
            order = self.repo.add_order(OrderModel(
                user_id=user_id,
                shipping_address=dict(user.address),
                payment_method=user.payment_method,
                items_price=cart.items_price,
                shipping_price=cart.shipping_price,
                tax_price=cart.tax_price,
                total_price=cart.total_price,
                is_paid=False,
                is_delivered=False,
            ))
            order_id = order.id

            # kopia pozycji koszyka, nie aktualnych danych produktu
            for line in cart.items:
                self.repo.add_order_item(OrderItemModel(
                    order_id=order_id,
                    product_id=line["product_id"],
                    name=line["name"],
                    slug=line["slug"],
                    image=line.get("image"),
                    price=Decimal(line["price"]),
                    qty=line["qty"],
                ))

            # czyszczenie koszyka z ta sama wersja ktora widzielismy przy snapshocie
            cleared = {
                "items": [],
                "items_price": ZERO,
                "shipping_price": ZERO,
                "tax_price": ZERO,
                "total_price": ZERO,
                "version": cart.version + 1,
            }
            if cart.user_id is None:
                # anonimowy koszyk z tej przegladarki (np. merge przy logowaniu sie nie udal) -> przejmujemy
                cleared.update({"user_id": user_id, "session_cart_id": None})
            rowcount = self.cart_repo.update_cart_version(
                cart_id=cart.id,
                old_version=cart.version,
                new_data=cleared,
            )
            if rowcount == 0:
                raise ConcurrentModification("Koszyk zmienił się w trakcie składania zamówienia")

            self.repo.commit()
        except Exception:
            self.repo.rollback()
            logger.exception(f"Tworzenie zamowienia dla usera {user_id} nieudane, rollback")
            raise

        logger.info(f"Order {order_id} created from cart {cart.id}")
        return {
            "success": True,
            "message": "Zamówienie utworzone",
            "redirect_to": f"/order/{order_id}",
            "order_id": order_id,
        }

    def get_order(self, order_id: int, user_id: int) -> Dict[str, Any]:
        """
        Use Case: Pobranie zamówienia (Query).
        """
        order = self.repo.get_order(order_id)

        if not order:
            raise NotFound("Zamówienie nie istnieje")

        if order.user_id != user_id:
            raise PermissionError("Brak dostępu do zamówienia")

        return self._to_dict(order)

    def get_order_page(self, order_id: int, user_id: int, payment_service) -> Dict[str, Any]:
        """
        Zamowienie + client_secret dla Stripe Elements. Awaria Stripe nie wywala strony,
        tylko wylacza platnosc (payment_available = False).
        """
        order = self.get_order(order_id, user_id)
        order["stripe_client_secret"] = None
        order["payment_available"] = True

        if order["payment_method"] == "Stripe" and not order["is_paid"]:
            try:
                order["stripe_client_secret"] = payment_service.get_or_create_payment_intent(
                    order_id, order["total_price"]
                )
            except PaymentProviderError as e:
                logger.error(f"Platnosc dla zamowienia {order_id} niedostepna: {e}")
                order["payment_available"] = False
        return order

    def _find_cart(self, user_id: int, session_cart_id: str | None) -> CartModel | None:
        # ta sama regula co CartService.get_cart, zeby strona koszyka i checkout widzialy ten sam koszyk
        cart = self.cart_repo.get_cart_by_user(user_id)
        if cart or not session_cart_id:
            return cart
        cart = self.cart_repo.get_cart_by_session(session_cart_id)
        if cart and cart.user_id is None:
            return cart
        return None

    @staticmethod
    def _to_dict(order: OrderModel) -> Dict[str, Any]:
        return {
            "id": order.id,
            "user_id": order.user_id,
            "shipping_address": order.shipping_address,
            "payment_method": order.payment_method,
            "items": [
                {
                    "product_id": i.product_id,
                    "name": i.name,
                    "slug": i.slug,
                    "image": i.image,
                    "price": to_fixed_string(i.price),
                    "qty": i.qty,
                }
                for i in order.items
            ],
            "items_price": to_fixed_string(order.items_price),
            "shipping_price": to_fixed_string(order.shipping_price),
            "tax_price": to_fixed_string(order.tax_price),
            "total_price": to_fixed_string(order.total_price),
            "is_paid": order.is_paid,
            "paid_at": order.paid_at,
            "is_delivered": order.is_delivered,
            "delivered_at": order.delivered_at,
            "payment_result": order.payment_result,
            "created_at": order.created_at,
        }
