from decimal import Decimal
from typing import Dict, Any, List

import requests
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.data.models.cart import CartModel
from app.domain.errors import ConcurrentModification, NotFound, OutOfStock
from app.domain.identity import CartIdentity
from app.domain.money import calc_prices, to_fixed_string
from app.repos.cart_repo import CartRepo
from app.services.product_client import ProductClient
from app.services.revalidation_service import RevalidationService
from app.utils.retry import conflict_retry
from app.utils import settings
from app.utils.logging import get_logger

logger = get_logger(__name__)

MERGE_POLICIES = ("replace", "merge")


def _totals(items: List[Dict[str, Any]]) -> Dict[str, Decimal]:
    return {k: Decimal(v) for k, v in calc_prices(items).items()}


class CartService:
    """
    Koszyk: commands (add, remove, merge przy logowaniu) i query (get).

    Kazda zmiana to read-modify-write calej listy pozycji. Lista + 4 sumy + version
    ida jednym UPDATE ... WHERE version = :stara, przy konflikcie cala operacja
    jest powtarzana (conflict_retry), po wyczerpaniu prob ConcurrentModification.
    """

    def __init__(
        self,
        db: Session,
        product_client: ProductClient,
        revalidation_service: RevalidationService,
        merge_policy: str | None = None,
    ):
        self.repo = CartRepo(db)
        self.product_client = product_client
        self.revalidation_service = revalidation_service
        self.merge_policy = merge_policy or settings.CART_MERGE_POLICY
        if self.merge_policy not in MERGE_POLICIES:
            raise ValueError(f"Nieznana polityka laczenia koszykow: {self.merge_policy}")

    #query - odczyt
    def get_cart(self, identity: CartIdentity) -> Dict[str, Any] | None:
        # brak koszyka to nie blad, UI traktuje to jak pusty koszyk
        cart = self._find_cart(identity)
        if not cart:
            return None
        return self._to_dict(cart)

    #commands
    def add_item(self, identity: CartIdentity, product_id: int, qty: int = 1) -> Dict[str, Any]:
        try:
            message = self._add_item(identity, product_id, qty)
            return {"success": True, "message": message}
        except (ValueError, ConcurrentModification) as e:
            self.repo.rollback()
            logger.warning(f"Nie dodano produktu {product_id} do koszyka: {e}")
            return {"success": False, "message": str(e)}
        except requests.RequestException as e:
            self.repo.rollback()
            logger.error(f"Katalog produktow niedostepny: {e}")
            return {"success": False, "message": "Katalog produktow chwilowo niedostepny"}

    def remove_item(self, identity: CartIdentity, product_id: int) -> Dict[str, Any]:
        try:
            message = self._remove_item(identity, product_id)
            return {"success": True, "message": message}
        except (ValueError, ConcurrentModification) as e:
            self.repo.rollback()
            logger.warning(f"Nie usunieto produktu {product_id} z koszyka: {e}")
            return {"success": False, "message": str(e)}

    def merge_on_sign_in(self, session_cart_id: str | None, user_id: int) -> bool:
        """
        Wolane raz przy logowaniu. Blad tutaj nie moze zablokowac logowania:
        logujemy, rollback i lecimy dalej.
        """
        if not session_cart_id:
            return False
        try:
            return self._merge(session_cart_id, user_id)
        except Exception:
            self.repo.rollback()
            logger.exception(f"Laczenie koszyka sesji {session_cart_id} z userem {user_id} nieudane")
            return False

    @conflict_retry()
    def _add_item(self, identity: CartIdentity, product_id: int, qty: int) -> str:
        if qty <= 0:
            raise ValueError("Ilosc musi byc wieksza niz 0")
        if identity.user_id is None and not identity.session_cart_id:
            raise ValueError("Brak sesji koszyka")

        cart = self._find_cart(identity)

        # walidacja produktu w katalogu (istnienie, stock, cena)
        logger.info(f"Pobieranie danych produktu {product_id} z product-service")
        product = self.product_client.fetch_product(product_id)
        stock = int(product.get("stock") or 0)
        name = product["name"]

        if cart is None:
            if stock < qty:
                raise OutOfStock(f"Brak wystarczajacej ilosci produktu {name}")
            line = self._line_from_product(product, qty)
            created = self._create_cart(identity, [line])
            self.repo.commit()
            logger.info(f"Utworzono koszyk {created.id} z produktem {product_id}")
            self.revalidation_service.revalidate_product(line["slug"])
            return f"{name} dodany do koszyka"

        items = [dict(i) for i in cart.items or []]
        existing = next((i for i in items if i["product_id"] == product_id), None)

        if existing:
            if stock < existing["qty"] + 1:
                raise OutOfStock(f"Brak wystarczajacej ilosci produktu {name}")
            logger.info(
                f"Produkt {product_id} juz jest w koszyku {cart.id}, zwiekszam ilosc "
                f"z {existing['qty']} do {existing['qty'] + 1}"
            )
            existing["qty"] += 1
            slug = existing["slug"]
            message = f"{name} zaktualizowany w koszyku"
        else:
            if stock < qty:
                raise OutOfStock(f"Brak wystarczajacej ilosci produktu {name}")
            line = self._line_from_product(product, qty)
            items.append(line)
            slug = line["slug"]
            message = f"{name} dodany do koszyka"

        self._write_items(cart, items, identity)
        self.repo.commit()

        logger.info(f"Koszyk {cart.id} zapisany, nowa wersja: {cart.version + 1}")
        self.revalidation_service.revalidate_product(slug)
        return message

    @conflict_retry()
    def _remove_item(self, identity: CartIdentity, product_id: int) -> str:
        cart = self._find_cart(identity)
        if not cart:
            raise NotFound("Koszyk nie istnieje")

        items = [dict(i) for i in cart.items or []]
        existing = next((i for i in items if i["product_id"] == product_id), None)
        if not existing:
            raise NotFound("Produktu nie ma w koszyku")

        if existing["qty"] == 1:
            items = [i for i in items if i["product_id"] != product_id]
        else:
            existing["qty"] -= 1

        self._write_items(cart, items, identity)
        self.repo.commit()

        logger.info(f"Produkt {product_id} usuniety z koszyka {cart.id}, nowa wersja: {cart.version + 1}")
        self.revalidation_service.revalidate_product(existing["slug"])
        return f"{existing['name']} usuniety z koszyka"

    @conflict_retry()
    def _merge(self, session_cart_id: str, user_id: int) -> bool:
        session_cart = self.repo.get_cart_by_session(session_cart_id)
        if not session_cart:
            logger.info(f"Brak koszyka dla sesji {session_cart_id}, nic do laczenia")
            return False

        if session_cart.user_id is not None:
            if session_cart.user_id != user_id:
                # nie przepinamy cudzego koszyka
                logger.warning(
                    f"Koszyk sesji {session_cart_id} nalezy do usera {session_cart.user_id}, pomijam"
                )
            return False

        user_cart = self.repo.get_cart_by_user(user_id)

        if user_cart is None:
            self._rebind(session_cart, user_id)
            self.repo.commit()
            logger.info(f"Koszyk {session_cart.id} przepiety na usera {user_id}")
            return True

        if self.merge_policy == "merge":
            items = self._merge_items(user_cart.items or [], session_cart.items or [])
            self._update_or_conflict(
                user_cart,
                {"items": items, **_totals(items), "version": user_cart.version + 1},
            )
            self.repo.delete_cart(session_cart.id)
            self.repo.commit()
            logger.info(f"Pozycje koszyka {session_cart.id} dolaczone do koszyka {user_cart.id} usera {user_id}")
            return True

        # replace: stary koszyk usera wylatuje, koszyk sesji zostaje koszykiem usera
        self.repo.delete_cart(user_cart.id)
        self._rebind(session_cart, user_id)
        self.repo.commit()
        logger.info(
            f"Koszyk {user_cart.id} usera {user_id} usuniety, koszyk sesji {session_cart.id} przepiety"
        )
        return True

    def _merge_items(self, user_items: List[Dict[str, Any]], session_items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Suma ilosci per produkt, przycieta do aktualnego stocku. Pozycje bez stocku odpadaja."""
        merged: Dict[int, Dict[str, Any]] = {}
        for item in list(user_items) + list(session_items):
            current = merged.get(item["product_id"])
            if current:
                # dane pozycji (cena, nazwa) bierzemy z nowszego koszyka sesji
                merged[item["product_id"]] = {**item, "qty": current["qty"] + item["qty"]}
            else:
                merged[item["product_id"]] = dict(item)

        result = []
        for product_id, item in merged.items():
            stock = int(self.product_client.fetch_product(product_id).get("stock") or 0)
            qty = min(item["qty"], stock)
            if qty <= 0:
                logger.info(f"Produkt {product_id} bez stocku, pomijam przy laczeniu")
                continue
            result.append({**item, "qty": qty})
        return result

    def _find_cart(self, identity: CartIdentity) -> CartModel | None:
        if identity.user_id is not None:
            cart = self.repo.get_cart_by_user(identity.user_id)
            if cart:
                return cart
        if identity.session_cart_id:
            cart = self.repo.get_cart_by_session(identity.session_cart_id)
            # koszyk sesji przypiety do usera widzi tylko ten user
            if cart and (cart.user_id is None or cart.user_id == identity.user_id):
                return cart
        return None

    def _create_cart(self, identity: CartIdentity, items: List[Dict[str, Any]]) -> CartModel:
        cart = CartModel(
            user_id=identity.user_id,
            session_cart_id=None if identity.user_id is not None else identity.session_cart_id,
            items=items,
            version=1,
            **_totals(items),
        )
        try:
            return self.repo.create_cart(cart)
        except IntegrityError:
            # dwa requesty naraz tworza koszyk dla tej samej sesji/usera
            self.repo.rollback()
            raise ConcurrentModification("Koszyk zostal utworzony rownolegle przez inny request")

    def _write_items(self, cart: CartModel, items: List[Dict[str, Any]], identity: CartIdentity):
        new_data = {"items": items, **_totals(items), "version": cart.version + 1}
        if identity.user_id is not None and cart.user_id is None:
            # zalogowany user pisze do anonimowego koszyka z tej przegladarki -> przejmuje go
            new_data.update({"user_id": identity.user_id, "session_cart_id": None})
        self._update_or_conflict(cart, new_data)

    def _rebind(self, cart: CartModel, user_id: int):
        self._update_or_conflict(
            cart,
            {"user_id": user_id, "session_cart_id": None, "version": cart.version + 1},
        )

    def _update_or_conflict(self, cart: CartModel, new_data: Dict[str, Any]):
        # Optimistic locking warunek na wersje
        # np w bazie update set version 2 where id 1 and version 1
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data=new_data,
        )
        if rowcount == 0:
            self.repo.rollback()
            logger.warning(f"Konflikt wersji koszyka {cart.id} (wersja {cart.version})")
            raise ConcurrentModification(
                "Konflikt wspolbieznosci - koszyk zostal zmodyfikowany przez inna operacje"
            )

    @staticmethod
    def _line_from_product(product: Dict[str, Any], qty: int) -> Dict[str, Any]:
        images = product.get("images") or []
        return {
            "product_id": product["id"],
            "name": product["name"],
            "slug": product["slug"],
            "price": to_fixed_string(product["price"]),
            "qty": qty,
            "image": product.get("image") or (images[0] if images else None),
        }

    @staticmethod
    def _to_dict(cart: CartModel) -> Dict[str, Any]:
        #dict przyksztalcany w jsona, kwoty jako stringi "0.00"
        return {
            "id": cart.id,
            "user_id": cart.user_id,
            "session_cart_id": cart.session_cart_id,
            "items": [dict(i) for i in cart.items or []],
            "items_price": to_fixed_string(cart.items_price),
            "shipping_price": to_fixed_string(cart.shipping_price),
            "tax_price": to_fixed_string(cart.tax_price),
            "total_price": to_fixed_string(cart.total_price),
            "version": cart.version,
        }
