# app/repos/cart_repo.py
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import select, update, delete
from sqlalchemy.orm import Session

from app.data.models.cart import CartModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart(self, cart_id: int) -> CartModel | None:
        return self.db.get(CartModel, cart_id)

    def get_cart_by_user(self, user_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.user_id == user_id)
        ).scalar_one_or_none()

    def get_cart_by_session(self, session_cart_id: str) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.session_cart_id == session_cart_id)
        ).scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        # flush bez commita, commit robi serwis (unique na session_cart_id/user_id wybucha tutaj)
        self.db.add(cart)
        self.db.flush()
        return cart

    def update_cart_version(self, cart_id: int, old_version: int, new_data: Dict[str, Any]) -> int:
        """
        UPDATE carts SET ... WHERE id = :id AND version = :old_version
        Zwraca rowcount, 0 = ktos nas wyprzedzil.
        """
        values = {"updated_at": datetime.now(timezone.utc), **new_data}
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_cart(self, cart_id: int) -> int:
        result = self.db.execute(
            delete(CartModel)
            .where(CartModel.id == cart_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def flush(self):
        self.db.flush()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
