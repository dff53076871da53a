# app/repos/order_repo.py
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import update
from sqlalchemy.orm import Session
from app.data.models.order import OrderModel, OrderItemModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        # bez commita - zamowienie powstaje w jednej transakcji z pozycjami i czyszczeniem koszyka
        self.db.add(order)
        self.db.flush()
        return order

    def add_order_item(self, item: OrderItemModel) -> OrderItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def refresh(self, order: OrderModel) -> OrderModel:
        self.db.refresh(order)
        return order

    def set_payment_result_if_unpaid(self, order_id: int, payment_result: Dict[str, Any]) -> int:
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.is_paid.is_(False))
            .values(payment_result=payment_result)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount

    def mark_paid_if_unpaid(self, order_id: int, paid_at: datetime, payment_result: Dict[str, Any]) -> int:
        """
        Compare-and-set: UPDATE ... WHERE is_paid = false.
        0 = zamowienie nie istnieje albo juz oplacone (redelivery webhooka).
        """
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.is_paid.is_(False))
            .values(is_paid=True, paid_at=paid_at, payment_result=payment_result)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
