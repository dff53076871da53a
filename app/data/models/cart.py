#app/data/models/cart.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, JSON

from app.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    # user_id albo session_cart_id (anonimowy koszyk z cookie), user max jeden koszyk
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, unique=True)
    session_cart_id = Column(String(64), nullable=True, unique=True, index=True)

    # lista pozycji [{product_id, name, slug, price, qty, image}], price jako "25.00"
    items = Column(JSON, nullable=False, default=list)

    # sumy zawsze przeliczane z items i zapisywane razem z nimi jednym UPDATE
    items_price = Column(Numeric(12, 2), nullable=False, default=0)
    shipping_price = Column(Numeric(12, 2), nullable=False, default=0)
    tax_price = Column(Numeric(12, 2), nullable=False, default=0)
    total_price = Column(Numeric(12, 2), nullable=False, default=0)

    # optimistic locking
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now)
