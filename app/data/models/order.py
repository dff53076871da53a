from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Boolean, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from app.data.database import Base


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # snapshot adresu z momentu zamowienia, nie referencja do usera
    shipping_address = Column(JSON, nullable=False)
    payment_method = Column(String(32), nullable=False)

    items_price = Column(Numeric(12, 2), nullable=False)
    shipping_price = Column(Numeric(12, 2), nullable=False)
    tax_price = Column(Numeric(12, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)

    is_paid = Column(Boolean, nullable=False, default=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    is_delivered = Column(Boolean, nullable=False, default=False)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    # {provider_reference_id, status, payer_email, amount_paid}
    payment_result = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, nullable=False)

    # kopia danych produktu z koszyka, zmiany produktu pozniej jej nie dotykaja
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    image = Column(String, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    qty = Column(Integer, nullable=False)

    order = relationship("OrderModel", back_populates="items")

    __table_args__ = (UniqueConstraint("order_id", "product_id", name="u_order_product"),)
