# app/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, EmailStr
from typing import Any, Dict, List
from datetime import datetime


class ItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi być > 0)")
    qty: int = Field(1, gt=0, description="Ilość produktu dla nowej pozycji (musi być > 0)")


class ActionResult(BaseModel):
    """Wynik komendy koszyka: success + komunikat dla UI."""

    success: bool
    message: str


class CartItemOut(BaseModel):
    product_id: int
    name: str
    slug: str
    price: str
    qty: int
    image: str | None = None


class CartOut(BaseModel):
    """Schema dla koszyka (response). Kwoty jako stringi z dwoma miejscami po przecinku."""

    id: int | None = None
    user_id: int | None = None
    session_cart_id: str | None = None
    items: List[CartItemOut] = []
    items_price: str = "0.00"
    shipping_price: str = "0.00"
    tax_price: str = "0.00"
    total_price: str = "0.00"
    version: int = 0


class AddressIn(BaseModel):
    """Adres dostawy (krok checkoutu)."""

    full_name: str = Field(..., min_length=3, max_length=100)
    street_address: str = Field(..., min_length=3, max_length=200)
    city: str = Field(..., min_length=2, max_length=100)
    postal_code: str = Field(..., min_length=2, max_length=20)
    country: str = Field(..., min_length=2, max_length=100)


class PaymentMethodIn(BaseModel):
    type: str = Field(..., min_length=1, description="PayPal, Stripe albo CashOnDelivery")


class UserCreate(BaseModel):
    """Schema dla tworzenia użytkownika."""

    id: int = Field(..., gt=0, description="ID użytkownika (musi być > 0)")
    name: str = Field(..., min_length=1, max_length=100, description="Imię użytkownika")
    email: EmailStr | None = None


class UserRead(BaseModel):
    """Schema dla użytkownika (response)."""

    id: int
    name: str
    email: str | None = None
    address: Dict[str, Any] | None = None
    payment_method: str | None = None

    model_config = ConfigDict(from_attributes=True)


class SignInOut(BaseModel):
    user_id: int
    cart_merged: bool


class OrderResult(BaseModel):
    """Wynik skladania zamowienia. Brak kroku checkoutu -> success False + redirect_to."""

    success: bool
    message: str
    redirect_to: str
    order_id: int | None = None


class OrderItemOut(BaseModel):
    product_id: int
    name: str
    slug: str
    image: str | None = None
    price: str
    qty: int


class OrderOut(BaseModel):
    """Schema dla zamówienia (response)."""

    id: int
    user_id: int
    shipping_address: Dict[str, Any]
    payment_method: str
    items: List[OrderItemOut]
    items_price: str
    shipping_price: str
    tax_price: str
    total_price: str
    is_paid: bool
    paid_at: datetime | None = None
    is_delivered: bool
    delivered_at: datetime | None = None
    payment_result: Dict[str, Any] | None = None
    created_at: datetime


class OrderDetailOut(OrderOut):
    stripe_client_secret: str | None = None
    payment_available: bool = True


class CheckoutSessionOut(BaseModel):
    url: str
    session_id: str


class PaymentSuccessOut(BaseModel):
    success: bool
    redirect_to: str
