#app/api/routers/carts.py
from fastapi import APIRouter, Depends

from app.api.deps import get_cart_identity, get_cart_service
from app.domain.identity import CartIdentity
from app.domain.schemas import ActionResult, CartOut, ItemIn
from app.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartOut)
def get_cart(
    identity: CartIdentity = Depends(get_cart_identity),
    svc: CartService = Depends(get_cart_service),
):
    cart = svc.get_cart(identity)
    if not cart:
        # brak koszyka = pusty koszyk z zerowymi sumami, nie 404
        if identity.user_id is not None:
            return CartOut(user_id=identity.user_id)
        return CartOut(session_cart_id=identity.session_cart_id)
    return cart


#komendy koszyka zawsze 200, wynik w success/message (UI pokazuje toast)
@router.post("/items", response_model=ActionResult)
def add_item(
    payload: ItemIn,
    identity: CartIdentity = Depends(get_cart_identity),
    svc: CartService = Depends(get_cart_service),
):
    return svc.add_item(identity, product_id=payload.product_id, qty=payload.qty)


@router.delete("/items/{product_id}", response_model=ActionResult)
def remove_item(
    product_id: int,
    identity: CartIdentity = Depends(get_cart_identity),
    svc: CartService = Depends(get_cart_service),
):
    return svc.remove_item(identity, product_id)
