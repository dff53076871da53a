# app/api/routers/orders.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import get_current_user_id, get_payment_service, get_session_cart_id
from app.data.database import get_db
from app.domain.errors import ConcurrentModification, NotFound, PaymentProviderError
from app.domain.schemas import CheckoutSessionOut, OrderDetailOut, OrderResult, PaymentSuccessOut
from app.services.order_service import OrderService
from app.services.payment_service import PaymentIntentService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session):
    return OrderService(db)


@router.post("/", response_model=OrderResult)
def create_order(
    user_id: int = Depends(get_current_user_id),
    session_cart_id: str = Depends(get_session_cart_id),
    db: Session = Depends(get_db),
):
    """
    Tworzy zamówienie z koszyka zalogowanego usera.
    Brakujacy krok checkoutu -> success False + redirect_to.
    """
    svc = get_service(db)
    try:
        return svc.create_order(user_id, session_cart_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConcurrentModification as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/{order_id}", response_model=OrderDetailOut)
def get_order(
    order_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    payment_service: PaymentIntentService = Depends(get_payment_service),
):
    """
    Pobiera szczegóły zamówienia, dla Stripe razem z client_secret.
    """
    svc = get_service(db)
    try:
        return svc.get_order_page(order_id, user_id, payment_service)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{order_id}/stripe-checkout", response_model=CheckoutSessionOut)
def create_stripe_checkout(
    order_id: int,
    user_id: int = Depends(get_current_user_id),
    payment_service: PaymentIntentService = Depends(get_payment_service),
):
    try:
        return payment_service.create_checkout_session(order_id, user_id)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PaymentProviderError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/{order_id}/stripe-payment-success", response_model=PaymentSuccessOut)
def stripe_payment_success(
    order_id: int,
    payment_intent: str | None = Query(default=None),
    session_id: str | None = Query(default=None),
    user_id: int = Depends(get_current_user_id),
    payment_service: PaymentIntentService = Depends(get_payment_service),
):
    try:
        return payment_service.verify_payment_success(
            order_id, user_id, payment_intent_id=payment_intent, session_id=session_id
        )
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PaymentProviderError as e:
        raise HTTPException(status_code=502, detail=str(e))
