# app/api/deps.py
import uuid

from fastapi import Depends, Header, HTTPException, Request, Response
from sqlalchemy.orm import Session

from app.data.database import get_db
from app.domain.identity import CartIdentity
from app.services.cart_service import CartService
from app.services.payment_service import PaymentIntentService
from app.services.product_client import ProductClient
from app.services.revalidation_service import RevalidationService
from app.services.stripe_gateway import StripeGateway
from app.utils import settings


#zewnetrzne zaleznosci jako Depends, testy podmieniaja je przez dependency_overrides
def get_product_client() -> ProductClient:
    return ProductClient()


def get_revalidation_service() -> RevalidationService:
    return RevalidationService()


def get_stripe_gateway() -> StripeGateway:
    return StripeGateway()


def get_cart_service(
    db: Session = Depends(get_db),
    product_client: ProductClient = Depends(get_product_client),
    revalidation_service: RevalidationService = Depends(get_revalidation_service),
) -> CartService:
    return CartService(db=db, product_client=product_client, revalidation_service=revalidation_service)


def get_payment_service(
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
) -> PaymentIntentService:
    return PaymentIntentService(db=db, gateway=gateway)


def get_session_cart_id(request: Request, response: Response) -> str:
    """Anonimowy koszyk: cookie sessionCartId, brak -> nowe id (uuid4 hex, rok)."""
    session_cart_id = request.cookies.get(settings.SESSION_CART_COOKIE)
    if not session_cart_id:
        session_cart_id = uuid.uuid4().hex
        response.set_cookie(
            key=settings.SESSION_CART_COOKIE,
            value=session_cart_id,
            max_age=settings.SESSION_CART_COOKIE_MAX_AGE,
            httponly=True,
            secure=settings.COOKIE_SECURE,
            samesite="lax",
            path="/",
        )
    return session_cart_id


def get_optional_user_id(x_user_id: int | None = Header(default=None)) -> int | None:
    # uwierzytelnienie robi gateway przed serwisem, tu tylko odczyt id
    return x_user_id


def get_current_user_id(x_user_id: int | None = Header(default=None)) -> int:
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Wymagane zalogowanie (X-User-Id)")
    return x_user_id


def get_cart_identity(
    user_id: int | None = Depends(get_optional_user_id),
    session_cart_id: str = Depends(get_session_cart_id),
) -> CartIdentity:
    return CartIdentity(user_id=user_id, session_cart_id=session_cart_id)
