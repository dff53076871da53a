from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.api.deps import get_cart_service, get_session_cart_id
from app.data.database import get_db
from app.domain.errors import NotFound
from app.services.cart_service import CartService
from app.services.user_service import UserService
from app.domain.schemas import AddressIn, PaymentMethodIn, SignInOut, UserCreate, UserRead

router = APIRouter(prefix="/users", tags=["users"])

@router.post("/", response_model=UserRead)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    service = UserService(db)
    try:
        return service.create_user(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, db: Session = Depends(get_db)):
    service = UserService(db)
    try:
        return service.get_user(user_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

@router.put("/{user_id}/address", response_model=UserRead)
def update_address(user_id: int, payload: AddressIn, db: Session = Depends(get_db)):
    service = UserService(db)
    try:
        return service.update_address(user_id, payload)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

@router.put("/{user_id}/payment-method", response_model=UserRead)
def update_payment_method(user_id: int, payload: PaymentMethodIn, db: Session = Depends(get_db)):
    service = UserService(db)
    try:
        return service.update_payment_method(user_id, payload.type)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.post("/{user_id}/sign-in", response_model=SignInOut)
def sign_in(
    user_id: int,
    db: Session = Depends(get_db),
    session_cart_id: str = Depends(get_session_cart_id),
    cart_service: CartService = Depends(get_cart_service),
):
    """Hook wolany po udanym logowaniu: przepina koszyk z cookie na usera."""
    service = UserService(db, cart_service=cart_service)
    try:
        merged = service.sign_in(user_id, session_cart_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SignInOut(user_id=user_id, cart_merged=merged)
