from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.data.models.user import UserModel
from app.domain.errors import NotFound
from app.repos.user_repo import UserRepo
from app.domain.schemas import AddressIn, UserCreate, UserRead
from app.utils.settings import PAYMENT_METHODS
from app.utils.logging import get_logger

logger = get_logger(__name__)


class UserService:
    def __init__(self, db: Session, cart_service=None):
        self.repo = UserRepo(db)
        self.cart_service = cart_service

    def create_user(self, payload: UserCreate) -> UserRead:
        existing = self.repo.get_user(payload.id)
        if existing:
            return UserRead.model_validate(existing)

        user = UserModel(id=payload.id, name=payload.name, email=payload.email)
        try:
            created = self.repo.create_user(user)
        except IntegrityError:
            self.repo.rollback()
            raise ValueError("Email jest już zajęty")
        logger.info(f"Utworzono usera {created.id}")
        return UserRead.model_validate(created)

    def get_user(self, user_id: int) -> UserRead:
        return UserRead.model_validate(self._get(user_id))

    def update_address(self, user_id: int, address: AddressIn) -> UserRead:
        user = self._get(user_id)
        user.address = address.model_dump()
        logger.info(f"User {user_id} zapisal adres dostawy")
        return UserRead.model_validate(self.repo.save(user))

    def update_payment_method(self, user_id: int, method: str) -> UserRead:
        if method not in PAYMENT_METHODS:
            raise ValueError(f"Nieobsługiwana metoda płatności: {method}")
        user = self._get(user_id)
        user.payment_method = method
        logger.info(f"User {user_id} wybral metode platnosci {method}")
        return UserRead.model_validate(self.repo.save(user))

    def sign_in(self, user_id: int, session_cart_id: str | None) -> bool:
        """
        Hook po zalogowaniu (samo uwierzytelnienie jest poza serwisem).
        Przenosi anonimowy koszyk z cookie na usera, blad laczenia nie blokuje logowania.
        """
        self._get(user_id)
        if self.cart_service is None:
            return False
        return self.cart_service.merge_on_sign_in(session_cart_id, user_id)

    def _get(self, user_id: int) -> UserModel:
        user = self.repo.get_user(user_id)
        if not user:
            raise NotFound("User not found")
        return user
