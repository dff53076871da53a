# app/domain/identity.py
from dataclasses import dataclass


@dataclass(frozen=True)
class CartIdentity:
    """
    Kto jest wlascicielem koszyka: zalogowany user albo anonimowa sesja (cookie).
    Przy wyszukiwaniu user_id ma pierwszenstwo.
    """

    user_id: int | None = None
    session_cart_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None
