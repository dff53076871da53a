# app/domain/errors.py
"""
Bledy domenowe koszyka i checkoutu.
Dziedzicza po ValueError / RuntimeError, zeby routery mogly je lapac tak jak wczesniej.
"""


class NotFound(ValueError):
    """Brak koszyka, pozycji, zamowienia albo usera."""


class OutOfStock(ValueError):
    """Ilosc w koszyku przekroczylaby stan magazynowy."""


class InvalidAmount(ValueError):
    """Wartosc nie jest poprawna nieujemna kwota."""


class InvalidWebhookSignature(ValueError):
    """Podpis webhooka brakujacy albo niepoprawny."""


class ConcurrentModification(RuntimeError):
    """Koszyk zmieniony przez inny request, retry sie wyczerpaly."""


class PaymentProviderError(RuntimeError):
    """Blad po stronie Stripe (API, timeout, siec)."""
