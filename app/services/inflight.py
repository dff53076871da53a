# app/services/inflight.py
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeout, wait
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable

from app.domain.errors import PaymentProviderError
from app.utils import settings
from app.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class _Entry:
    fingerprint: Any
    future: Future


class InFlightRegistry:
    """
    Deduplikacja rownoleglych wywolan w obrebie procesu: klucz -> Future.

    Pierwszy wolajacy wykonuje fn, kolejni z tym samym kluczem i fingerprintem
    czekaja na ten sam wynik (max wait_seconds). Blad -> wpis usuwany od razu,
    sukces -> wpis zyje jeszcze grace_seconds. Zakonczony wpis z innym
    fingerprintem (np. inna kwota zamowienia) nie jest uzywany ponownie.
    """

    def __init__(self, grace_seconds: float | None = None, wait_seconds: float | None = None):
        self.grace_seconds = settings.PAYMENT_INTENT_GRACE_SECONDS if grace_seconds is None else grace_seconds
        self.wait_seconds = settings.PAYMENT_INTENT_WAIT_SECONDS if wait_seconds is None else wait_seconds
        self._lock = threading.Lock()
        self._entries: Dict[Hashable, _Entry] = {}

    def run(self, key: Hashable, fingerprint: Any, fn: Callable[[], Any]) -> Any:
        while True:
            with self._lock:
                entry = self._entries.get(key)
                if entry is None or (entry.future.done() and entry.fingerprint != fingerprint):
                    future: Future = Future()
                    self._entries[key] = _Entry(fingerprint, future)
                    break

            if entry.fingerprint == fingerprint:
                logger.info(f"Wywolanie dla {key} juz trwa, czekam na wynik")
                try:
                    return entry.future.result(timeout=self.wait_seconds)
                except FutureTimeout:
                    raise PaymentProviderError(f"Przekroczony czas oczekiwania na platnosc dla {key}")

            # w toku jest wywolanie dla innej kwoty, czekamy az sie skonczy i probujemy od nowa
            logger.info(f"Wywolanie dla {key} z inna kwota w toku, czekam")
            done, _ = wait([entry.future], timeout=self.wait_seconds)
            if not done:
                raise PaymentProviderError(f"Przekroczony czas oczekiwania na platnosc dla {key}")

        try:
            result = fn()
        except BaseException as e:
            future.set_exception(e)
            self._discard(key, future)
            raise

        future.set_result(result)
        timer = threading.Timer(self.grace_seconds, self._discard, args=(key, future))
        timer.daemon = True
        timer.start()
        return result

    def _discard(self, key: Hashable, future: Future):
        with self._lock:
            entry = self._entries.get(key)
            # tylko wlasny wpis, nowszy mogl go juz zastapic
            if entry is not None and entry.future is future:
                del self._entries[key]

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def clear(self):
        with self._lock:
            self._entries.clear()


_registry = InFlightRegistry()


def get_inflight_registry() -> InFlightRegistry:
    return _registry
