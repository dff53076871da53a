# app/services/product_client.py
import requests

from app.domain.errors import NotFound
from app.utils.retry import http_retry
from app.utils.settings import PRODUCT_SERVICE_URL
from app.utils.logging import get_logger

logger = get_logger(__name__)


class ProductClient:
    """
    Katalog produktow (osobny serwis). Koszyk tylko czyta stock/nazwe/slug/cene/zdjecie,
    nigdy nie zmienia stanu magazynu.
    """

    def __init__(self, base_url: str | None = None, timeout: int = 2):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    def fetch_product(self, product_id: int) -> dict:
        url = f"{self.base_url}/products/{product_id}"
        logger.info(f"ProductClient GET {url}")

        resp = self._get(url)
        if resp.status_code == 404:
            raise NotFound("Produkt nie istnieje")
        resp.raise_for_status()
        return resp.json()

    @http_retry()
    def _get(self, url: str) -> requests.Response:
        return requests.get(url, timeout=self.timeout)
