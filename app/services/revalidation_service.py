# app/services/revalidation_service.py
import requests

from app.celery_worker import celery_app
from app.utils.retry import http_retry
from app.utils.settings import REVALIDATE_URL
from app.utils.logging import get_logger

logger = get_logger(__name__)


class RevalidationService:
    """
    Uniewaznianie cache strony produktu po zmianie koszyka.
    Uzywa Celery, request do koszyka nie czeka na frontend.
    """

    @staticmethod
    def revalidate_product(slug: str):
        # best effort - brak brokera nie moze wywalic zapisanego juz koszyka
        try:
            revalidate_product_page_task.delay(slug)
        except Exception as e:
            logger.warning(f"Nie udalo sie zlecic revalidacji /product/{slug}: {e}")


@http_retry()
def _post_revalidate(path: str):
    resp = requests.post(REVALIDATE_URL, json={"path": path}, timeout=5)
    resp.raise_for_status()


@celery_app.task(name="app.services.revalidation_service.revalidate_product_page_task")
def revalidate_product_page_task(slug: str):
    path = f"/product/{slug}"

    if not REVALIDATE_URL:
        logger.info(f"[REVALIDATE] {path} (brak REVALIDATE_URL, tylko log)")
        return {"path": path, "status": "skipped"}

    _post_revalidate(path)
    logger.info(f"[REVALIDATE] {path} ok")
    return {"path": path, "status": "sent"}
