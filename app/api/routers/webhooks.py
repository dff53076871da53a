# app/api/routers/webhooks.py
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import get_stripe_gateway
from app.data.database import get_db
from app.services.stripe_gateway import StripeGateway
from app.services.webhook_service import WebhookService

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """
    Webhook Stripe. Podpis liczony z surowego body, dlatego nie parsujemy go jako model.
    """
    payload = await request.body()
    status_code, body = WebhookService(db, gateway=gateway).handle_payment_webhook(payload, stripe_signature)
    return JSONResponse(status_code=status_code, content=body)
