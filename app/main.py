# app/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
import uvicorn

from app.data.database import Base, engine
# import modeli przed create_all, zeby tabele byly w Base.metadata
from app.data import models  # noqa: F401
from app.api.routers import users, carts, orders, health, webhooks
from app.services.stripe_gateway import configure_stripe
from app.utils.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Inicjalizacja bazy, tabele: {list(Base.metadata.tables.keys())}")
    Base.metadata.create_all(bind=engine)
    configure_stripe()
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title="Store Checkout Service",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Include routers
    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(webhooks.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
