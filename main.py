import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

import config
from database import SessionLocal, engine, init_db
from routers import admin_router, checkout_router, payments_router
from services import (
    ExchangeRateProvider,
    FulfillmentScheduler,
    InvoiceService,
    NotificationSink,
    OrderLifecycleManager,
    OrderStore,
)

# Logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("wolfgaming")


def build_lifecycle() -> OrderLifecycleManager:
    """Wire the production collaborators from config."""
    return OrderLifecycleManager(
        store=OrderStore(SessionLocal),
        scheduler=FulfillmentScheduler(),
        invoices=InvoiceService(),
        rates=ExchangeRateProvider(),
        notifier=NotificationSink(),
    )


def create_app(lifecycle: Optional[OrderLifecycleManager] = None, start_background: bool = True) -> FastAPI:
    """
    Build the FastAPI app.

    Tests pass their own lifecycle (fake issuer/notifier, temp database) and
    start_background=False to skip the rate refresher and timer restore.
    """
    lifecycle = lifecycle or build_lifecycle()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if start_background:
            init_db(engine)
            lifecycle.rates.start()
            lifecycle.restore_schedule()
        logger.info("%s server ready on port %s", config.STORE_NAME, config.PORT)
        yield
        lifecycle.scheduler.shutdown()
        if start_background:
            lifecycle.rates.stop()

    # App instance
    app = FastAPI(title=f"{config.STORE_NAME} Checkout", lifespan=lifespan)
    app.state.lifecycle = lifecycle

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount static uploads
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR), name="uploads")

    app.include_router(checkout_router)
    app.include_router(admin_router)
    app.include_router(payments_router)

    @app.get("/health")
    def health():
        return {
            "database": lifecycle.store.ping(),
            "pending_fulfillments": len(lifecycle.scheduler),
            "usd_ils_rate": str(lifecycle.rates.current_rate()),
        }

    # 404 Fallback Middleware
    @app.middleware("http")
    async def not_found_middleware(request: Request, call_next):
        try:
            response = await call_next(request)
            # Only unmatched routes; handlers keep their own 404 bodies
            if response.status_code == 404 and "endpoint" not in request.scope:
                return JSONResponse(status_code=404, content={"error": "Route not found"})
            return response
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=config.PORT, reload=True)
