from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
import logging

from Security.security_config import SECURITY_SETTINGS
from Security.key_management import initialize_encryption
from Security.activity_logging import ActivityLoggingMiddleware
from Security.request_id import RequestIdMiddleware

from .database import engine, Base
from .api_routes import register_api_routes
from .coupon_routes import router as coupon_router
from .error_handlers import register_error_handlers

logger = logging.getLogger("app")


def create_app() -> FastAPI:
    # Fatal when ENCRYPTION_KEY is missing: no request may run without it
    initialize_encryption()
    Base.metadata.create_all(bind=engine, checkfirst=True)

    app = FastAPI(title="Job Application Admin")

    # Outermost last: request id must exist before activity logging reads it
    app.add_middleware(ActivityLoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=SECURITY_SETTINGS["CORS_ORIGINS"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    register_api_routes(app)
    app.include_router(coupon_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    logger.info("application started")
    return app
