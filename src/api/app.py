"""
RIA Hunter API application.

Routers are registered user-data first so the literal ``tags``/``notes``/
``links`` segments under ``/api/ria-hunter/profile`` never reach the CIK
profile route.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.errors import deprecated, register_error_handlers
from src.api.routes import billing, credits, health, search, session, user_data
from src.config.logging_config import setup_logger
from src.config.settings import APP_TITLE, DEFAULT_CORS_ORIGINS, config

logger = setup_logger(__name__)

DEPRECATED_ALTERNATIVES = ["/api/ask", "/api/ask/search", "/api/ask/browse"]


def allowed_origins() -> list[str]:
    origins = list(DEFAULT_CORS_ORIGINS)
    origins.extend(o for o in config.CORS_ORIGINS if o not in origins)
    return origins


def create_app() -> FastAPI:
    app = FastAPI(title=APP_TITLE)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Stripe-Signature"],
    )
    register_error_handlers(app)

    app.include_router(user_data.router)
    app.include_router(search.router)
    app.include_router(credits.router)
    app.include_router(billing.router)
    app.include_router(session.router)
    app.include_router(health.router)

    @app.api_route("/api/v1/ria/query", methods=["GET", "POST"], include_in_schema=False)
    async def legacy_query():
        raise deprecated(
            "This endpoint has been deprecated. Use the ask or browse endpoints instead.", DEPRECATED_ALTERNATIVES
        )

    logger.info("%s ready (%s), CORS origins: %s", APP_TITLE, config.ENVIRONMENT, len(allowed_origins()))
    return app


app = create_app()
