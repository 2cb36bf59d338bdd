"""
API error responses.

Every error body is ``{"error", "code", "detail"}``. ``detail`` carries
diagnostic data and is stripped when running in production.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.config.logging_config import setup_logger
from src.config.settings import config

logger = setup_logger(__name__)

BAD_REQUEST = "BAD_REQUEST"
UNAUTHORIZED = "UNAUTHORIZED"
PAYMENT_REQUIRED = "PAYMENT_REQUIRED"
FORBIDDEN = "FORBIDDEN"
NOT_FOUND = "NOT_FOUND"
CONFLICT = "CONFLICT"
ENDPOINT_DEPRECATED = "ENDPOINT_DEPRECATED"
INTERNAL_ERROR = "INTERNAL_ERROR"
INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"


class ApiError(Exception):
    """``extra`` keys are merged into the body top level and survive production."""

    def __init__(self, status: int, message: str, code: str, detail=None, extra: dict | None = None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.code = code
        self.detail = detail
        self.extra = extra or {}

    def body(self) -> dict:
        body = {"error": self.message, "code": self.code, **self.extra}
        # Deprecation alternatives are shown in every environment.
        if self.detail is not None and (self.code == ENDPOINT_DEPRECATED or not config.is_production):
            body["detail"] = self.detail
        return body


def bad_request(message: str, detail=None) -> ApiError:
    return ApiError(400, message, BAD_REQUEST, detail)


def unauthorized(message: str = "Authentication required", detail=None) -> ApiError:
    return ApiError(401, message, UNAUTHORIZED, detail)


def payment_required(message: str, remaining: int, is_subscriber: bool) -> ApiError:
    return ApiError(
        402,
        message,
        PAYMENT_REQUIRED,
        {"remaining": remaining, "isSubscriber": is_subscriber, "upgradeRequired": True},
    )


def forbidden(message: str = "Access denied", detail=None) -> ApiError:
    return ApiError(403, message, FORBIDDEN, detail)


def not_found(message: str = "Resource not found", detail=None) -> ApiError:
    return ApiError(404, message, NOT_FOUND, detail)


def conflict(message: str, **extra) -> ApiError:
    return ApiError(409, message, CONFLICT, extra=extra)


def insufficient_credits(current: int, requested: int) -> ApiError:
    return ApiError(
        402,
        "Insufficient credits",
        INSUFFICIENT_CREDITS,
        extra={"credits": current, "remaining": current, "requested": requested},
    )


def deprecated(message: str, alternatives: list[str]) -> ApiError:
    return ApiError(410, message, ENDPOINT_DEPRECATED, {"alternatives": alternatives})


def internal_error(message: str = "Internal server error", detail=None) -> ApiError:
    return ApiError(500, message, INTERNAL_ERROR, detail)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    body = exc.body()
    log = logger.error if exc.status >= 500 else logger.warning
    log("API error [%s %s] %s %s: %s", exc.status, exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(body, status_code=exc.status)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    issues = [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]
    return await api_error_handler(request, bad_request("Invalid request body", issues))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return await api_error_handler(request, internal_error(detail=f"{type(exc).__name__}: {exc}"))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
