"""Demo session status for the search UI."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from src.api.auth import AuthUser, get_optional_user
from src.config.logging_config import setup_logger
from src.config.settings import config
from src.services.access.limits import DEMO_COOKIE, demo_status, new_demo_session, parse_demo_session, set_demo_cookie
from src.services.billing.subscriptions import get_subscription_row, is_subscription_active
from src.services.supabase_client import DATABASE_ERRORS

logger = setup_logger(__name__)

router = APIRouter(prefix="/api/session", tags=["session"])


@router.get("/status")
async def session_status(request: Request, user: AuthUser | None = Depends(get_optional_user)):
    is_subscriber = False
    if user:
        try:
            is_subscriber = is_subscription_active(await get_subscription_row(user.id))
        except DATABASE_ERRORS as e:
            logger.error("Subscription check for %s failed: %s", user.id, e)

    if is_subscriber:
        return {
            "searchesRemaining": -1,
            "searchesUsed": 0,
            "isSubscriber": True,
            "isAuthenticated": True,
            "totalAllowed": -1,
        }

    session = parse_demo_session(request.cookies.get(DEMO_COOKIE))
    is_new = session is None
    if is_new:
        session = new_demo_session()
    status = demo_status(session, False)
    response = JSONResponse(
        {
            "searchesRemaining": status["searchesRemaining"],
            "searchesUsed": status["searchesUsed"],
            "isSubscriber": False,
            "isAuthenticated": user is not None,
            "totalAllowed": config.DEMO_SEARCHES_ALLOWED,
        }
    )
    if is_new:
        set_demo_cookie(response, session)
    return response
