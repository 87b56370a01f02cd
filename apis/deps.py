from fastapi import Depends, HTTPException, Request, status

from core.ai_client import AIClient
from core.auth import get_current_user
from core.db import Database
from core.log import bind_user
from core.usage_service import apply_usage_reset
from core.user_service import get_user, is_subscription_expired
from .base import error_response


def get_database(request: Request) -> Database:
    return request.app.state.db


def get_db_session(request: Request):
    session = request.app.state.db.get_session()
    try:
        yield session
    finally:
        session.close()


def get_ai_client(request: Request) -> AIClient:
    return request.app.state.ai


async def get_active_user(current_user: dict = Depends(get_current_user), session=Depends(get_db_session)):
    """The logged-in user row, with rolled-over counters reset.

    Expired subscriptions cannot use the tools.
    """
    user = get_user(session, current_user["user_id"])
    bind_user(user.id)
    if is_subscription_expired(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=error_response(code=40302, message="اشتراک شما به پایان رسیده است. لطفاً برای تمدید اقدام کنید."),
        )
    apply_usage_reset(session, user)
    return user
