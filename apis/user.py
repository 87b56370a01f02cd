from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from core.activity_service import latest_broadcast
from core.content_service import get_algorithm_news, notification_counts
from core.record_store import record_to_dict
from core.subscription_service import get_subscription_history, subscription_status
from core.usage_service import usage_summary
from core.user_service import serialize_user, update_user_info
from .base import success_response
from .deps import get_active_user, get_db_session

router = APIRouter(prefix="/user", tags=["user"])


class UserInfoRequest(BaseModel):
    about_info: str = Field(default="", max_length=4000)
    preferred_name: str = Field(default="", max_length=120)


@router.get("/me", summary="Current user profile")
async def get_me(user=Depends(get_active_user)):
    return success_response(serialize_user(user))


@router.put("/me", summary="Update about text and preferred name")
async def update_me(payload: UserInfoRequest, user=Depends(get_active_user), session=Depends(get_db_session)):
    updated = update_user_info(session, user.id, payload.about_info, payload.preferred_name)
    return success_response(serialize_user(updated), message="اطلاعات شما ذخیره شد.")


@router.get("/usage", summary="Quota usage per category")
async def get_usage(user=Depends(get_active_user)):
    return success_response(usage_summary(user))


@router.get("/subscription", summary="Subscription status and extension history")
async def get_subscription(user=Depends(get_active_user), session=Depends(get_db_session)):
    history = [record_to_dict(row) for row in get_subscription_history(session, user.id)]
    return success_response({"status": subscription_status(user), "history": history})


@router.get("/notifications", summary="Badge counts for the dashboard")
async def get_notifications(
    plans_seen: Optional[datetime] = Query(None),
    reports_seen: Optional[datetime] = Query(None),
    user=Depends(get_active_user),
    session=Depends(get_db_session),
):
    counts = notification_counts(session, user.id, {"plans": plans_seen, "reports": reports_seen})
    return success_response(counts)


@router.get("/broadcast", summary="Latest broadcast message")
async def get_broadcast(user=Depends(get_active_user), session=Depends(get_db_session)):
    row = latest_broadcast(session)
    return success_response(record_to_dict(row) if row else None)


@router.get("/algorithm-news", summary="Current algorithm news")
async def get_news(user=Depends(get_active_user), session=Depends(get_db_session)):
    row = get_algorithm_news(session)
    return success_response(record_to_dict(row) if row else None)
