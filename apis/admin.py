from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from core.auth import require_admin
from core.activity_service import add_broadcast, list_activity_logs
from core.content_service import (
    add_scenario,
    admin_notification_counts,
    list_all_ideas,
    save_algorithm_news,
    save_plan,
    save_report,
)
from core.record_store import record_to_dict
from core.subscription_service import extend_subscription, get_subscription_history
from core.usage_service import reset_due_users
from core.user_service import (
    add_user,
    delete_user,
    get_user,
    list_users,
    serialize_user,
    set_vip,
    update_limits,
    update_usage_counters,
)
from .base import success_response, error_response
from .deps import get_db_session

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


class AddUserRequest(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    access_code: str = Field(..., min_length=1, max_length=64)
    is_vip: bool = False


class LimitsRequest(BaseModel):
    story_limit: Optional[int] = Field(default=None, ge=0)
    caption_idea_limit: Optional[int] = Field(default=None, ge=0)
    image_limit: Optional[int] = Field(default=None, ge=0)
    chat_limit: Optional[int] = Field(default=None, ge=0)


class CountersRequest(BaseModel):
    story_requests: Optional[int] = Field(default=None, ge=0)
    caption_idea_requests: Optional[int] = Field(default=None, ge=0)
    image_requests: Optional[int] = Field(default=None, ge=0)
    chat_messages: Optional[int] = Field(default=None, ge=0)


class VipRequest(BaseModel):
    is_vip: bool


class ExtendRequest(BaseModel):
    days: int = Field(..., gt=0, le=3650)


class TextRequest(BaseModel):
    content: str = Field(..., min_length=1)


class ScenarioRequest(BaseModel):
    scenario_number: int = Field(default=1, ge=1)
    content: str = Field(..., min_length=1)


class BroadcastRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)


@router.get("/users", summary="All non-admin users")
def users(session=Depends(get_db_session)):
    return success_response([serialize_user(user) for user in list_users(session)])


@router.post("/users", summary="Add a user")
def create_user(payload: AddUserRequest, session=Depends(get_db_session)):
    user = add_user(session, payload.full_name, payload.access_code, is_vip=payload.is_vip)
    return success_response(serialize_user(user), message="کاربر با موفقیت اضافه شد.")


@router.get("/users/{user_id}", summary="One user")
def user_detail(user_id: int, session=Depends(get_db_session)):
    return success_response(serialize_user(get_user(session, user_id)))


@router.delete("/users/{user_id}", summary="Delete a user")
def remove_user(user_id: int, session=Depends(get_db_session)):
    if not delete_user(session, user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_response(code=40401, message="کاربر پیدا نشد."),
        )
    return success_response({"id": user_id}, message="کاربر حذف شد.")


@router.put("/users/{user_id}/limits", summary="Set per-user ceilings")
def put_limits(user_id: int, payload: LimitsRequest, session=Depends(get_db_session)):
    # explicit null resets a ceiling to the configured default
    limits = payload.model_dump(exclude_unset=True)
    return success_response(serialize_user(update_limits(session, user_id, limits)))


@router.put("/users/{user_id}/counters", summary="Override current usage counters")
def put_counters(user_id: int, payload: CountersRequest, session=Depends(get_db_session)):
    counters = payload.model_dump(exclude_none=True)
    return success_response(serialize_user(update_usage_counters(session, user_id, counters)))


@router.put("/users/{user_id}/vip", summary="Toggle VIP")
def put_vip(user_id: int, payload: VipRequest, session=Depends(get_db_session)):
    return success_response(serialize_user(set_vip(session, user_id, payload.is_vip)))


@router.post("/users/{user_id}/subscription", summary="Extend a subscription")
def post_extend(user_id: int, payload: ExtendRequest, session=Depends(get_db_session)):
    entry = extend_subscription(session, user_id, payload.days)
    return success_response(record_to_dict(entry), message=f"اشتراک با موفقیت برای {payload.days} روز تمدید شد.")


@router.get("/users/{user_id}/subscription", summary="Subscription history")
def subscription_history(user_id: int, session=Depends(get_db_session)):
    return success_response([record_to_dict(row) for row in get_subscription_history(session, user_id)])


@router.post("/users/{user_id}/plans", summary="Send a content plan")
def post_plan(user_id: int, payload: TextRequest, session=Depends(get_db_session)):
    get_user(session, user_id)
    return success_response(record_to_dict(save_plan(session, user_id, payload.content)))


@router.post("/users/{user_id}/reports", summary="Send a report")
def post_report(user_id: int, payload: TextRequest, session=Depends(get_db_session)):
    get_user(session, user_id)
    return success_response(record_to_dict(save_report(session, user_id, payload.content)))


@router.post("/users/{user_id}/scenarios", summary="Send a post scenario")
def post_scenario(user_id: int, payload: ScenarioRequest, session=Depends(get_db_session)):
    get_user(session, user_id)
    row = add_scenario(session, user_id, payload.scenario_number, payload.content)
    return success_response(record_to_dict(row))


@router.get("/ideas", summary="Ideas sent by users")
def ideas(session=Depends(get_db_session)):
    return success_response([record_to_dict(row) for row in list_all_ideas(session)])


@router.get("/activity-logs", summary="Latest activity lines")
def activity_logs(limit: int = Query(100, ge=1, le=500), session=Depends(get_db_session)):
    return success_response([record_to_dict(row) for row in list_activity_logs(session, limit=limit)])


@router.get("/notifications", summary="Admin badge counts")
def notifications(logs_seen: Optional[datetime] = Query(None), session=Depends(get_db_session)):
    return success_response(admin_notification_counts(session, logs_seen))


@router.post("/broadcasts", summary="Publish a broadcast message")
def post_broadcast(payload: BroadcastRequest, session=Depends(get_db_session)):
    return success_response(record_to_dict(add_broadcast(session, payload.message)), message="پیام همگانی ارسال شد.")


@router.put("/algorithm-news", summary="Replace the algorithm news")
def put_news(payload: TextRequest, session=Depends(get_db_session)):
    return success_response(record_to_dict(save_algorithm_news(session, payload.content)))


@router.post("/usage/reset", summary="Run the usage reset sweep now")
def run_usage_reset(session=Depends(get_db_session)):
    return success_response(reset_due_users(session))
