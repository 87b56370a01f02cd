from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import or_

from core.config import cfg
from core.log import get_logger
from core.events import log_event, E
from core.errors import RecordNotFound, ValidationFailed
from core.models import User as DBUser
from core.activity_service import admin_user_ids, is_admin, log_activity
from core.usage_service import USAGE_CATEGORIES, apply_usage_reset, default_limit, usage_summary

logger = get_logger(__name__)

_COUNTER_FIELDS = {rule["counter"] for rule in USAGE_CATEGORIES.values()}
_LIMIT_FIELDS = {rule["limit"] for rule in USAGE_CATEGORIES.values()}


def get_user(session, user_id: int) -> DBUser:
    user = session.get(DBUser, user_id)
    if user is None:
        raise RecordNotFound("users", user_id, "کاربر پیدا نشد.")
    return user


def display_name(user) -> str:
    return str(getattr(user, "preferred_name", "") or "").strip() or str(getattr(user, "full_name", "") or "")


def is_subscription_expired(user, now: datetime = None) -> bool:
    if is_admin(user):
        return False
    expires = getattr(user, "subscription_expires_at", None)
    return expires is None or expires < (now or datetime.now())


def verify_access_code(session, code: str, now: datetime = None) -> Optional[DBUser]:
    """Log in by access code.

    Expired subscriptions are returned flagged and without a counter reset;
    active users get their daily/weekly reset applied and persisted.
    """
    now = now or datetime.now()
    code = str(code or "").strip()
    if not code:
        return None
    user = (
        session.query(DBUser)
        .filter(DBUser.access_code == code, DBUser.is_verified.is_(True))
        .first()
    )
    if user is None:
        log_event(logger, E.AUTH_LOGIN_FAIL, reason="unknown_code")
        return None

    if is_subscription_expired(user, now):
        user.is_subscription_expired = True
        log_event(logger, E.AUTH_SUBSCRIPTION_EXPIRED, user_id=user.id)
        return user

    user.is_subscription_expired = False
    apply_usage_reset(session, user, now)
    log_event(logger, E.AUTH_LOGIN_SUCCESS, user_id=user.id)
    log_activity(session, user.id, "به برنامه وارد شد.")
    return user


def list_users(session) -> List[DBUser]:
    admins = admin_user_ids()
    query = session.query(DBUser).filter(or_(DBUser.role.is_(None), DBUser.role != "admin"))
    if admins:
        query = query.filter(DBUser.id.notin_(admins))
    return query.order_by(DBUser.created_at.desc()).all()


def add_user(session, full_name: str, access_code: str, is_vip: bool = False, role: str = "user") -> DBUser:
    full_name = str(full_name or "").strip()
    access_code = str(access_code or "").strip()
    if not full_name or not access_code:
        raise ValidationFailed("نام و کد دسترسی الزامی است.")
    if session.query(DBUser).filter(DBUser.access_code == access_code).first():
        raise ValidationFailed("این کد دسترسی قبلاً استفاده شده است.")

    now = datetime.now()
    trial_days = int(cfg.get("subscription.trial_days", 7) or 7)
    user = DBUser(
        full_name=full_name,
        access_code=access_code,
        role=role if role in ("user", "admin") else "user",
        is_verified=True,
        is_vip=bool(is_vip),
        about_info="",
        preferred_name="",
        story_requests=0,
        caption_idea_requests=0,
        image_requests=0,
        chat_messages=0,
        story_limit=default_limit("story"),
        caption_idea_limit=default_limit("caption_idea"),
        image_limit=default_limit("image"),
        chat_limit=default_limit("chat"),
        last_request_date=now.date().isoformat(),
        last_weekly_reset_date=now.date().isoformat(),
        subscription_expires_at=now + timedelta(days=trial_days),
        created_at=now,
        updated_at=now,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    log_event(logger, E.ADMIN_USER_ADD, user_id=user.id, vip=user.is_vip)
    return user


def delete_user(session, user_id: int) -> bool:
    user = session.get(DBUser, user_id)
    if user is None:
        return False
    session.delete(user)
    session.commit()
    log_event(logger, E.ADMIN_USER_DELETE, user_id=user_id)
    return True


def update_user_info(session, user_id: int, about_info: str, preferred_name: str) -> DBUser:
    user = get_user(session, user_id)
    user.about_info = str(about_info or "").strip()
    user.preferred_name = str(preferred_name or "").strip()[:120]
    user.updated_at = datetime.now()
    session.commit()
    log_event(logger, E.ADMIN_USER_UPDATE, user_id=user_id, fields="about_info,preferred_name")
    return user


def set_vip(session, user_id: int, is_vip: bool) -> DBUser:
    user = get_user(session, user_id)
    user.is_vip = bool(is_vip)
    user.updated_at = datetime.now()
    session.commit()
    log_event(logger, E.ADMIN_USER_UPDATE, user_id=user_id, fields="is_vip")
    return user


def _apply_int_fields(session, user_id: int, values: Dict[str, Optional[int]], allowed: set, nullable: bool) -> DBUser:
    unknown = set(values) - allowed
    if unknown:
        raise ValidationFailed(f"فیلد نامعتبر: {', '.join(sorted(unknown))}")
    user = get_user(session, user_id)
    for field, value in values.items():
        if value is None and nullable:
            setattr(user, field, None)
            continue
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ValidationFailed(f"مقدار نامعتبر برای {field}.")
        if number < 0:
            raise ValidationFailed(f"مقدار {field} نمی‌تواند منفی باشد.")
        setattr(user, field, number)
    user.updated_at = datetime.now()
    session.commit()
    log_event(logger, E.ADMIN_USER_UPDATE, user_id=user_id, fields=",".join(sorted(values)))
    return user


def update_usage_counters(session, user_id: int, counters: Dict[str, int]) -> DBUser:
    """Admin override of the current counters (e.g. to refund a request)."""
    return _apply_int_fields(session, user_id, counters, _COUNTER_FIELDS, nullable=False)


def update_limits(session, user_id: int, limits: Dict[str, Optional[int]]) -> DBUser:
    """Set per-user ceilings; None falls back to the configured default."""
    return _apply_int_fields(session, user_id, limits, _LIMIT_FIELDS, nullable=True)


def serialize_user(user) -> Dict:
    expires = getattr(user, "subscription_expires_at", None)
    return {
        "id": user.id,
        "full_name": user.full_name,
        "preferred_name": user.preferred_name or "",
        "about_info": user.about_info or "",
        "role": "admin" if is_admin(user) else (user.role or "user"),
        "is_verified": bool(user.is_verified),
        "is_vip": bool(user.is_vip),
        "subscription_expires_at": expires.isoformat() if expires else None,
        "is_subscription_expired": is_subscription_expired(user),
        "usage": usage_summary(user),
        "last_request_date": user.last_request_date,
        "last_weekly_reset_date": user.last_weekly_reset_date,
    }
