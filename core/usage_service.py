"""
Per-user usage quotas.

Each category has a counter column and an optional override ceiling on the
user row. Admission is a pure check done before any AI call; the counter
is bumped only after a successful round-trip. Daily counters reset when
the stored date differs from today, weekly ones once 7 days have passed.
The reset is a read-modify-write and is not atomic across sessions.
"""

from datetime import date, datetime, timedelta
from typing import Dict, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from core.config import cfg
from core.log import get_logger
from core.events import log_event, E
from core.errors import QuotaExceededError
from core.models import User as DBUser
from core.activity_service import is_admin, log_activity

logger = get_logger(__name__)

WINDOW_DAY = "day"
WINDOW_WEEK = "week"

USAGE_CATEGORIES: Dict[str, Dict] = {
    "story": {
        "counter": "story_requests",
        "limit": "story_limit",
        "default": 2,
        "window": WINDOW_DAY,
        "exceeded": "شما به سقف تولید روزانه سناریو رسیده‌اید.",
        "action": "یک سناریوی استوری",
    },
    "caption_idea": {
        "counter": "caption_idea_requests",
        "limit": "caption_idea_limit",
        "default": 2,
        "window": WINDOW_DAY,
        "exceeded": "شما به سقف تولید روزانه کپشن از ایده رسیده‌اید.",
        "action": "یک کپشن از ایده",
    },
    "image": {
        "counter": "image_requests",
        "limit": "image_limit",
        "default": 35,
        "window": WINDOW_WEEK,
        "exceeded": "شما به محدودیت هفتگی تولید تصویر رسیده‌اید.",
        "action": "یک تصویر",
    },
    "chat": {
        "counter": "chat_messages",
        "limit": "chat_limit",
        "default": 150,
        "window": WINDOW_WEEK,
        "exceeded": "شما به محدودیت پیام هفتگی خود رسیده‌اید.",
        "action": "یک پیام در چت",
        "verb": "ارسال کرد",
    },
}

_WINDOW_LABEL = {WINDOW_DAY: "روزانه", WINDOW_WEEK: "هفتگی"}
_WEEK = timedelta(days=7)


def _category(category: str) -> Dict:
    rule = USAGE_CATEGORIES.get(str(category or "").strip())
    if rule is None:
        raise ValueError(f"unknown usage category: {category}")
    return rule


def _int_value(value, default=0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default)


def default_limit(category: str) -> int:
    rule = _category(category)
    return _int_value(cfg.get(f"usage.defaults.{category}", rule["default"]), rule["default"])


def effective_limit(user, category: str) -> int:
    rule = _category(category)
    override = getattr(user, rule["limit"], None)
    if override is None:
        return default_limit(category)
    return _int_value(override, default_limit(category))


def current_usage(user, category: str) -> int:
    return max(0, _int_value(getattr(user, _category(category)["counter"], 0), 0))


def can_proceed(user, category: str) -> bool:
    return current_usage(user, category) < effective_limit(user, category)


def ensure_can_proceed(user, category: str) -> None:
    used = current_usage(user, category)
    limit = effective_limit(user, category)
    if used < limit:
        log_event(logger, E.USAGE_CHECK, user_id=getattr(user, "id", "-"), category=category, used=used, limit=limit)
        return
    log_event(logger, E.USAGE_EXCEED, level="warning", user_id=getattr(user, "id", "-"), category=category, used=used, limit=limit)
    raise QuotaExceededError(category, _category(category)["exceeded"])


def increment_usage(session, user_id: int, category: str) -> Optional[DBUser]:
    """Add one to the stored counter and return the re-read user.

    Callers treat this as fire-and-forget: a failed write is logged and the
    user row is returned unchanged.
    """
    rule = _category(category)
    column = getattr(DBUser, rule["counter"])
    try:
        session.execute(
            update(DBUser)
            .where(DBUser.id == user_id)
            .values({rule["counter"]: column + 1, "updated_at": datetime.now()})
        )
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        log_event(logger, E.USAGE_CONSUME_FAIL, level="error", user_id=user_id, category=category, error=e)
        return session.get(DBUser, user_id)

    user = session.get(DBUser, user_id)
    if user is None:
        return None
    session.refresh(user)
    used = current_usage(user, category)
    limit = effective_limit(user, category)
    log_event(logger, E.USAGE_CONSUME, user_id=user_id, category=category, used=used, limit=limit)
    log_activity(session, user_id, f"{rule['action']} ({used}/{limit} {_WINDOW_LABEL[rule['window']]}) {rule.get('verb', 'تولید کرد')}.")
    return user


def _parse_day(value) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def maybe_reset_usage(user, now: datetime = None) -> bool:
    """Zero the counters whose window has rolled over. Mutates ``user`` only."""
    now = now or datetime.now()
    today = now.date()
    changed = False

    if _parse_day(getattr(user, "last_request_date", None)) != today:
        for rule in USAGE_CATEGORIES.values():
            if rule["window"] == WINDOW_DAY:
                setattr(user, rule["counter"], 0)
        user.last_request_date = today.isoformat()
        changed = True

    last_weekly = _parse_day(getattr(user, "last_weekly_reset_date", None)) or date(1970, 1, 1)
    if datetime.combine(today, datetime.min.time()) - datetime.combine(last_weekly, datetime.min.time()) >= _WEEK:
        for rule in USAGE_CATEGORIES.values():
            if rule["window"] == WINDOW_WEEK:
                setattr(user, rule["counter"], 0)
        user.last_weekly_reset_date = today.isoformat()
        changed = True

    if changed:
        log_event(logger, E.USAGE_RESET, user_id=getattr(user, "id", "-"), day=user.last_request_date, week=user.last_weekly_reset_date)
    return changed


def apply_usage_reset(session, user, now: datetime = None) -> bool:
    """Reset rolled-over counters of one user and persist them."""
    now = now or datetime.now()
    if is_admin(user) or not maybe_reset_usage(user, now):
        return False
    user.updated_at = now
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        log_event(logger, E.USAGE_RESET, level="error", user_id=user.id, error=e)
        return False
    return True


def reset_due_users(session, now: datetime = None, batch_size: int = 1000) -> Dict[str, int]:
    """Sweep every user in id order, ``batch_size`` rows per query and commit."""
    now = now or datetime.now()
    scanned = total = 0
    last_id = 0
    while True:
        users = (
            session.query(DBUser)
            .filter(DBUser.id > last_id)
            .order_by(DBUser.id.asc())
            .limit(batch_size)
            .all()
        )
        if not users:
            break
        changed = 0
        for user in users:
            if not is_admin(user) and maybe_reset_usage(user, now):
                user.updated_at = now
                changed += 1
        if changed:
            session.commit()
        scanned += len(users)
        total += changed
        last_id = users[-1].id
        if len(users) < batch_size:
            break
    return {"scanned": scanned, "total": total}


def usage_summary(user) -> Dict[str, Dict]:
    summary = {}
    for category, rule in USAGE_CATEGORIES.items():
        used = current_usage(user, category)
        limit = effective_limit(user, category)
        summary[category] = {
            "used": used,
            "limit": limit,
            "remaining": max(0, limit - used),
            "window": rule["window"],
        }
    return summary
