from datetime import datetime
from typing import List, Optional

from core.config import cfg
from core.log import get_logger
from core.events import log_event, E
from core.errors import AitemError
from core.models import ActivityLog, User as DBUser
from core.record_store import RecordStore

logger = get_logger(__name__)


def admin_user_ids() -> List[int]:
    raw = cfg.get("admin.user_ids", []) or []
    ids = []
    for item in raw if isinstance(raw, list) else str(raw).split(","):
        try:
            ids.append(int(item))
        except (TypeError, ValueError):
            continue
    return ids


def is_admin(user) -> bool:
    if user is None:
        return False
    if str(getattr(user, "role", "") or "") == "admin":
        return True
    return getattr(user, "id", None) in admin_user_ids()


def log_activity(session, user_id: int, action: str) -> None:
    """Append an activity line for the admin feed. Admin actions are not logged."""
    user = session.query(DBUser).filter(DBUser.id == user_id).first()
    if user is None or is_admin(user):
        return
    try:
        RecordStore(session).create("activity_logs", {
            "user_id": user_id,
            "user_full_name": user.full_name or "",
            "action": str(action or "")[:1000],
        })
        log_event(logger, E.ACTIVITY_LOG_WRITE, user_id=user_id)
    except AitemError as e:
        logger.error("activity log write failed: %s", e.message)


def list_activity_logs(session, limit: int = 100):
    return RecordStore(session).list_all("activity_logs", limit=limit)


def count_activity_since(session, since: Optional[datetime]) -> int:
    query = session.query(ActivityLog)
    if since is not None:
        query = query.filter(ActivityLog.created_at > since)
    return query.count()


def latest_broadcast(session):
    rows = RecordStore(session).list_all("broadcasts", limit=1)
    return rows[0] if rows else None


def add_broadcast(session, message: str):
    row = RecordStore(session).create("broadcasts", {"message": str(message or "").strip()})
    log_event(logger, E.BROADCAST_ADD, id=row.id)
    return row
