"""
Per-user content records: plans, reports, ideas, captions, scenarios and
competitor analyses, plus the single algorithm-news note shown to everyone.
"""

from datetime import datetime
from typing import Dict, List, Optional

from core.activity_service import count_activity_since, log_activity
from core.errors import ValidationFailed
from core.models import Idea, Scenario
from core.record_store import RecordStore

CAPTION_LIST_SIZE = 20

# collections a user can list and delete from their own dashboard
USER_COLLECTIONS = ("plans", "reports", "ideas", "captions", "scenarios", "competitor_analyses")


def list_records(session, collection: str, user_id: int) -> List:
    if collection not in USER_COLLECTIONS:
        raise ValidationFailed(f"مجموعه نامعتبر: {collection}")
    limit = CAPTION_LIST_SIZE if collection == "captions" else None
    return RecordStore(session).list_for_user(collection, user_id, limit=limit)


def delete_record(session, collection: str, record_id: int, user_id: Optional[int] = None) -> bool:
    """Delete by id; with ``user_id`` set, only that user's record is removed."""
    if collection not in USER_COLLECTIONS:
        raise ValidationFailed(f"مجموعه نامعتبر: {collection}")
    store = RecordStore(session)
    if user_id is not None:
        row = store.get(collection, record_id)
        if row is None or row.user_id != user_id:
            return False
    return store.delete(collection, record_id)


def save_plan(session, user_id: int, content: str):
    return RecordStore(session).create("plans", {"user_id": user_id, "content": content})


def save_report(session, user_id: int, content: str):
    return RecordStore(session).create("reports", {"user_id": user_id, "content": content})


def add_scenario(session, user_id: int, scenario_number: int, content: str):
    return RecordStore(session).create("scenarios", {
        "user_id": user_id,
        "scenario_number": scenario_number,
        "content": content,
    })


def add_idea(session, user_id: int, idea_text: str):
    row = RecordStore(session).create("ideas", {"user_id": user_id, "idea_text": str(idea_text or "").strip()})
    log_activity(session, user_id, "یک ایده جدید برای پست ارسال کرد.")
    return row


def list_all_ideas(session) -> List:
    return session.query(Idea).order_by(Idea.created_at.desc(), Idea.id.desc()).all()


def add_caption(session, user_id: int, title: str, content: str, original_scenario_content: str = ""):
    return RecordStore(session).create("captions", {
        "user_id": user_id,
        "title": title,
        "content": content,
        "original_scenario_content": original_scenario_content,
    })


def get_algorithm_news(session):
    rows = RecordStore(session).list_all("algorithm_news", limit=1)
    return rows[0] if rows else None


def save_algorithm_news(session, content: str):
    """Replace the news text; the first save creates the row."""
    store = RecordStore(session)
    current = get_algorithm_news(session)
    if current is None:
        return store.create("algorithm_news", {"content": content, "updated_at": datetime.now()})
    return store.update("algorithm_news", current.id, {"content": content})


def notification_counts(session, user_id: int, seen: Optional[Dict[str, datetime]] = None) -> Dict[str, int]:
    """Badge counts: open scenarios, and plans/reports newer than the last visit."""
    seen = seen or {}
    store = RecordStore(session)
    return {
        "scenarios": session.query(Scenario).filter(Scenario.user_id == user_id).count(),
        "plans": store.count_for_user("plans", user_id, since=seen.get("plans")),
        "reports": store.count_for_user("reports", user_id, since=seen.get("reports")),
    }


def admin_notification_counts(session, logs_seen: Optional[datetime] = None) -> Dict[str, int]:
    return {
        "ideas": session.query(Idea).count(),
        "logs": count_activity_since(session, logs_seen),
    }
