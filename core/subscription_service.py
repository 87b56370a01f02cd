from datetime import datetime, timedelta
from typing import Dict, List

from sqlalchemy.exc import SQLAlchemyError

from core.log import get_logger
from core.events import log_event, E
from core.errors import StoreError, ValidationFailed
from core.models import SubscriptionHistory
from core.user_service import get_user, is_subscription_expired

logger = get_logger(__name__)


def extend_subscription(session, user_id: int, days: int, now: datetime = None) -> SubscriptionHistory:
    """Push the expiry ``days`` forward from whichever is later: now or the current expiry."""
    try:
        days = int(days)
    except (TypeError, ValueError):
        raise ValidationFailed("تعداد روزها باید مثبت باشد.")
    if days <= 0:
        raise ValidationFailed("تعداد روزها باید مثبت باشد.")

    now = now or datetime.now()
    user = get_user(session, user_id)
    current = user.subscription_expires_at
    base = current if current is not None and current > now else now
    new_expiry = base + timedelta(days=days)

    entry = SubscriptionHistory(user_id=user_id, extended_for_days=days, new_expiry_date=new_expiry, created_at=now)
    try:
        user.subscription_expires_at = new_expiry
        user.updated_at = now
        session.add(entry)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise StoreError(f"خطا در تمدید اشتراک: {e}")
    log_event(logger, E.SUBSCRIPTION_EXTEND, user_id=user_id, days=days, expires=new_expiry.isoformat())
    return entry


def get_subscription_history(session, user_id: int) -> List[SubscriptionHistory]:
    return (
        session.query(SubscriptionHistory)
        .filter(SubscriptionHistory.user_id == user_id)
        .order_by(SubscriptionHistory.created_at.desc(), SubscriptionHistory.id.desc())
        .all()
    )


def subscription_status(user, now: datetime = None) -> Dict:
    now = now or datetime.now()
    expires = user.subscription_expires_at
    days_left = 0
    if expires is not None and expires > now:
        days_left = (expires - now).days + (1 if (expires - now).seconds else 0)
    return {
        "expires_at": expires.isoformat() if expires else None,
        "is_expired": is_subscription_expired(user, now),
        "days_left": days_left,
    }
