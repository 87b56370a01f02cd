"""
Chat and story history blobs.

Each user owns one chat_history row and one story_history row. A chat save
always writes the complete message list (last write wins, no merge and no
version check), so two tabs of the same user can overwrite each other.
"""

import time
from datetime import datetime
from typing import Iterable, List, Union

from sqlalchemy.exc import SQLAlchemyError

from core.log import get_logger
from core.events import log_event, E
from core.errors import StoreError
from core.models import ChatHistory, StoryHistory
from core.schemas import ChatMessage, StoryEntry

logger = get_logger(__name__)

STORY_HISTORY_SIZE = 10

MessageLike = Union[ChatMessage, dict]


def _to_message(item: MessageLike) -> ChatMessage:
    if isinstance(item, ChatMessage):
        return item
    return ChatMessage.model_validate(item)


def get_chat_history(session, user_id: int) -> List[ChatMessage]:
    row = session.get(ChatHistory, user_id)
    if row is None:
        return []
    messages = []
    for item in row.messages or []:
        try:
            messages.append(ChatMessage.model_validate(item))
        except ValueError:
            logger.warning("skip malformed chat message for user %s: %r", user_id, item)
    return messages


def save_chat_history(session, user_id: int, messages: Iterable[MessageLike]) -> List[dict]:
    """Overwrite the stored chat blob with the full ``messages`` list."""
    records = [_to_message(item).to_record() for item in messages]
    row = session.get(ChatHistory, user_id)
    try:
        if row is None:
            row = ChatHistory(user_id=user_id, messages=records, updated_at=datetime.now())
            session.add(row)
        else:
            row.messages = records
            row.updated_at = datetime.now()
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        log_event(logger, E.HISTORY_CHAT_SAVE, level="error", user_id=user_id, error=e)
        raise StoreError(f"خطا در ذخیره تاریخچه گفتگو: {e}")
    log_event(logger, E.HISTORY_CHAT_SAVE, user_id=user_id, count=len(records))
    return records


def delete_chat_history(session, user_id: int) -> bool:
    row = session.get(ChatHistory, user_id)
    if row is None:
        return False
    session.delete(row)
    session.commit()
    log_event(logger, E.HISTORY_CHAT_DELETE, user_id=user_id)
    return True


def get_story_history(session, user_id: int) -> List[StoryEntry]:
    row = session.get(StoryHistory, user_id)
    if row is None:
        return []
    return [StoryEntry.model_validate(item) for item in row.stories or []]


def save_story_history(session, user_id: int, content: str) -> List[StoryEntry]:
    """Prepend a story and keep the newest STORY_HISTORY_SIZE entries."""
    entries = get_story_history(session, user_id)
    entries.insert(0, StoryEntry(id=int(time.time() * 1000), content=content))
    entries = entries[:STORY_HISTORY_SIZE]
    stories = [entry.model_dump() for entry in entries]

    row = session.get(StoryHistory, user_id)
    try:
        if row is None:
            session.add(StoryHistory(user_id=user_id, stories=stories, updated_at=datetime.now()))
        else:
            row.stories = stories
            row.updated_at = datetime.now()
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise StoreError(f"خطا در ذخیره تاریخچه سناریو: {e}")
    log_event(logger, E.HISTORY_STORY_SAVE, user_id=user_id, count=len(stories))
    return entries
