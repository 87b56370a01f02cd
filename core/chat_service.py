from typing import Callable, Optional

from core.log import get_logger
from core.events import log_event, E
from core.ai_client import AIClient
from core.cancellation import CancelToken
from core.errors import AitemError, StreamCancelled, ValidationFailed, describe_ai_error
from core.history_service import get_chat_history, save_chat_history
from core.prompt_templates import build_chat_system_prompt, user_message
from core.schemas import ChatMessage, ImagePayload
from core.usage_service import ensure_can_proceed, increment_usage
from core.user_service import display_name, get_user

logger = get_logger(__name__)


def build_chat_messages(user, text: str, image: Optional[ImagePayload] = None) -> list:
    # earlier turns stay in the stored history only, they are not resent
    system = build_chat_system_prompt(display_name(user), user.about_info or "")
    return [{"role": "system", "content": system}, user_message(text, image)]


def send_chat_message(
    session,
    ai: AIClient,
    user_id: int,
    text: str,
    image: Optional[ImagePayload] = None,
    on_chunk: Optional[Callable[[str], None]] = None,
    cancel_token: Optional[CancelToken] = None,
) -> ChatMessage:
    """Run one chat exchange and persist the full conversation.

    Quota is checked before the AI call. On success the chat counter is
    bumped and ``history + [user, ai]`` is saved; on failure the error text
    is saved as the AI turn and the exception propagates. A cancelled
    exchange keeps whatever part of the answer already arrived.
    """
    text = str(text or "").strip()
    if not text and image is None:
        raise ValidationFailed("پیام خالی است.")
    user = get_user(session, user_id)
    ensure_can_proceed(user, "chat")

    history = get_chat_history(session, user_id)
    user_msg = ChatMessage(sender="user", text=text, image_url=image.data_url() if image else None)
    parts = []

    def _sink(delta: str) -> None:
        parts.append(delta)
        if on_chunk is not None:
            on_chunk(delta)

    try:
        full_text = ai.stream_completion(build_chat_messages(user, text, image), _sink, cancel_token=cancel_token)
    except StreamCancelled:
        partial = "".join(parts)
        turns = [user_msg, ChatMessage(sender="ai", text=partial)] if partial else [user_msg]
        save_chat_history(session, user_id, history + turns)
        raise
    except AitemError as e:
        save_chat_history(session, user_id, history + [user_msg, ChatMessage(sender="ai", text=describe_ai_error(e))])
        raise

    ai_msg = ChatMessage(sender="ai", text=full_text)
    increment_usage(session, user_id, "chat")
    save_chat_history(session, user_id, history + [user_msg, ai_msg])
    log_event(logger, E.AI_STREAM_COMPLETE, user_id=user_id, feature="chat", chars=len(full_text))
    return ai_msg
