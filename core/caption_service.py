from typing import Optional

from core.log import get_logger
from core.events import log_event, E
from core.ai_client import AIClient
from core.errors import AIServiceError, ValidationFailed
from core.prompt_templates import build_caption_prompt, user_message
from core.record_store import RecordStore
from core.schemas import ImagePayload
from core.usage_service import ensure_can_proceed, increment_usage
from core.user_service import get_user

logger = get_logger(__name__)

EMPTY_REPLY = "پاسخ خالی از هوش مصنوعی دریافت شد. لطفاً دوباره تلاش کنید."


def generate_caption(ai: AIClient, user_about: str, description: str, image: Optional[ImagePayload] = None) -> str:
    prompt = build_caption_prompt(user_about, description, has_image=image is not None)
    content = ai.complete([user_message(prompt, image)])
    if not content.strip():
        raise AIServiceError(EMPTY_REPLY)
    return content


def generate_caption_from_idea(session, ai: AIClient, user_id: int, idea: str, image: Optional[ImagePayload] = None):
    """Caption from a free-form idea; counts against the daily caption quota."""
    idea = str(idea or "").strip()
    if not idea:
        raise ValidationFailed("لطفاً ایده خود را بنویسید.")
    user = get_user(session, user_id)
    ensure_can_proceed(user, "caption_idea")

    content = generate_caption(ai, user.about_info or "", idea, image)
    caption = RecordStore(session).create("captions", {
        "user_id": user_id,
        "title": f"کپشن از ایده: {idea[:20]}...",
        "content": content,
        "original_scenario_content": idea,
    })
    increment_usage(session, user_id, "caption_idea")
    log_event(logger, E.CAPTION_GENERATE, user_id=user_id, caption_id=caption.id, source="idea")
    return caption


def regenerate_caption(session, ai: AIClient, user_id: int, caption_id: int):
    """Rewrite an existing caption from the scenario it was made for."""
    store = RecordStore(session)
    caption = store.require("captions", caption_id)
    if caption.user_id != user_id:
        raise ValidationFailed("این کپشن متعلق به شما نیست.")
    user = get_user(session, user_id)
    content = generate_caption(ai, user.about_info or "", caption.original_scenario_content or caption.content)
    caption = store.update("captions", caption_id, {"content": content})
    log_event(logger, E.CAPTION_GENERATE, user_id=user_id, caption_id=caption_id, source="regenerate")
    return caption
