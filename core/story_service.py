from typing import Callable, Optional

from core.log import get_logger
from core.events import log_event, E
from core.ai_client import AIClient
from core.cancellation import CancelToken
from core.errors import ValidationFailed
from core.history_service import save_story_history
from core.prompt_templates import build_story_prompt, user_message
from core.schemas import ImagePayload
from core.usage_service import ensure_can_proceed, increment_usage
from core.user_service import get_user

logger = get_logger(__name__)


def validate_story_request(goal: str, idea: str, image: Optional[ImagePayload] = None) -> None:
    if not str(goal or "").strip() or (not str(idea or "").strip() and image is None):
        raise ValidationFailed("لطفاً هدف و ایده خود را مشخص کنید.")


def generate_story(
    session,
    ai: AIClient,
    user_id: int,
    goal: str,
    idea: str,
    yesterday_feedback: str = "",
    image: Optional[ImagePayload] = None,
    on_chunk: Optional[Callable[[str], None]] = None,
    cancel_token: Optional[CancelToken] = None,
) -> str:
    """Stream a story scenario, then store it and count it against the daily quota."""
    validate_story_request(goal, idea, image)
    user = get_user(session, user_id)
    ensure_can_proceed(user, "story")

    prompt = build_story_prompt(
        user.about_info or "",
        goal.strip(),
        str(idea or "").strip(),
        yesterday_feedback,
        has_image=image is not None,
    )
    content = ai.stream_completion(
        [user_message(prompt, image)],
        on_chunk or (lambda _delta: None),
        cancel_token=cancel_token,
    )
    save_story_history(session, user_id, content)
    increment_usage(session, user_id, "story")
    log_event(logger, E.STORY_GENERATE, user_id=user_id, chars=len(content))
    return content
