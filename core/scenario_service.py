"""
Scenario approval.

Recording a scenario runs several independent writes in order: an optional
caption, an activity line and finally the deletion of the scenario. There is
no transaction around them; a crash part-way leaves the earlier writes in
place and the scenario still listed, so a retry may create a second caption.
"""

from core.log import get_logger
from core.events import log_event, E
from core.ai_client import AIClient
from core.activity_service import log_activity
from core.caption_service import generate_caption
from core.errors import AIConfigError, AitemError, ValidationFailed
from core.prompt_templates import HOOK_KINDS, build_hooks_prompt, user_message
from core.record_store import RecordStore
from core.user_service import get_user

logger = get_logger(__name__)


def record_scenario(session, ai: AIClient, user_id: int, scenario_id: int) -> dict:
    """Approve a scenario for production.

    Returns ``{"scenario_number", "caption_id"}``; ``caption_id`` is None when
    caption generation failed or was skipped.
    """
    store = RecordStore(session)
    scenario = store.require("scenarios", scenario_id)
    if scenario.user_id != user_id:
        raise ValidationFailed("این سناریو متعلق به شما نیست.")
    user = get_user(session, user_id)
    number = scenario.scenario_number
    log_event(logger, E.SCENARIO_RECORD_START, user_id=user_id, scenario_id=scenario_id, number=number)

    caption_id = None
    try:
        content = generate_caption(ai, user.about_info or "", scenario.content)
        caption = store.create("captions", {
            "user_id": user_id,
            "title": f"کپشن سناریو شماره {number}",
            "content": content,
            "original_scenario_content": scenario.content,
        })
        caption_id = caption.id
    except AIConfigError:
        log_event(logger, E.SCENARIO_CAPTION_FAIL, level="warning", scenario_id=scenario_id, reason="ai_not_configured")
    except AitemError as e:
        log_event(logger, E.SCENARIO_CAPTION_FAIL, level="error", scenario_id=scenario_id, error=e.message)

    log_activity(session, user_id, f"سناریو شماره {number} را تایید و برای تدوین ارسال کرد.")
    store.delete("scenarios", scenario_id)
    log_event(logger, E.SCENARIO_RECORD_COMPLETE, user_id=user_id, scenario_id=scenario_id, caption_id=caption_id)
    return {"scenario_number": number, "caption_id": caption_id}


def generate_hooks_or_ctas(ai: AIClient, scenario_content: str, kind: str) -> str:
    if kind not in HOOK_KINDS:
        raise ValidationFailed(f"نوع نامعتبر: {kind}")
    if not str(scenario_content or "").strip():
        raise ValidationFailed("متن سناریو خالی است.")
    return ai.complete([user_message(build_hooks_prompt(scenario_content, kind))])
