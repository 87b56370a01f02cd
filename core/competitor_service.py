"""
Competitor analysis.

Flow: the user uploads a screenshot of an Instagram profile, the model reads
the handle and a visual analysis out of it (JSON mode), the public profile is
looked up on BoxAPI when a key is configured, and a written analysis is
generated and stored.
"""

import json
from typing import Any, Dict, Optional

import requests

from core.config import cfg
from core.log import get_logger
from core.events import log_event, E
from core.ai_client import AIClient
from core.errors import AIConfigError, AIServiceError, AitemError, BOX_API_INIT_ERROR, ValidationFailed
from core.prompt_templates import build_competitor_prompt, build_screenshot_prompt, user_message
from core.record_store import RecordStore
from core.schemas import ImagePayload
from core.user_service import get_user

logger = get_logger(__name__)

BOX_API_URL = "https://boxapi.ir/v1/instagram/profile"


def analyze_instagram_screenshot(ai: AIClient, image_b64: str, mime: str) -> Dict[str, str]:
    image = ImagePayload(data=image_b64, mime=mime or "image/jpeg")
    raw = ai.complete([user_message(build_screenshot_prompt(), image)], json_mode=True)
    try:
        data = json.loads(raw)
    except ValueError:
        raise AIServiceError("پاسخ تحلیل تصویر قابل خواندن نبود. لطفاً دوباره تلاش کنید.")
    if not isinstance(data, dict):
        raise AIServiceError("پاسخ تحلیل تصویر قابل خواندن نبود. لطفاً دوباره تلاش کنید.")
    instagram_id = str(data.get("instagramId") or "").strip().lstrip("@")
    if not instagram_id:
        raise AIServiceError("نام کاربری صفحه در تصویر پیدا نشد.")
    return {"instagramId": instagram_id, "visualAnalysis": str(data.get("visualAnalysis") or "")}


def fetch_instagram_profile(username: str, config=cfg, http=None) -> Optional[Dict[str, Any]]:
    """Public profile from BoxAPI; ``http`` defaults to the requests module."""
    api_key = str(config.get("boxapi.api_key", "") or "").strip()
    if not api_key:
        raise AIConfigError(BOX_API_INIT_ERROR)
    url = str(config.get("boxapi.url", BOX_API_URL) or BOX_API_URL)
    http = http or requests
    try:
        resp = http.post(
            url,
            json={"username": username},
            headers={"Authorization": f"Token {api_key}"},
            timeout=30,
        )
    except requests.RequestException as e:
        raise AIServiceError(f"خطای شبکه در ارتباط با سرویس BoxAPI: {e}")

    try:
        data = resp.json()
    except ValueError:
        data = {}
    if resp.status_code >= 400:
        message = data.get("message") if isinstance(data, dict) else None
        raise AIServiceError(message or f"خطای {resp.status_code} از سرویس BoxAPI", status_code=resp.status_code)
    if not isinstance(data, dict) or str(data.get("status") or "").lower() != "ok":
        message = data.get("message") if isinstance(data, dict) else None
        raise AIServiceError(message or "پاسخ ناموفق از BoxAPI")
    return data.get("result")


def generate_competitor_analysis(ai: AIClient, instagram_id: str, user_about: str, profile: Optional[Dict] = None) -> str:
    return ai.complete([user_message(build_competitor_prompt(instagram_id, user_about, profile))])


def run_competitor_analysis(session, ai: AIClient, user_id: int, image_b64: str, mime: str):
    if not str(image_b64 or "").strip():
        raise ValidationFailed("لطفاً اسکرین‌شات صفحه را بارگذاری کنید.")
    user = get_user(session, user_id)
    screenshot = analyze_instagram_screenshot(ai, image_b64, mime)
    instagram_id = screenshot["instagramId"]

    profile = None
    try:
        profile = fetch_instagram_profile(instagram_id)
    except AIConfigError:
        logger.info("boxapi key not configured, analysing @%s without profile data", instagram_id)
    except AitemError as e:
        logger.warning("boxapi lookup failed for @%s: %s", instagram_id, e.message)

    web_analysis = generate_competitor_analysis(ai, instagram_id, user.about_info or "", profile)
    row = RecordStore(session).create("competitor_analyses", {
        "user_id": user_id,
        "instagram_id": instagram_id,
        "visual_analysis": screenshot["visualAnalysis"],
        "web_analysis": web_analysis,
    })
    log_event(logger, E.COMPETITOR_ANALYZE, user_id=user_id, instagram_id=instagram_id, profile=profile is not None)
    return row
