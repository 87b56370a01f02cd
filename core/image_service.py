"""
Story image generation.

The reference photo uploaded by the user is sent to the image model together
with the request text; large uploads are re-encoded in memory first so the
request body stays within what the vendor accepts.
"""

import base64
import binascii
import re
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from core.log import get_logger
from core.events import log_event, E
from core.ai_client import AIClient
from core.errors import AIServiceError, ValidationFailed
from core.prompt_templates import build_story_image_prompt, user_message
from core.schemas import ImagePayload
from core.usage_service import ensure_can_proceed, increment_usage
from core.user_service import get_user

logger = get_logger(__name__)

MAX_UPLOAD_BYTES = 1024 * 1024
NO_URL_ERROR = "مدل به جای لینک تصویر، توضیحات متنی ارسال کرد. لطفاً دوباره تلاش کنید."

_URL_PATTERN = re.compile(r"https?://[^\s)\"]+")


def extract_image_url(content: str) -> str:
    match = _URL_PATTERN.search(content or "")
    if match is None:
        raise AIServiceError(NO_URL_ERROR)
    return match.group(0)


def compress_image_bytes(image_bytes: bytes, max_size: int, format: str = "JPEG") -> BytesIO:
    """Lower JPEG quality, then scale down, until the output fits ``max_size``."""
    img = Image.open(BytesIO(image_bytes))
    if img.mode != "RGB":
        img = img.convert("RGB")

    quality = 85
    while True:
        output = BytesIO()
        img.save(output, format=format, quality=quality)
        if output.tell() <= max_size:
            output.seek(0)
            return output
        if quality > 30:
            quality -= 10
            continue
        width, height = img.size
        new_width, new_height = int(width * 0.9), int(height * 0.9)
        if new_width < 100 or new_height < 100:
            output.seek(0)
            return output
        img = img.resize((new_width, new_height), Image.LANCZOS)


def prepare_reference_image(image: ImagePayload, max_size: int = MAX_UPLOAD_BYTES) -> ImagePayload:
    try:
        raw = base64.b64decode(image.data, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationFailed("فایل تصویر نامعتبر است.")
    if len(raw) <= max_size:
        return image
    try:
        compressed = compress_image_bytes(raw, max_size)
    except (UnidentifiedImageError, OSError):
        raise ValidationFailed("فایل تصویر نامعتبر است.")
    data = compressed.getvalue()
    logger.info("reference image re-encoded: %dKB -> %dKB", len(raw) // 1024, len(data) // 1024)
    return ImagePayload(data=base64.b64encode(data).decode("ascii"), mime="image/jpeg")


def generate_story_image(session, ai: AIClient, user_id: int, text: str, image: ImagePayload) -> str:
    """Ask the image model for a story background; returns the image URL."""
    text = str(text or "").strip()
    if not text or image is None:
        raise ValidationFailed("لطفاً هم عکس و هم متن را وارد کنید.")
    user = get_user(session, user_id)
    ensure_can_proceed(user, "image")

    reference = prepare_reference_image(image)
    content = ai.complete([user_message(build_story_image_prompt(text), reference)], model=ai.image_model)
    url = extract_image_url(content)

    increment_usage(session, user_id, "image")
    log_event(logger, E.IMAGE_GENERATE, user_id=user_id, url=url)
    return url
