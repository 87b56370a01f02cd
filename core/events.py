"""
core/events.py: structured event logging

Event names live on class E, grouped by feature. log_event() renders them
in a grep-friendly single line:

    event=xxx | key=val | key=val

Usage:
    from core.log import get_logger
    from core.events import log_event, E

    logger = get_logger(__name__)
    log_event(logger, E.USAGE_CONSUME, user_id=42, category="story")
    # event=usage.consume | user_id=42 | category=story
"""

import logging
from typing import Any


class E:
    """Structured event names."""

    # auth
    AUTH_LOGIN_SUCCESS = "auth.login.success"
    AUTH_LOGIN_FAIL = "auth.login.fail"
    AUTH_SUBSCRIPTION_EXPIRED = "auth.subscription.expired"
    AUTH_TOKEN_INVALID = "auth.token.invalid"

    # usage / quota
    USAGE_CHECK = "usage.check"
    USAGE_EXCEED = "usage.exceed"
    USAGE_CONSUME = "usage.consume"
    USAGE_CONSUME_FAIL = "usage.consume.fail"
    USAGE_RESET = "usage.reset"
    USAGE_SWEEP_START = "usage.sweep.start"
    USAGE_SWEEP_COMPLETE = "usage.sweep.complete"

    # AI calls
    AI_CALL_START = "ai.call.start"
    AI_CALL_COMPLETE = "ai.call.complete"
    AI_CALL_FAIL = "ai.call.fail"
    AI_STREAM_START = "ai.stream.start"
    AI_STREAM_COMPLETE = "ai.stream.complete"
    AI_STREAM_FAIL = "ai.stream.fail"
    AI_STREAM_CANCEL = "ai.stream.cancel"
    AI_STREAM_BAD_FRAME = "ai.stream.bad_frame"

    # persistence
    HISTORY_CHAT_SAVE = "history.chat.save"
    HISTORY_CHAT_DELETE = "history.chat.delete"
    HISTORY_STORY_SAVE = "history.story.save"
    RECORD_CREATE = "record.create"
    RECORD_UPDATE = "record.update"
    RECORD_DELETE = "record.delete"

    # content workflows
    SCENARIO_RECORD_START = "scenario.record.start"
    SCENARIO_RECORD_COMPLETE = "scenario.record.complete"
    SCENARIO_CAPTION_FAIL = "scenario.caption.fail"
    STORY_GENERATE = "story.generate"
    CAPTION_GENERATE = "caption.generate"
    IMAGE_GENERATE = "image.generate"
    COMPETITOR_ANALYZE = "competitor.analyze"

    # admin
    ADMIN_USER_ADD = "admin.user.add"
    ADMIN_USER_DELETE = "admin.user.delete"
    ADMIN_USER_UPDATE = "admin.user.update"
    SUBSCRIPTION_EXTEND = "subscription.extend"
    BROADCAST_ADD = "broadcast.add"
    ACTIVITY_LOG_WRITE = "activity.log.write"

    # voice input
    VOICE_START = "voice.start"
    VOICE_STOP = "voice.stop"
    VOICE_ERROR = "voice.error"
    VOICE_RESTART = "voice.restart"

    # system
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"
    SYSTEM_DB_INIT = "system.db_init"


_MAX_VALUE = 300


def _render(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, BaseException):
        value = f"{type(value).__name__}: {getattr(value, 'message', '') or value}"
    # Persian error texts are multi-line; one event stays one line
    text = " ".join(str(value).split())
    if len(text) > _MAX_VALUE:
        text = text[: _MAX_VALUE - 3] + "..."
    return text


def log_event(logger: logging.Logger, event: str, level: str = "info", **fields: Any) -> None:
    """Write ``event=<name> | key=value | ...`` at ``level``.

    Exceptions render as ``Type: message``, None as ``-``; long values are
    cut at 300 characters. The caller's function and line appear in the
    record, not this helper's.
    """
    line = " | ".join([f"event={event}"] + [f"{key}={_render(value)}" for key, value in fields.items()])
    logger.log(logging.getLevelName(level.upper()), line, stacklevel=2)
