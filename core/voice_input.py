"""
Voice input adapter.

Wraps a continuous speech recognizer (Persian, interim results on) and keeps
one observable state: idle, listening or error. The transcript is rebuilt
from every result the recognizer reports each time, so late corrections of
earlier words replace them instead of being appended.

The recognizer itself is platform-provided; anything matching
``SpeechRecognizer`` can be plugged in through ``recognizer_factory``.
"""

import threading
from typing import Any, Callable, Optional, Protocol, Sequence

from core.log import get_logger
from core.events import log_event, E
from core.cancellation import TeardownGuard

logger = get_logger(__name__)

STATE_IDLE = "idle"
STATE_LISTENING = "listening"
STATE_ERROR = "error"

LANGUAGE = "fa-IR"
NEWLINE_KEYWORD = "اسپیس"

UNSUPPORTED_ERROR = "تشخیص گفتار در این مرورگر پشتیبانی نمی‌شود."
START_ERROR = "شروع تشخیص گفتار ممکن نشد."

IGNORED_ERRORS = ("no-speech",)
ERROR_MESSAGES = {
    "not-allowed": "دسترسی به میکروفون رد شد. لطفاً در تنظیمات مرورگر خود دسترسی را فعال کنید.",
    "network": "خطای شبکه. برای استفاده از تشخیص گفتار به اینترنت متصل باشید.",
    "service-not-allowed": "سرویس تشخیص گفتار توسط مرورگر یا سیستم شما مجاز نیست.",
}


class SpeechRecognizer(Protocol):
    continuous: bool
    lang: str
    interim_results: bool
    on_result: Optional[Callable[[Sequence[Any]], None]]
    on_error: Optional[Callable[[str], None]]
    on_end: Optional[Callable[[], None]]

    def start(self) -> None: ...

    def stop(self) -> None: ...


def _alternative_text(result) -> str:
    if isinstance(result, str):
        return result
    alternative = result[0] if len(result) else ""
    if isinstance(alternative, str):
        return alternative
    if isinstance(alternative, dict):
        return str(alternative.get("transcript") or "")
    return str(getattr(alternative, "transcript", "") or "")


def build_transcript(results: Sequence[Any]) -> str:
    text = "".join(_alternative_text(result) for result in results)
    return text.replace(NEWLINE_KEYWORD, "\n")


def describe_voice_error(code: str) -> str:
    return ERROR_MESSAGES.get(code, code)


class VoiceInputAdapter:
    def __init__(self, recognizer_factory: Optional[Callable[[], SpeechRecognizer]] = None, secure_context: bool = True):
        self._lock = threading.RLock()
        self._intent = False
        self._state = STATE_IDLE
        self._transcript = ""
        self._error: Optional[str] = None
        self._recognizer: Optional[SpeechRecognizer] = None
        self._close = TeardownGuard(self._teardown)

        self.is_supported = recognizer_factory is not None and secure_context
        if not self.is_supported:
            self._error = UNSUPPORTED_ERROR
            return

        rec = recognizer_factory()
        rec.continuous = True
        rec.lang = LANGUAGE
        rec.interim_results = True
        rec.on_result = self._handle_result
        rec.on_error = self._handle_error
        rec.on_end = self._handle_end
        self._recognizer = rec

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_listening(self) -> bool:
        return self._state == STATE_LISTENING

    @property
    def transcript(self) -> str:
        return self._transcript

    @property
    def error(self) -> Optional[str]:
        return self._error

    def start_listening(self) -> None:
        with self._lock:
            rec = self._recognizer
            if rec is None or self._close.done or self._intent:
                return
            self._transcript = ""
            self._error = None
            self._intent = True
            try:
                rec.start()
            except Exception as e:
                self._intent = False
                self._error = START_ERROR
                self._state = STATE_ERROR
                log_event(logger, E.VOICE_ERROR, level="error", code="start_failed", error=e)
                return
            self._state = STATE_LISTENING
            log_event(logger, E.VOICE_START, lang=LANGUAGE)

    def stop_listening(self) -> None:
        with self._lock:
            rec = self._recognizer
            if rec is None or not self._intent:
                return
            self._intent = False
            rec.stop()
            self._state = STATE_IDLE
            log_event(logger, E.VOICE_STOP, chars=len(self._transcript))

    def close(self) -> bool:
        return self._close()

    def _teardown(self) -> None:
        with self._lock:
            self._intent = False
            rec = self._recognizer
            if rec is None:
                return
            rec.on_result = None
            rec.on_error = None
            rec.on_end = None
            rec.stop()
            if self._state == STATE_LISTENING:
                self._state = STATE_IDLE

    def _handle_result(self, results: Sequence[Any]) -> None:
        with self._lock:
            self._transcript = build_transcript(results)

    def _handle_error(self, code: str) -> None:
        if code in IGNORED_ERRORS:
            return
        with self._lock:
            self._error = describe_voice_error(code)
            self._intent = False
            self._state = STATE_ERROR
        log_event(logger, E.VOICE_ERROR, level="warning", code=code)

    def _handle_end(self) -> None:
        with self._lock:
            if not self._intent:
                if self._state == STATE_LISTENING:
                    self._state = STATE_IDLE
                return
            try:
                self._recognizer.start()
            except Exception as e:
                log_event(logger, E.VOICE_ERROR, level="error", code="restart_failed", error=e)
                self._intent = False
                self._state = STATE_IDLE
                return
        log_event(logger, E.VOICE_RESTART)
