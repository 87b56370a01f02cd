"""
Client for the OpenAI-compatible chat-completions API.

One AIClient is built by the application entry point (AIClient.from_config)
and passed to the services; it owns its requests.Session. A base_url of
``mock://...`` or an api_key of ``mock`` switches to a local deterministic
provider for development and automated tests.
"""

import json
import time
from typing import Any, Callable, Dict, Iterator, List, Optional

import requests

from core.config import cfg
from core.log import get_logger
from core.events import log_event, E
from core.cancellation import CancelToken
from core.errors import AIConfigError, AIServiceError, StreamCancelled
from core.sse import SSEDeltaDecoder

logger = get_logger(__name__)

DEFAULT_MODEL = "google/gemini-2.5-flash"
DEFAULT_IMAGE_MODEL = "gemini-3-pro-image-preview"
MOCK_KEYS = ("mock", "mock-key", "test-mock")

Messages = List[Dict[str, Any]]


def _last_user_text(messages: Messages) -> str:
    for message in reversed(messages or []):
        if message.get("role") != "user":
            continue
        content = message.get("content")
        if isinstance(content, str):
            return content
        for part in content or []:
            if isinstance(part, dict) and part.get("type") == "text":
                return str(part.get("text") or "")
    return ""


def _mock_reply(messages: Messages, json_mode: bool = False, image: bool = False) -> str:
    if json_mode:
        return json.dumps(
            {"instagramId": "mock_page", "visualAnalysis": "این یک تحلیل بصری آزمایشی است."},
            ensure_ascii=False,
        )
    if image:
        return "![story](https://mock.local/images/story.png)"
    text = _last_user_text(messages).strip()
    topic = text.splitlines()[0][:60] if text else "بدون موضوع"
    return (
        f"پاسخ آزمایشی برای: {topic}\n\n"
        "این متن توسط سرویس شبیه‌سازی‌شده تولید شده است.\n"
        "---\n"
        "✨ نکته: برای پاسخ واقعی کلید API را تنظیم کنید."
    )


def _error_message(resp) -> str:
    detail = ""
    try:
        body = resp.json()
        if isinstance(body, dict):
            err = body.get("error")
            if isinstance(err, dict):
                detail = str(err.get("message") or "")
            elif err:
                detail = str(err)
            if not detail:
                detail = json.dumps(body, ensure_ascii=False)[:300]
    except ValueError:
        detail = str(getattr(resp, "text", "") or "")[:300]
    message = f"خطای سمت سرور ({resp.status_code})"
    return f"{message}: {detail}" if detail else message


class AIClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout: float = 180,
        image_model: str = DEFAULT_IMAGE_MODEL,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = str(base_url or "").strip()
        self.api_key = str(api_key or "").strip()
        self.model = str(model or DEFAULT_MODEL).strip()
        self.image_model = str(image_model or DEFAULT_IMAGE_MODEL).strip()
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config=cfg) -> "AIClient":
        try:
            timeout = float(config.get("ai.timeout_seconds", 180) or 180)
        except (TypeError, ValueError):
            timeout = 180.0
        return cls(
            base_url=config.get("ai.base_url", ""),
            api_key=config.get("ai.api_key", ""),
            model=config.get("ai.model", DEFAULT_MODEL),
            timeout=timeout,
            image_model=config.get("ai.image_model", DEFAULT_IMAGE_MODEL),
        )

    @property
    def is_mock(self) -> bool:
        return self.base_url.lower().startswith("mock://") or self.api_key.lower() in MOCK_KEYS

    @property
    def endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"

    def _require_credentials(self) -> None:
        if not self.api_key or not self.base_url:
            raise AIConfigError()

    def _post(self, payload: Dict[str, Any], stream: bool = False):
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json; charset=utf-8",
        }
        if stream:
            headers["Accept"] = "text/event-stream"
        try:
            # keep Persian text unescaped on the wire
            body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
            resp = self.session.post(self.endpoint, data=body, headers=headers, timeout=self.timeout, stream=stream)
        except requests.RequestException as e:
            log_event(logger, E.AI_CALL_FAIL, level="error", model=payload.get("model"), error=e)
            raise AIServiceError(f"خطای ارتباط با سرور: {e}")
        if resp.status_code >= 400:
            message = _error_message(resp)
            resp.close()
            log_event(logger, E.AI_CALL_FAIL, level="error", model=payload.get("model"), status=resp.status_code, error=message)
            raise AIServiceError(message, status_code=resp.status_code)
        return resp

    def complete(self, messages: Messages, json_mode: bool = False, model: Optional[str] = None) -> str:
        """Single non-streaming completion; returns choices[0].message.content."""
        model_name = model or self.model
        if self.is_mock:
            return _mock_reply(messages, json_mode=json_mode, image=model_name == self.image_model)
        self._require_credentials()

        payload: Dict[str, Any] = {"model": model_name, "messages": messages}
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        started = time.perf_counter()
        log_event(logger, E.AI_CALL_START, model=model_name, json_mode=json_mode)
        resp = self._post(payload)
        try:
            data = resp.json()
        except ValueError:
            raise AIServiceError("پاسخ نامعتبر از سرویس هوش مصنوعی.", status_code=resp.status_code)
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise AIServiceError("پاسخ نامعتبر از سرویس هوش مصنوعی.", status_code=resp.status_code)
        content = str((choices[0].get("message") or {}).get("content") or "")
        log_event(
            logger, E.AI_CALL_COMPLETE,
            model=model_name, chars=len(content), elapsed=f"{time.perf_counter() - started:.2f}s",
        )
        return content

    def iter_completion(
        self,
        messages: Messages,
        cancel_token: Optional[CancelToken] = None,
        model: Optional[str] = None,
    ) -> Iterator[str]:
        """Yield text deltas of a streamed completion in arrival order."""
        model_name = model or self.model
        if self.is_mock:
            for line in _mock_reply(messages).splitlines(keepends=True):
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                yield line
            return
        self._require_credentials()

        started = time.perf_counter()
        log_event(logger, E.AI_STREAM_START, model=model_name)
        resp = self._post({"model": model_name, "messages": messages, "stream": True}, stream=True)
        if cancel_token is not None:
            cancel_token.on_cancel(resp.close)
        decoder = SSEDeltaDecoder()
        chunks = 0
        try:
            for raw in resp.iter_content(chunk_size=None):
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                if not raw:
                    continue
                for delta in decoder.feed(raw):
                    chunks += 1
                    yield delta
                if decoder.done:
                    break
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            for delta in decoder.finish():
                chunks += 1
                yield delta
        except StreamCancelled:
            log_event(logger, E.AI_STREAM_CANCEL, model=model_name, chunks=chunks)
            raise
        except requests.RequestException as e:
            if cancel_token is not None and cancel_token.cancelled:
                log_event(logger, E.AI_STREAM_CANCEL, model=model_name, chunks=chunks)
                raise StreamCancelled()
            log_event(logger, E.AI_STREAM_FAIL, level="error", model=model_name, chunks=chunks, error=e)
            raise AIServiceError(f"ارتباط در میانه دریافت پاسخ قطع شد: {e}")
        finally:
            resp.close()
        log_event(
            logger, E.AI_STREAM_COMPLETE,
            model=model_name, chunks=chunks, bad_frames=decoder.bad_frames,
            elapsed=f"{time.perf_counter() - started:.2f}s",
        )

    def stream_completion(
        self,
        messages: Messages,
        on_chunk: Callable[[str], None],
        cancel_token: Optional[CancelToken] = None,
        model: Optional[str] = None,
    ) -> str:
        """Forward every delta to ``on_chunk`` and return the full text."""
        parts: List[str] = []
        for delta in self.iter_completion(messages, cancel_token=cancel_token, model=model):
            parts.append(delta)
            on_chunk(delta)
        return "".join(parts)

    def close(self) -> None:
        self.session.close()
