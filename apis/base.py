import contextvars
import queue
import threading
from typing import Any, Callable, Iterator, Optional

from fastapi import HTTPException

from core.log import get_logger
from core.cancellation import CancelToken
from core.errors import (
    AIConfigError,
    AIServiceError,
    AitemError,
    QuotaExceededError,
    RecordNotFound,
    StoreError,
    StreamCancelled,
    ValidationFailed,
    describe_ai_error,
)

logger = get_logger(__name__)

# exception type -> (http status, business code); first match wins
ERROR_STATUS = (
    (QuotaExceededError, 429, 42901),
    (ValidationFailed, 400, 40001),
    (RecordNotFound, 404, 40401),
    (AIConfigError, 503, 50301),
    (AIServiceError, 502, 50201),
    (StreamCancelled, 409, 40901),
    (StoreError, 500, 50001),
)


def success_response(data: Any = None, message: str = "success", code: int = 0) -> dict:
    return {"code": code, "message": message, "data": data}


def error_response(code: int, message: str, data: Any = None) -> dict:
    return {"code": code, "message": message, "data": data}


def error_status(exc: AitemError):
    for exc_type, http_status, code in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return http_status, code
    return 500, 50000


def http_error(exc: AitemError) -> HTTPException:
    http_status, code = error_status(exc)
    message = describe_ai_error(exc) if isinstance(exc, AIServiceError) else exc.message
    data = {"category": exc.category} if isinstance(exc, QuotaExceededError) else None
    return HTTPException(status_code=http_status, detail=error_response(code, message, data))


_END = object()


class _StreamFailure:
    def __init__(self, message: str):
        self.message = message


def stream_text(run: Callable[[Callable[[str], None]], Any], cancel_token: Optional[CancelToken] = None) -> Iterator[str]:
    """Run ``run(on_chunk)`` on a worker thread and yield its chunks in order.

    When the consumer stops early (client went away) the token is cancelled,
    which closes the upstream AI stream. A failure after the first byte can no
    longer change the status code, so its message is appended to the body.
    """
    cancel_token = cancel_token or CancelToken()
    chunks: "queue.Queue[Any]" = queue.Queue()

    def _worker():
        try:
            run(chunks.put)
        except StreamCancelled:
            logger.info("stream cancelled by client")
        except AitemError as e:
            chunks.put(_StreamFailure(describe_ai_error(e)))
        except Exception as e:
            logger.exception("stream worker failed: %s", e)
            chunks.put(_StreamFailure("خطای داخلی سرور."))
        finally:
            chunks.put(_END)

    # the worker logs under the same trace and user as the request
    ctx = contextvars.copy_context()
    threading.Thread(target=ctx.run, args=(_worker,), name="ai-stream", daemon=True).start()
    try:
        while True:
            item = chunks.get()
            if item is _END:
                return
            if isinstance(item, _StreamFailure):
                yield f"\n\n{item.message}"
                continue
            yield item
    finally:
        cancel_token.cancel()
