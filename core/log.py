"""
core/log.py: application logging

Every record carries two context fields, filled from ContextVars:

    2026-05-01 12:00:00 [INFO ] [3f9a1c2e u=42] core.chat_service.send_chat_message:88 - event=chat.send ...

- ``trace``: one id per HTTP request or background sweep (``set_trace_id``,
  ``trace_ctx``); the middleware echoes an incoming ``X-Trace-Id``
- ``user``: the authenticated user of the request (``bind_user``), ``-``
  outside a request

Handlers are attached once to the root logger by ``configure_logging``;
modules only call ``get_logger(__name__)``.
"""

import logging
import logging.handlers
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Generator, List, Optional

import colorlog

from core.config import cfg

_trace_var: ContextVar[str] = ContextVar("aitem_trace", default="-")
_user_var: ContextVar[str] = ContextVar("aitem_user", default="-")

LOG_FORMAT = "%(asctime)s [%(levelname)-5s] [%(trace)s u=%(user)s] %(name)s.%(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

_OWNED = "_aitem_handler"


def _short_id(value: Optional[str]) -> str:
    return str(value or "").strip()[:16] or uuid.uuid4().hex[:8]


def set_trace_id(tid: Optional[str] = None) -> str:
    """Start a new trace for the current context; a blank id gets a random one."""
    tid = _short_id(tid)
    _trace_var.set(tid)
    _user_var.set("-")
    return tid


def get_trace_id() -> str:
    return _trace_var.get()


def bind_user(user_id) -> None:
    _user_var.set(str(user_id) if user_id is not None else "-")


@contextmanager
def trace_ctx(trace_id: Optional[str] = None) -> Generator[str, None, None]:
    trace_token = _trace_var.set(_short_id(trace_id))
    user_token = _user_var.set("-")
    try:
        yield _trace_var.get()
    finally:
        _user_var.reset(user_token)
        _trace_var.reset(trace_token)


class _ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.trace = _trace_var.get()
        record.user = _user_var.get()
        return True


def _level_from(value, fallback: int = logging.INFO) -> int:
    level = logging.getLevelName(str(value or "").strip().upper())
    return level if isinstance(level, int) else fallback


def _own(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(_ContextFilter())
    setattr(handler, _OWNED, True)
    return handler


def configure_logging(level=None, log_file: Optional[str] = None) -> List[logging.Handler]:
    """Attach the console (and optional rotating file) handler to the root logger.

    Runs once per process; later calls return the handlers already in place,
    so a reloaded app does not print every line twice.
    """
    root = logging.getLogger()
    existing = [h for h in root.handlers if getattr(h, _OWNED, False)]
    if existing:
        return existing

    level = _level_from(level if level is not None else cfg.get("log.level", "INFO"))
    log_file = cfg.get("log.file", "") if log_file is None else log_file
    root.setLevel(level)

    handlers = [
        _own(
            colorlog.StreamHandler(stream=sys.stdout),
            level,
            colorlog.ColoredFormatter("%(log_color)s" + LOG_FORMAT, datefmt=DATE_FORMAT, log_colors=LOG_COLORS),
        )
    ]
    if log_file:
        handlers.append(_own(
            logging.handlers.RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=7, encoding="utf-8"),
            level,
            logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT),
        ))
    for handler in handlers:
        root.addHandler(handler)
    return handlers


configure_logging()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
