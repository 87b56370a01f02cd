import threading
from typing import Optional

from core.config import cfg
from core.db import Database
from core.usage_service import reset_due_users
from core.log import get_logger, trace_ctx
from core.events import log_event, E

logger = get_logger(__name__)


def run_usage_reset_once(db: Database) -> dict:
    session = db.get_session()
    try:
        log_event(logger, E.USAGE_SWEEP_START)
        result = reset_due_users(session)
        log_event(logger, E.USAGE_SWEEP_COMPLETE, scanned=result["scanned"], total=result["total"])
        return result
    finally:
        session.close()


def _worker_loop(db: Database, interval: int, stop: threading.Event):
    while not stop.is_set():
        with trace_ctx("usage-reset"):
            try:
                run_usage_reset_once(db)
            except Exception:
                logger.exception("usage reset sweep failed")
        stop.wait(interval)


def start_usage_reset_worker(db: Database, stop: Optional[threading.Event] = None):
    """Start the daily/weekly counter reset sweep; returns (thread, stop_event)."""
    interval = max(60, int(cfg.get("usage.reset_sweep_interval_seconds", 3600) or 3600))
    stop = stop or threading.Event()
    t = threading.Thread(target=_worker_loop, args=(db, interval, stop), name="usage-reset", daemon=True)
    t.start()
    return t, stop
