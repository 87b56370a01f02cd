import logging
import threading
import unittest

from core.errors import AIConfigError
from core.events import E, log_event
from core.log import _ContextFilter, bind_user, configure_logging, get_trace_id, set_trace_id, trace_ctx


def _record():
    return logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)


class LogContextTestCase(unittest.TestCase):
    def test_trace_ctx_restores_outer_trace(self):
        set_trace_id("outer")
        bind_user(42)
        with trace_ctx("usage-reset") as tid:
            self.assertEqual(tid, "usage-reset")
            record = _record()
            _ContextFilter().filter(record)
            self.assertEqual((record.trace, record.user), ("usage-reset", "-"))
        self.assertEqual(get_trace_id(), "outer")
        record = _record()
        _ContextFilter().filter(record)
        self.assertEqual(record.user, "42")

    def test_blank_trace_gets_random_id(self):
        tid = set_trace_id("  ")
        self.assertEqual(len(tid), 8)
        self.assertEqual(set_trace_id("x" * 40), "x" * 16)

    def test_new_thread_starts_without_request_context(self):
        set_trace_id("req-1")
        seen = []
        t = threading.Thread(target=lambda: seen.append(get_trace_id()))
        t.start()
        t.join()
        self.assertEqual(seen, ["-"])

    def test_configure_is_idempotent(self):
        first = configure_logging()
        second = configure_logging(level="DEBUG")
        self.assertEqual(first, second)
        root = logging.getLogger()
        self.assertEqual(sum(1 for h in root.handlers if h in first), len(first))


class LogEventTestCase(unittest.TestCase):
    def test_event_line_is_single_line(self):
        logger = logging.getLogger("aitem.test.events")
        with self.assertLogs(logger, level="WARNING") as captured:
            log_event(logger, E.SCENARIO_CAPTION_FAIL, level="warning", scenario_id=3, error=AIConfigError(), skipped=True, caption=None)
        line = captured.records[0].getMessage()
        self.assertTrue(line.startswith("event=scenario.caption.fail | scenario_id=3 | error=AIConfigError: "))
        self.assertNotIn("\n", line)
        self.assertTrue(line.endswith("| skipped=true | caption=-"))
        self.assertEqual(captured.records[0].funcName, "test_event_line_is_single_line")

    def test_long_values_are_cut(self):
        logger = logging.getLogger("aitem.test.events")
        with self.assertLogs(logger, level="INFO") as captured:
            log_event(logger, E.RECORD_CREATE, content="x" * 1000)
        value = captured.records[0].getMessage().split("content=", 1)[1]
        self.assertEqual(len(value), 300)
        self.assertTrue(value.endswith("..."))


if __name__ == "__main__":
    unittest.main()
