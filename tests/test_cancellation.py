import threading
import unittest

from core.cancellation import CancelToken, TeardownGuard
from core.errors import StreamCancelled


class CancelTokenTestCase(unittest.TestCase):
    def test_callbacks_run_once(self):
        token = CancelToken()
        calls = []
        token.on_cancel(lambda: calls.append("close"))
        token.cancel()
        token.cancel()
        self.assertEqual(calls, ["close"])
        self.assertTrue(token.cancelled)

    def test_callback_registered_after_cancel_runs_immediately(self):
        token = CancelToken()
        token.cancel()
        calls = []
        token.on_cancel(lambda: calls.append(1))
        self.assertEqual(calls, [1])

    def test_raise_if_cancelled(self):
        token = CancelToken()
        token.raise_if_cancelled()
        token.cancel()
        with self.assertRaises(StreamCancelled):
            token.raise_if_cancelled()

    def test_cancel_from_another_thread(self):
        token = CancelToken()
        t = threading.Thread(target=token.cancel)
        t.start()
        t.join()
        self.assertTrue(token.cancelled)


class TeardownGuardTestCase(unittest.TestCase):
    def test_runs_at_most_once(self):
        calls = []
        guard = TeardownGuard(lambda: calls.append(1))
        self.assertFalse(guard.done)
        self.assertTrue(guard())
        self.assertFalse(guard())
        self.assertTrue(guard.done)
        self.assertEqual(calls, [1])


if __name__ == "__main__":
    unittest.main()
