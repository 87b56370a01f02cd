import unittest

from core.voice_input import (
    ERROR_MESSAGES,
    STATE_ERROR,
    STATE_IDLE,
    STATE_LISTENING,
    UNSUPPORTED_ERROR,
    VoiceInputAdapter,
    build_transcript,
)


class _Alt:
    def __init__(self, transcript):
        self.transcript = transcript


class FakeRecognizer:
    def __init__(self, fail_start=False):
        self.continuous = False
        self.lang = ""
        self.interim_results = False
        self.on_result = None
        self.on_error = None
        self.on_end = None
        self.fail_start = fail_start
        self.starts = 0
        self.stops = 0

    def start(self):
        if self.fail_start:
            raise RuntimeError("already started")
        self.starts += 1

    def stop(self):
        self.stops += 1


class VoiceInputAdapterTestCase(unittest.TestCase):
    def setUp(self):
        self.rec = FakeRecognizer()
        self.adapter = VoiceInputAdapter(lambda: self.rec)

    def test_recognizer_is_configured_for_persian(self):
        self.assertTrue(self.adapter.is_supported)
        self.assertTrue(self.rec.continuous)
        self.assertTrue(self.rec.interim_results)
        self.assertEqual(self.rec.lang, "fa-IR")

    def test_transcript_is_rebuilt_not_appended(self):
        self.adapter.start_listening()
        self.rec.on_result([[_Alt("سلام")]])
        self.assertEqual(self.adapter.transcript, "سلام")
        self.rec.on_result([[_Alt("سلام")], [_Alt(" دنیا")]])
        self.assertEqual(self.adapter.transcript, "سلام دنیا")

    def test_spoken_keyword_becomes_newline(self):
        self.assertEqual(build_transcript([["خط اول اسپیس خط دوم"]]), "خط اول \n خط دوم")

    def test_start_clears_previous_state(self):
        self.adapter.start_listening()
        self.rec.on_result([["قبلی"]])
        self.adapter.stop_listening()
        self.adapter.start_listening()
        self.assertEqual(self.adapter.transcript, "")
        self.assertIsNone(self.adapter.error)
        self.assertEqual(self.adapter.state, STATE_LISTENING)

    def test_start_twice_starts_once(self):
        self.adapter.start_listening()
        self.adapter.start_listening()
        self.assertEqual(self.rec.starts, 1)

    def test_no_speech_is_ignored(self):
        self.adapter.start_listening()
        self.rec.on_error("no-speech")
        self.assertTrue(self.adapter.is_listening)
        self.assertIsNone(self.adapter.error)

    def test_permission_error_is_translated(self):
        self.adapter.start_listening()
        self.rec.on_error("not-allowed")
        self.assertEqual(self.adapter.error, ERROR_MESSAGES["not-allowed"])
        self.assertEqual(self.adapter.state, STATE_ERROR)
        self.assertFalse(self.adapter.is_listening)

    def test_unknown_error_passes_through(self):
        self.adapter.start_listening()
        self.rec.on_error("audio-capture")
        self.assertEqual(self.adapter.error, "audio-capture")

    def test_end_restarts_while_listening(self):
        self.adapter.start_listening()
        self.rec.on_end()
        self.assertEqual(self.rec.starts, 2)
        self.assertTrue(self.adapter.is_listening)

    def test_end_after_stop_does_not_restart(self):
        self.adapter.start_listening()
        self.adapter.stop_listening()
        self.rec.on_end()
        self.assertEqual(self.rec.starts, 1)
        self.assertEqual(self.adapter.state, STATE_IDLE)

    def test_failed_restart_goes_idle(self):
        self.adapter.start_listening()
        self.rec.fail_start = True
        with self.assertLogs("core.voice_input", level="ERROR") as captured:
            self.rec.on_end()
        self.assertEqual(self.adapter.state, STATE_IDLE)
        self.assertEqual(len(captured.records), 1)
        self.assertIn("code=restart_failed", captured.records[0].getMessage())

    def test_failed_start_is_an_error(self):
        rec = FakeRecognizer(fail_start=True)
        adapter = VoiceInputAdapter(lambda: rec)
        with self.assertLogs("core.voice_input", level="WARNING") as captured:
            adapter.start_listening()
        self.assertEqual(adapter.state, STATE_ERROR)
        self.assertIsNotNone(adapter.error)
        self.assertEqual(len(captured.records), 1)
        self.assertIn("error=RuntimeError: already started", captured.records[0].getMessage())

    def test_close_is_idempotent_and_detaches(self):
        self.adapter.start_listening()
        self.assertTrue(self.adapter.close())
        self.assertFalse(self.adapter.close())
        self.assertEqual(self.rec.stops, 1)
        self.assertIsNone(self.rec.on_result)
        self.assertIsNone(self.rec.on_end)
        self.adapter.start_listening()
        self.assertEqual(self.rec.starts, 1)


class UnsupportedVoiceInputTestCase(unittest.TestCase):
    def test_missing_recognizer(self):
        adapter = VoiceInputAdapter(None)
        self.assertFalse(adapter.is_supported)
        self.assertEqual(adapter.error, UNSUPPORTED_ERROR)
        adapter.start_listening()
        adapter.stop_listening()
        self.assertFalse(adapter.is_listening)
        self.assertTrue(adapter.close())

    def test_insecure_context(self):
        adapter = VoiceInputAdapter(FakeRecognizer, secure_context=False)
        self.assertFalse(adapter.is_supported)


if __name__ == "__main__":
    unittest.main()
