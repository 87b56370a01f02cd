import unittest
from unittest import mock

from core.history_service import (
    STORY_HISTORY_SIZE,
    delete_chat_history,
    get_chat_history,
    get_story_history,
    save_chat_history,
    save_story_history,
)
from core.models import ChatHistory
from core.schemas import ChatMessage
from tests.support import make_db, make_user


class ChatHistoryTestCase(unittest.TestCase):
    def setUp(self):
        self.db = make_db()
        self.session = self.db.get_session()
        self.user = make_user(self.session)

    def tearDown(self):
        self.session.close()
        self.db.dispose()

    def test_empty_history(self):
        self.assertEqual(get_chat_history(self.session, self.user.id), [])

    def test_saving_the_same_list_twice_is_idempotent(self):
        messages = [
            ChatMessage(sender="user", text="سلام"),
            ChatMessage(sender="ai", text="سلام! چطور کمکت کنم؟"),
        ]
        first = save_chat_history(self.session, self.user.id, messages)
        second = save_chat_history(self.session, self.user.id, messages)
        self.assertEqual(first, second)
        self.assertEqual(self.session.query(ChatHistory).count(), 1)
        self.assertEqual([m.text for m in get_chat_history(self.session, self.user.id)], ["سلام", "سلام! چطور کمکت کنم؟"])

    def test_last_write_wins(self):
        save_chat_history(self.session, self.user.id, [{"sender": "user", "text": "a"}, {"sender": "ai", "text": "b"}])
        save_chat_history(self.session, self.user.id, [{"sender": "user", "text": "c"}])
        self.assertEqual([m.text for m in get_chat_history(self.session, self.user.id)], ["c"])

    def test_interim_flag_and_image_are_not_stored(self):
        save_chat_history(self.session, self.user.id, [
            {"sender": "user", "text": "عکس", "imageUrl": "data:image/png;base64,AAAA", "isInterim": True},
        ])
        row = self.session.get(ChatHistory, self.user.id)
        self.assertEqual(row.messages, [{"sender": "user", "text": "عکس"}])

    def test_malformed_stored_messages_are_skipped(self):
        self.session.add(ChatHistory(user_id=self.user.id, messages=[{"sender": "bot"}, {"sender": "ai", "text": "ok"}]))
        self.session.commit()
        with mock.patch("core.history_service.logger") as logger:
            history = get_chat_history(self.session, self.user.id)
        self.assertEqual([m.text for m in history], ["ok"])
        logger.warning.assert_called_once()

    def test_delete(self):
        save_chat_history(self.session, self.user.id, [{"sender": "user", "text": "x"}])
        self.assertTrue(delete_chat_history(self.session, self.user.id))
        self.assertFalse(delete_chat_history(self.session, self.user.id))
        self.assertEqual(get_chat_history(self.session, self.user.id), [])


class StoryHistoryTestCase(unittest.TestCase):
    def setUp(self):
        self.db = make_db()
        self.session = self.db.get_session()
        self.user = make_user(self.session)

    def tearDown(self):
        self.session.close()
        self.db.dispose()

    def test_newest_first_and_bounded(self):
        for i in range(STORY_HISTORY_SIZE + 3):
            save_story_history(self.session, self.user.id, f"سناریو {i}")
        stories = get_story_history(self.session, self.user.id)
        self.assertEqual(len(stories), STORY_HISTORY_SIZE)
        self.assertEqual(stories[0].content, f"سناریو {STORY_HISTORY_SIZE + 2}")
        self.assertEqual(stories[-1].content, "سناریو 3")


if __name__ == "__main__":
    unittest.main()
