import unittest
from datetime import datetime, timedelta

from core.content_service import (
    add_caption,
    add_idea,
    delete_record,
    get_algorithm_news,
    list_records,
    notification_counts,
    save_algorithm_news,
    save_plan,
)
from core.errors import RecordNotFound, ValidationFailed
from core.models import ActivityLog
from core.record_store import RecordStore, record_to_dict
from tests.support import make_db, make_user


class RecordStoreTestCase(unittest.TestCase):
    def setUp(self):
        self.db = make_db()
        self.session = self.db.get_session()
        self.store = RecordStore(self.session)
        self.user = make_user(self.session)

    def tearDown(self):
        self.session.close()
        self.db.dispose()

    def test_create_fills_timestamp(self):
        row = self.store.create("plans", {"user_id": self.user.id, "content": "برنامه هفته"})
        self.assertIsNotNone(row.id)
        self.assertIsInstance(row.timestamp, datetime)
        self.assertEqual(record_to_dict(row)["content"], "برنامه هفته")

    def test_invalid_payload_is_rejected(self):
        with self.assertRaises(ValidationFailed):
            self.store.create("plans", {"user_id": self.user.id, "content": ""})
        with self.assertRaises(ValidationFailed):
            self.store.create("scenarios", {"user_id": self.user.id, "scenario_number": 0, "content": "x"})

    def test_unknown_collection(self):
        with self.assertRaises(ValueError):
            self.store.list_all("videos")

    def test_scenarios_are_ordered_by_number(self):
        for number in (3, 1, 2):
            self.store.create("scenarios", {"user_id": self.user.id, "scenario_number": number, "content": f"s{number}"})
        numbers = [row.scenario_number for row in self.store.list_for_user("scenarios", self.user.id)]
        self.assertEqual(numbers, [1, 2, 3])

    def test_update_and_require(self):
        row = self.store.create("captions", {"user_id": self.user.id, "title": "t", "content": "قدیمی"})
        self.store.update("captions", row.id, {"content": "جدید"})
        self.assertEqual(self.store.require("captions", row.id).content, "جدید")
        with self.assertRaises(ValidationFailed):
            self.store.update("captions", row.id, {"content": ""})
        with self.assertRaises(RecordNotFound):
            self.store.require("captions", 404)

    def test_delete(self):
        row = self.store.create("reports", {"user_id": self.user.id, "content": "گزارش"})
        self.assertTrue(self.store.delete("reports", row.id))
        self.assertFalse(self.store.delete("reports", row.id))


class ContentServiceTestCase(unittest.TestCase):
    def setUp(self):
        self.db = make_db()
        self.session = self.db.get_session()
        self.user = make_user(self.session)
        self.other = make_user(self.session)

    def tearDown(self):
        self.session.close()
        self.db.dispose()

    def test_caption_list_is_newest_twenty(self):
        for i in range(25):
            add_caption(self.session, self.user.id, f"c{i}", f"متن {i}")
        captions = list_records(self.session, "captions", self.user.id)
        self.assertEqual(len(captions), 20)

    def test_delete_only_own_record(self):
        plan = save_plan(self.session, self.user.id, "برنامه")
        self.assertFalse(delete_record(self.session, "plans", plan.id, user_id=self.other.id))
        self.assertTrue(delete_record(self.session, "plans", plan.id, user_id=self.user.id))

    def test_idea_logs_activity(self):
        add_idea(self.session, self.user.id, "ویدیو پشت صحنه")
        self.assertEqual(self.session.query(ActivityLog).filter(ActivityLog.user_id == self.user.id).count(), 1)

    def test_notification_counts_respect_last_seen(self):
        store = RecordStore(self.session)
        old = datetime.now() - timedelta(days=3)
        store.create("plans", {"user_id": self.user.id, "content": "قدیمی", "timestamp": old})
        store.create("plans", {"user_id": self.user.id, "content": "جدید"})
        store.create("scenarios", {"user_id": self.user.id, "scenario_number": 1, "content": "s"})

        counts = notification_counts(self.session, self.user.id, {"plans": datetime.now() - timedelta(days=1)})
        self.assertEqual(counts, {"scenarios": 1, "plans": 1, "reports": 0})
        self.assertEqual(notification_counts(self.session, self.user.id)["plans"], 2)

    def test_algorithm_news_is_a_single_note(self):
        self.assertIsNone(get_algorithm_news(self.session))
        first = save_algorithm_news(self.session, "الگوریتم ریلز تغییر کرد")
        second = save_algorithm_news(self.session, "به‌روزرسانی جدید")
        self.assertEqual(first.id, second.id)
        self.assertEqual(get_algorithm_news(self.session).content, "به‌روزرسانی جدید")


if __name__ == "__main__":
    unittest.main()
