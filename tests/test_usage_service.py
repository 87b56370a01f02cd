import unittest
from datetime import datetime, timedelta

from core.errors import QuotaExceededError
from core.models import ActivityLog, User
from core.usage_service import (
    can_proceed,
    effective_limit,
    ensure_can_proceed,
    increment_usage,
    apply_usage_reset,
    maybe_reset_usage,
    reset_due_users,
    usage_summary,
)
from tests.support import make_db, make_user


class UsageLimitTestCase(unittest.TestCase):
    def test_default_limits_apply_without_override(self):
        user = User(story_limit=None, caption_idea_limit=None, image_limit=None, chat_limit=None)
        self.assertEqual(effective_limit(user, "story"), 2)
        self.assertEqual(effective_limit(user, "caption_idea"), 2)
        self.assertEqual(effective_limit(user, "image"), 35)
        self.assertEqual(effective_limit(user, "chat"), 150)

    def test_override_wins_even_when_zero(self):
        user = User(chat_limit=0, chat_messages=0)
        self.assertEqual(effective_limit(user, "chat"), 0)
        self.assertFalse(can_proceed(user, "chat"))

    def test_can_proceed_is_strictly_below_limit(self):
        user = User(story_requests=1, story_limit=2)
        self.assertTrue(can_proceed(user, "story"))
        user.story_requests = 2
        self.assertFalse(can_proceed(user, "story"))

    def test_missing_counter_counts_as_zero(self):
        user = User(image_requests=None, image_limit=None)
        self.assertTrue(can_proceed(user, "image"))

    def test_ensure_can_proceed_raises_persian_message(self):
        user = User(chat_messages=150, chat_limit=None)
        with self.assertRaises(QuotaExceededError) as ctx:
            ensure_can_proceed(user, "chat")
        self.assertEqual(ctx.exception.category, "chat")
        self.assertIn("محدودیت پیام هفتگی", ctx.exception.message)

    def test_unknown_category(self):
        with self.assertRaises(ValueError):
            can_proceed(User(), "video")


class UsageResetTestCase(unittest.TestCase):
    def setUp(self):
        self.now = datetime(2026, 3, 10, 9, 30)

    def _user(self, last_day, last_week):
        return User(
            id=5,
            role="user",
            story_requests=2,
            caption_idea_requests=1,
            image_requests=9,
            chat_messages=40,
            last_request_date=last_day,
            last_weekly_reset_date=last_week,
        )

    def test_daily_reset_on_new_day(self):
        user = self._user("2026-03-09", "2026-03-08")
        self.assertTrue(maybe_reset_usage(user, self.now))
        self.assertEqual(user.story_requests, 0)
        self.assertEqual(user.caption_idea_requests, 0)
        self.assertEqual(user.chat_messages, 40)
        self.assertEqual(user.image_requests, 9)
        self.assertEqual(user.last_request_date, "2026-03-10")
        self.assertEqual(user.last_weekly_reset_date, "2026-03-08")

    def test_weekly_reset_after_seven_days(self):
        user = self._user("2026-03-10", "2026-03-03")
        self.assertTrue(maybe_reset_usage(user, self.now))
        self.assertEqual(user.chat_messages, 0)
        self.assertEqual(user.image_requests, 0)
        self.assertEqual(user.story_requests, 2)
        self.assertEqual(user.last_weekly_reset_date, "2026-03-10")

    def test_no_reset_within_windows(self):
        user = self._user("2026-03-10", "2026-03-04")
        self.assertFalse(maybe_reset_usage(user, self.now))
        self.assertEqual(user.chat_messages, 40)
        self.assertEqual(user.story_requests, 2)

    def test_missing_dates_reset_everything(self):
        user = self._user(None, None)
        self.assertTrue(maybe_reset_usage(user, self.now))
        self.assertEqual(
            (user.story_requests, user.caption_idea_requests, user.image_requests, user.chat_messages),
            (0, 0, 0, 0),
        )


class UsageStoreTestCase(unittest.TestCase):
    def setUp(self):
        self.db = make_db()
        self.session = self.db.get_session()

    def tearDown(self):
        self.session.close()
        self.db.dispose()

    def test_increment_adds_one_and_logs_activity(self):
        user = make_user(self.session, story_requests=1, story_limit=2)
        updated = increment_usage(self.session, user.id, "story")
        self.assertEqual(updated.story_requests, 2)
        self.assertFalse(can_proceed(updated, "story"))

        log = self.session.query(ActivityLog).filter(ActivityLog.user_id == user.id).one()
        self.assertIn("(2/2 روزانه)", log.action)

    def test_increment_for_unknown_user_returns_none(self):
        self.assertIsNone(increment_usage(self.session, 999, "chat"))

    def test_reset_sweep_skips_admins(self):
        yesterday = (datetime.now() - timedelta(days=1)).date().isoformat()
        admin = make_user(self.session, role="admin", story_requests=2, last_request_date=yesterday)
        user = make_user(self.session, story_requests=2, last_request_date=yesterday)

        result = reset_due_users(self.session)
        self.assertEqual(result["scanned"], 2)
        self.assertEqual(result["total"], 1)
        self.session.refresh(admin)
        self.session.refresh(user)
        self.assertEqual(admin.story_requests, 2)
        self.assertEqual(user.story_requests, 0)

    def test_reset_sweep_pages_through_all_users(self):
        yesterday = (datetime.now() - timedelta(days=1)).date().isoformat()
        users = [make_user(self.session, story_requests=2, last_request_date=yesterday) for _ in range(5)]

        result = reset_due_users(self.session, batch_size=2)

        self.assertEqual(result, {"scanned": 5, "total": 5})
        for user in users:
            self.session.refresh(user)
            self.assertEqual(user.story_requests, 0)

    def test_reset_on_request_persists_and_skips_admins(self):
        yesterday = (datetime.now() - timedelta(days=1)).date().isoformat()
        user = make_user(self.session, story_requests=2, last_request_date=yesterday)
        admin = make_user(self.session, role="admin", story_requests=2, last_request_date=yesterday)

        self.assertTrue(apply_usage_reset(self.session, user))
        self.assertFalse(apply_usage_reset(self.session, user))
        self.assertFalse(apply_usage_reset(self.session, admin))

        self.session.expire_all()
        self.assertEqual(self.session.get(User, user.id).story_requests, 0)
        self.assertEqual(self.session.get(User, admin.id).story_requests, 2)
        self.assertTrue(can_proceed(self.session.get(User, user.id), "story"))

    def test_usage_summary(self):
        user = make_user(self.session, chat_messages=10, chat_limit=20)
        summary = usage_summary(user)
        self.assertEqual(summary["chat"]["used"], 10)
        self.assertEqual(summary["chat"]["limit"], 20)
        self.assertEqual(summary["chat"]["remaining"], 10)
        self.assertEqual(summary["chat"]["window"], "week")


if __name__ == "__main__":
    unittest.main()
