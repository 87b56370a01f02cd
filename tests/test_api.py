import os
import shutil
import tempfile
import unittest
from datetime import datetime, timedelta

from fastapi.testclient import TestClient

from core.ai_client import AIClient
from core.config import API_BASE
from core.db import Database
from core.models import User
from tests.support import make_user
from web import app


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        # a file database: the streaming worker uses its own connection
        self.tmpdir = tempfile.mkdtemp()
        self.db = Database(f"sqlite:///{os.path.join(self.tmpdir, 'api.db')}")
        self.db.create_tables()
        app.state.db = self.db
        app.state.ai = AIClient("mock://local", "mock")
        self.client = TestClient(app)

        session = self.db.get_session()
        try:
            self.user = make_user(session, access_code="USER-1")
            self.admin = make_user(session, access_code="ADMIN-1", role="admin")
        finally:
            session.close()

    def tearDown(self):
        self.client.close()
        self.db.dispose()
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def _login(self, code):
        resp = self.client.post(f"{API_BASE}/auth/login", json={"access_code": code})
        self.assertEqual(resp.status_code, 200, resp.text)
        token = resp.json()["data"]["access_token"]
        return {"Authorization": f"Bearer {token}"}

    def _set(self, user_id, **fields):
        session = self.db.get_session()
        try:
            session.query(User).filter(User.id == user_id).update(fields)
            session.commit()
        finally:
            session.close()

    def test_login_and_profile(self):
        headers = self._login("USER-1")
        resp = self.client.get(f"{API_BASE}/user/me", headers=headers)
        self.assertEqual(resp.status_code, 200)
        data = resp.json()["data"]
        self.assertEqual(data["id"], self.user.id)
        self.assertEqual(data["usage"]["story"]["limit"], 2)
        self.assertEqual(resp.headers["X-Version"], app.version)

    def test_bad_code_and_missing_token(self):
        resp = self.client.post(f"{API_BASE}/auth/login", json={"access_code": "WRONG"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(self.client.get(f"{API_BASE}/user/me").status_code, 401)

    def test_expired_subscription_cannot_log_in(self):
        self._set(self.user.id, subscription_expires_at=datetime.now() - timedelta(days=1))
        resp = self.client.post(f"{API_BASE}/auth/login", json={"access_code": "USER-1"})
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["detail"]["code"], 40302)

    def test_chat_streams_and_persists(self):
        headers = self._login("USER-1")
        resp = self.client.post(f"{API_BASE}/ai/chat", json={"text": "سلام"}, headers=headers)
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.headers["content-type"].startswith("text/plain"))
        self.assertIn("سلام", resp.text)

        history = self.client.get(f"{API_BASE}/ai/chat/history", headers=headers).json()["data"]
        self.assertEqual([m["sender"] for m in history], ["user", "ai"])
        self.assertEqual(history[1]["text"], resp.text)

        usage = self.client.get(f"{API_BASE}/user/usage", headers=headers).json()["data"]
        self.assertEqual(usage["chat"]["used"], 1)

    def test_story_quota_is_rejected_before_streaming(self):
        self._set(self.user.id, story_requests=2)
        headers = self._login("USER-1")
        resp = self.client.post(f"{API_BASE}/ai/story", json={"goal": "فروش", "idea": "تخفیف"}, headers=headers)
        self.assertEqual(resp.status_code, 429)
        detail = resp.json()["detail"]
        self.assertEqual(detail["data"], {"category": "story"})
        self.assertIn("سقف", detail["message"])

    def test_yesterdays_counters_do_not_block_a_valid_token(self):
        headers = self._login("USER-1")
        yesterday = (datetime.now() - timedelta(days=1)).date().isoformat()
        self._set(self.user.id, story_requests=2, last_request_date=yesterday)

        resp = self.client.post(f"{API_BASE}/ai/story", json={"goal": "فروش", "idea": "تخفیف"}, headers=headers)

        self.assertEqual(resp.status_code, 200)
        usage = self.client.get(f"{API_BASE}/user/usage", headers=headers).json()["data"]
        self.assertEqual(usage["story"]["used"], 1)

    def test_story_validation(self):
        headers = self._login("USER-1")
        resp = self.client.post(f"{API_BASE}/ai/story", json={"goal": "", "idea": ""}, headers=headers)
        self.assertEqual(resp.status_code, 400)

    def test_admin_routes_need_admin(self):
        user_headers = self._login("USER-1")
        self.assertEqual(self.client.get(f"{API_BASE}/admin/users", headers=user_headers).status_code, 403)

        admin_headers = self._login("ADMIN-1")
        resp = self.client.post(
            f"{API_BASE}/admin/users",
            json={"full_name": "کاربر جدید", "access_code": "NEW-1"},
            headers=admin_headers,
        )
        self.assertEqual(resp.status_code, 200)
        ids = [u["id"] for u in self.client.get(f"{API_BASE}/admin/users", headers=admin_headers).json()["data"]]
        self.assertIn(resp.json()["data"]["id"], ids)
        self.assertNotIn(self.admin.id, ids)

        dup = self.client.post(
            f"{API_BASE}/admin/users",
            json={"full_name": "x", "access_code": "NEW-1"},
            headers=admin_headers,
        )
        self.assertEqual(dup.status_code, 400)

    def test_admin_sends_scenario_and_user_records_it(self):
        admin_headers = self._login("ADMIN-1")
        resp = self.client.post(
            f"{API_BASE}/admin/users/{self.user.id}/scenarios",
            json={"scenario_number": 2, "content": "ویدیو آموزشی"},
            headers=admin_headers,
        )
        scenario_id = resp.json()["data"]["id"]

        headers = self._login("USER-1")
        listed = self.client.get(f"{API_BASE}/content/scenarios", headers=headers).json()["data"]
        self.assertEqual([s["id"] for s in listed], [scenario_id])

        resp = self.client.post(f"{API_BASE}/content/scenarios/{scenario_id}/record", headers=headers)
        self.assertEqual(resp.status_code, 200)
        self.assertIsNotNone(resp.json()["data"]["caption_id"])
        self.assertEqual(self.client.get(f"{API_BASE}/content/scenarios", headers=headers).json()["data"], [])
        self.assertEqual(len(self.client.get(f"{API_BASE}/content/captions", headers=headers).json()["data"]), 1)


if __name__ == "__main__":
    unittest.main()
