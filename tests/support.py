import json
import uuid
from datetime import datetime, timedelta
from unittest import mock

import requests

from core.ai_client import AIClient
from core.db import Database
from core.models import User


def make_db() -> Database:
    db = Database("sqlite://")
    db.create_tables()
    return db


def make_user(session, **fields) -> User:
    now = datetime.now()
    data = dict(
        full_name="کاربر آزمایشی",
        access_code=f"code-{uuid.uuid4().hex[:8]}",
        role="user",
        is_verified=True,
        is_vip=False,
        about_info="عکاس عروسی در تهران",
        preferred_name="",
        story_requests=0,
        caption_idea_requests=0,
        image_requests=0,
        chat_messages=0,
        last_request_date=now.date().isoformat(),
        last_weekly_reset_date=now.date().isoformat(),
        subscription_expires_at=now + timedelta(days=7),
        created_at=now,
        updated_at=now,
    )
    data.update(fields)
    user = User(**data)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def sse_frame(content) -> bytes:
    body = {"choices": [{"index": 0, "delta": {"content": content}}]}
    return f"data: {json.dumps(body, ensure_ascii=False)}\n\n".encode("utf-8")


def sse_body(*deltas, done=True) -> bytes:
    body = b"".join(sse_frame(d) for d in deltas)
    if done:
        body += b"data: [DONE]\n\n"
    return body


class FakeResponse:
    """Stand-in for a requests.Response returned by Session.post."""

    def __init__(self, chunks=(), status_code=200, payload=None, text=""):
        self.chunks = list(chunks)
        self.status_code = status_code
        self.payload = payload
        self.text = text
        self.closed = False
        self.reads = 0

    def iter_content(self, chunk_size=None):
        for chunk in self.chunks:
            if self.closed:
                raise requests.ConnectionError("connection closed")
            self.reads += 1
            yield chunk

    def json(self):
        if self.payload is None:
            raise ValueError("no json body")
        return self.payload

    def close(self):
        self.closed = True


def completion_payload(content: str) -> dict:
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


def fake_ai_client(*responses) -> AIClient:
    """AIClient whose HTTP session returns ``responses`` in order."""
    http = mock.Mock()
    http.post.side_effect = list(responses)
    return AIClient("https://ai.example.com/v1", "sk-test", model="test-model", session=http)
