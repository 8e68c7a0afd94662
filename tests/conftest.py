import sys
import os
import json

import httpx
import pytest

# Ensure the project root is in sys.path so `from video_chat.main import app` works
# with relative imports inside the package
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from video_chat.config import get_settings  # noqa: E402
from video_chat.main import memories_service  # noqa: E402

UPSTREAM_URL = "https://upstream.test"


@pytest.fixture
def configured(monkeypatch):
    """Point the proxy at a fake Memories.ai with a small upload ceiling."""
    monkeypatch.setenv("MEMORIES_AI_API_KEY", "sk-test")
    monkeypatch.setenv("MEMORIES_AI_BASE_URL", UPSTREAM_URL)
    monkeypatch.setenv("PUBLIC_APP_URL", "https://app.test")
    monkeypatch.setenv("MAX_UPLOAD_BYTES", str(1024 * 1024))
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def unconfigured(monkeypatch):
    monkeypatch.setenv("MEMORIES_AI_API_KEY", "")
    monkeypatch.setenv("MEMORIES_AI_BASE_URL", "")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


class FakeUpstream:
    """Records requests sent to Memories.ai and answers with canned responses."""

    def __init__(self) -> None:
        self.requests = []
        self.responder = lambda request: httpx.Response(404)
        self.body = b""

    def __call__(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        return self.responder(request)

    def reply_json(self, body, status_code: int = 200) -> None:
        self.responder = lambda request: httpx.Response(status_code, json=body)

    def reply_events(self, *records, status_code: int = 200) -> None:
        content = "".join(f"data:{json.dumps(r)}\n\n" for r in records).encode()
        self.body = content
        self.responder = lambda request: httpx.Response(
            status_code, headers={"content-type": "text/event-stream"}, content=content
        )


@pytest.fixture
def upstream(monkeypatch, configured):
    fake = FakeUpstream()
    monkeypatch.setattr(memories_service, "transport", httpx.MockTransport(fake))
    return fake


@pytest.fixture
def upload_body():
    """Factory for a successful Memories.ai upload response."""

    def build(video_no: str = "VI123", status: str = "UNPARSE") -> dict:
        return {
            "code": "0000",
            "success": True,
            "failed": False,
            "data": {
                "videoNo": video_no,
                "videoName": "clip",
                "videoStatus": status,
                "uploadTime": "1723870240000",
            },
        }

    return build
