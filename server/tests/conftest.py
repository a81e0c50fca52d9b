"""
PluginForge - Test Configuration and Fixtures
"""
import os
import json
import tempfile
from typing import Any, AsyncGenerator, Callable, Dict, List

import httpx
import pytest
from httpx import AsyncClient, ASGITransport

# Set testing environment before any pluginforge import reads it
os.environ.setdefault("GOOGLE_API_KEY_GEMINI", "test-api-key")
os.environ["AI_BACKEND_LOG_DIR"] = os.path.join(tempfile.gettempdir(), "pluginforge-test-logs")
os.environ["SUPABASE_URL"] = ""
os.environ["SUPABASE_KEY"] = ""

from pluginforge.main import app
from pluginforge.core.store import InMemoryTable, get_job_store, get_project_store
from pluginforge.models import ProjectData
from pluginforge.session.client import PluginForgeClient
from pluginforge.session.sandbox import SandboxSession
from pluginforge.utils import config

HEAL_JAVA = (
    "package com.example.heal;\n\n"
    "import org.bukkit.plugin.java.JavaPlugin;\n\n"
    "public class Heal extends JavaPlugin {\n"
    "    @Override\n"
    "    public void onEnable() {\n"
    "        getLogger().info(\"Heal enabled\");\n"
    "    }\n"
    "}\n"
)

PLUGIN_YML = "name: HealPlugin\nmain: com.example.heal.Heal\nversion: 1.0\n"


def sse(event_type: str, data: Dict[str, Any]) -> str:
    return "data: " + json.dumps({"type": event_type, "data": data}) + "\n\n"


def make_project(**overrides) -> ProjectData:
    data = {
        "project_name": "HealPlugin",
        "language": "java",
        "platform": "paper",
        "mc_version": "1.21",
        "files": [
            {"path": "src/main/java/Heal.java", "content": HEAL_JAVA},
            {"path": "src/main/resources/plugin.yml", "content": PLUGIN_YML},
        ],
        "scripts": ["./gradlew build"],
        "explain_steps": [],
        "metadata": {"dependencies": ["paper-api"], "notes": ""},
    }
    data.update(overrides)
    return ProjectData.model_validate(data)


class FakeBackend:
    """
    Scripted stand-in for the PluginForge HTTP API, served through httpx.MockTransport.

    Each path holds a queue of replies; the last reply repeats. A reply is a dict (200 JSON),
    a callable taking the request, or an exception instance to raise.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[str, List[Any]] = {}

    def on(self, path: str, *replies: Any):
        self.routes[path] = list(replies)

    def calls(self, path: str) -> List[Any]:
        return [json.loads(r.content or b"null") for r in self.requests if r.url.path == path]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get(request.url.path)
        if not queue:
            return httpx.Response(404, json={"success": False, "error": "Not Found"})
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return httpx.Response(200, json=reply)


def sse_reply(*frames: str) -> Callable[[httpx.Request], httpx.Response]:
    body = "".join(frames).encode("utf-8")
    return lambda request: httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body)


def json_reply(status: int, body: Dict[str, Any]) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(status, json=body)


@pytest.fixture(autouse=True)
def fast_stream(monkeypatch):
    """No artificial delay between streamed chunks"""
    monkeypatch.setattr(config, "STREAM_CHUNK_DELAY", 0.0)


@pytest.fixture
def jobs() -> InMemoryTable:
    return InMemoryTable("generation_jobs")


@pytest.fixture
def projects() -> InMemoryTable:
    return InMemoryTable("projects")


@pytest.fixture
async def client(jobs, projects) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with fresh in-memory tables"""
    app.dependency_overrides[get_job_store] = lambda: jobs
    app.dependency_overrides[get_project_store] = lambda: projects

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def notifications() -> List[tuple]:
    return []


@pytest.fixture
async def session(backend, notifications) -> AsyncGenerator[SandboxSession, None]:
    """Sandbox session talking to the scripted backend"""
    http = AsyncClient(transport=httpx.MockTransport(backend.handle), base_url="http://test")
    s = SandboxSession(
        PluginForgeClient(http=http),
        user_id="user-1",
        notify=lambda level, message: notifications.append((level, message)),
        debounce=0.01,
        poll_interval=0.0,
    )
    yield s
    s.cancel()
    await http.aclose()


@pytest.fixture
def sample_project() -> ProjectData:
    return make_project()
