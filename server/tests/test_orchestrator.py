"""
Unit Tests for the generation orchestrator (routing, streaming, background, compile)
"""
import asyncio
import base64

import httpx
import pytest

from pluginforge.core.validator import UNCLEAR_REQUEST_MESSAGE
from pluginforge.session.orchestrator import STREAM_FAILED_HINT, choose_route

from conftest import HEAL_JAVA, json_reply, make_project, sse, sse_reply

HEAL_DESCRIPTION = "Add a /heal command that restores full health"


def padded(length: int) -> str:
    return ("Create an economy plugin with balance and pay commands. " * 10)[:length]


def heal_stream():
    head, tail = HEAL_JAVA[:60], HEAL_JAVA[60:]
    project = {
        "project_name": "HealPlugin",
        "language": "java",
        "platform": "paper",
        "mc_version": "1.21",
        "files": [{"path": "src/main/java/Heal.java", "content": HEAL_JAVA}],
        "scripts": ["./gradlew build"],
    }
    return sse_reply(
        sse("init", {"project_name": "HealPlugin", "language": "java", "platform": "paper", "mc_version": "1.21"}),
        sse("file_start", {"path": "src/main/java/Heal.java"}),
        sse("file_chunk", {"path": "src/main/java/Heal.java", "chunk": head}),
        sse("file_chunk", {"path": "src/main/java/Heal.java", "chunk": tail}),
        sse("file_complete", {"path": "src/main/java/Heal.java", "content": HEAL_JAVA}),
        sse("complete", {"project": project}),
    )


class TestRouting:
    """Tests for the stream/background decision"""

    def test_generate_flow_boundary(self):
        """Strictly longer than 300 goes background"""
        assert choose_route(padded(300), "generate") == "stream"
        assert choose_route(padded(301), "generate") == "background"

    def test_sandbox_flow_boundary(self):
        assert choose_route(padded(200), "sandbox") == "stream"
        assert choose_route(padded(201), "sandbox") == "background"

    def test_unknown_flow(self):
        with pytest.raises(ValueError):
            choose_route("whatever", "batch")

    async def test_unclear_description_rejected_without_network(self, session, backend, notifications):
        """"ok" never reaches the backend"""
        route = await session.generate("ok")

        assert route == "rejected"
        assert backend.requests == []
        assert session.console.messages() == [UNCLEAR_REQUEST_MESSAGE]
        assert ("error", UNCLEAR_REQUEST_MESSAGE) in notifications

    async def test_length_301_uses_background(self, session, backend):
        backend.on("/generation-jobs", {"success": True, "job": {"id": "job-1"}})
        backend.on("/generate-plugin-background", {"success": True, "job_id": "job-1"})
        backend.on("/check-generation-status", {"success": True, "job": {"id": "job-1", "status": "processing", "progress": 10}})

        route = await session.generate(padded(301))

        assert route == "background"
        assert backend.calls("/generate-plugin") == []
        assert backend.calls("/generation-jobs")[0]["description"] == padded(301)

    async def test_length_300_streams(self, session, backend):
        backend.on("/generate-plugin", heal_stream())
        backend.on("/projects", {"success": True, "project": {}})

        route = await session.generate(padded(300))

        assert route == "stream"
        assert backend.calls("/generation-jobs") == []
        assert backend.calls("/generate-plugin")[0]["description"] == padded(300)

    async def test_sandbox_flow_uses_lower_threshold(self, session, backend):
        backend.on("/generation-jobs", {"success": True, "job": {"id": "job-2"}})
        backend.on("/generate-plugin-background", {"success": True, "job_id": "job-2"})
        backend.on("/check-generation-status", {"success": True, "job": {"id": "job-2", "status": "pending", "progress": 0}})

        route = await session.generate(padded(250), flow="sandbox")

        assert route == "background"


class TestStreamingGeneration:
    """Tests for the streaming path"""

    async def test_heal_end_to_end(self, session, backend, notifications):
        """The /heal example ends with one fully concatenated file"""
        backend.on("/generate-plugin", heal_stream())
        backend.on("/projects", {"success": True, "project": {}})

        route = await session.generate(HEAL_DESCRIPTION)

        assert route == "stream"
        assert session.project.project_name == "HealPlugin"
        assert [(f.path, f.content) for f in session.project.files] == [("src/main/java/Heal.java", HEAL_JAVA)]
        assert session.selected_path == "src/main/java/Heal.java"
        assert session.has_error is False
        assert session.is_generating is False
        assert session.console.messages() == [
            "Starting AI generation...",
            "Analyzing your requirements...",
            "Creating project: HealPlugin",
            "Creating folder: src/main/java",
            "Writing file: Heal.java",
            "Completed: Heal.java",
            "Generated 1 files successfully!",
        ]
        assert ("success", "Plugin generated successfully!") in notifications

    async def test_request_body(self, session, backend):
        backend.on("/generate-plugin", heal_stream())
        backend.on("/projects", {"success": True, "project": {}})

        await session.generate(HEAL_DESCRIPTION, plugin_type="Spigot", mc_version="1.20.4")

        body = backend.calls("/generate-plugin")[0]
        assert body == {
            "description": HEAL_DESCRIPTION,
            "pluginType": "spigot",
            "mcVersion": "1.20.4",
            "model": session.model,
        }

    async def test_completed_project_is_persisted(self, session, backend):
        backend.on("/generate-plugin", heal_stream())
        backend.on("/projects", {"success": True, "project": {}})

        await session.generate(HEAL_DESCRIPTION)

        saved = backend.calls("/projects")[0]
        assert saved["user_id"] == "user-1"
        assert saved["description"] == HEAL_DESCRIPTION
        assert saved["project_name"] == "HealPlugin"

    async def test_persistence_failure_does_not_fail_generation(self, session, backend):
        backend.on("/generate-plugin", heal_stream())
        backend.on("/projects", json_reply(500, {"success": False, "error": "db down"}))

        route = await session.generate(HEAL_DESCRIPTION)

        assert route == "stream"
        assert session.has_error is False
        assert len(session.project.files) == 1

    async def test_no_user_no_persistence(self, session, backend):
        session.user_id = None
        backend.on("/generate-plugin", heal_stream())

        await session.generate(HEAL_DESCRIPTION)

        assert backend.calls("/projects") == []

    async def test_placeholder_before_first_event(self, session, backend):
        """The project exists as soon as streaming starts"""
        seen = {}

        def reply(request):
            seen["name"] = session.project.project_name
            seen["platform"] = session.project.platform
            return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=b"")

        backend.on("/generate-plugin", reply)

        await session.generate(HEAL_DESCRIPTION, plugin_type="velocity")

        assert seen == {"name": "Generating...", "platform": "velocity"}

    async def test_http_error_sets_flag_and_hint(self, session, backend, notifications):
        """Transport failures are logged with the auto-fix hint"""
        backend.on("/generate-plugin", json_reply(500, {"success": False, "error": "AI Gateway error: boom"}))

        route = await session.generate(HEAL_DESCRIPTION)

        assert route == "stream"
        assert session.has_error is True
        assert session.is_generating is False
        assert session.console.messages()[-2:] == [
            "Error: Generation failed: AI Gateway error: boom",
            STREAM_FAILED_HINT,
        ]
        assert ("error", "Generation error - run auto-fix to resolve") in notifications

    async def test_partial_files_survive_broken_stream(self, session, backend):
        """Content streamed before a failure stays in the project"""
        async def body():
            yield sse("init", {"project_name": "HealPlugin"}).encode()
            yield sse("file_start", {"path": "src/main/java/Heal.java"}).encode()
            yield sse("file_chunk", {"path": "src/main/java/Heal.java", "chunk": "package"}).encode()
            raise httpx.ReadError("connection lost")

        backend.on("/generate-plugin", lambda request: httpx.Response(
            200, headers={"content-type": "text/event-stream"}, content=body()))

        await session.generate(HEAL_DESCRIPTION)

        assert session.has_error is True
        assert session.store.get("src/main/java/Heal.java").content == "package"

    async def test_server_rejection_is_not_an_error(self, session, backend, notifications):
        """A JSON {success: false} answer is shown as a message, not flagged"""
        backend.on("/generate-plugin", {"success": False, "error": "Please describe your plugin"})

        await session.generate(HEAL_DESCRIPTION)

        assert session.has_error is False
        assert session.console.messages()[-1] == "Please describe your plugin"
        assert ("error", "Please describe your plugin") in notifications

    async def test_retry_repeats_last_request(self, session, backend):
        backend.on("/generate-plugin", json_reply(500, {"success": False, "error": "boom"}), heal_stream())
        backend.on("/projects", {"success": True, "project": {}})

        await session.generate(HEAL_DESCRIPTION)
        assert session.has_error is True

        route = await session.orchestrator.retry()

        assert route == "stream"
        assert session.has_error is False
        assert len(backend.calls("/generate-plugin")) == 2


class TestBackgroundGeneration:
    """Tests for the queued job path"""

    def script_job(self, backend, *statuses):
        backend.on("/generation-jobs", {"success": True, "job": {"id": "job-7", "status": "pending"}})
        backend.on("/generate-plugin-background", {"success": True, "job_id": "job-7"})
        backend.on("/check-generation-status", *[{"success": True, "job": s} for s in statuses])

    async def test_completed_job_loads_project(self, session, backend, notifications):
        project = make_project()
        self.script_job(
            backend,
            {"id": "job-7", "status": "processing", "progress": 20},
            {"id": "job-7", "status": "completed", "progress": 100, "project_data": project.model_dump()},
        )

        await session.generate(padded(320))
        assert session.mode == "background"
        await asyncio.wait_for(session.orchestrator.wait_background(), timeout=2)

        assert session.project == project
        assert session.selected_path == project.files[0].path
        assert session.progress == 100
        assert session.mode == "idle"
        assert session.is_generating is False
        assert session.console.messages()[-1] == "Generated 2 files successfully!"
        assert ("info", "Large prompt detected - Using background generation") in notifications
        assert backend.calls("/generate-plugin-background") == [{"job_id": "job-7"}]

    async def test_failed_job_sets_error(self, session, backend, notifications):
        self.script_job(
            backend,
            {"id": "job-7", "status": "failed", "progress": 20, "error_message": "Rate limit exceeded."},
        )

        await session.generate(padded(320))
        await asyncio.wait_for(session.orchestrator.wait_background(), timeout=2)

        assert session.has_error is True
        assert session.mode == "idle"
        assert "Error: Rate limit exceeded." in session.console.messages()
        assert ("error", "Rate limit exceeded.") in notifications

    async def test_job_creation_failure(self, session, backend, notifications):
        backend.on("/generation-jobs", json_reply(500, {"success": False, "error": "db down"}))

        route = await session.generate(padded(320))

        assert route == "background"
        assert session.orchestrator.poller is None
        assert session.mode == "idle"
        assert ("error", "Failed to start generation") in notifications

    async def test_cancel_detaches_poller(self, session, backend):
        self.script_job(backend, {"id": "job-7", "status": "processing", "progress": 20})
        session.orchestrator.poll_interval = 30

        await session.generate(padded(320))
        await asyncio.sleep(0.01)

        assert session.cancel() is True
        assert session.is_generating is False
        assert session.orchestrator.poller.done

    async def test_stream_detaches_running_job(self, session, backend):
        """A streamed generation started mid-job is not overwritten by the old job"""
        self.script_job(backend, {"id": "job-7", "status": "processing", "progress": 20})
        session.orchestrator.poll_interval = 0.01
        await session.generate(padded(320))
        await asyncio.sleep(0.02)

        backend.on("/generate-plugin", heal_stream())
        backend.on("/projects", {"success": True, "project": {}})
        await session.generate(HEAL_DESCRIPTION)
        assert session.orchestrator.poller.done

        stale = make_project(project_name="OldBackground")
        backend.on("/check-generation-status",
                   {"success": True, "job": {"id": "job-7", "status": "completed", "progress": 100,
                                             "project_data": stale.model_dump()}})
        await asyncio.sleep(0.05)

        assert session.project.project_name == "HealPlugin"
        assert session.mode == "idle"
        assert session.is_generating is False
        assert "Detached from background job job-7" in session.console.messages()


class TestCompile:
    """Tests for the simulated compile action"""

    async def test_compile_stores_demo_jar(self, session, backend, sample_project):
        jar = base64.b64encode(b"demo").decode()
        backend.on("/compile-plugin", {"success": True, "jar_data": jar, "jar_name": "HealPlugin-DEMO-1.0.jar", "size": 4096})
        session.open_project(sample_project)

        result = await session.compile()

        assert result == {"data": jar, "name": "HealPlugin-DEMO-1.0.jar"}
        messages = session.console.messages()
        assert messages[0] == "Starting compilation..."
        assert messages[1] == "Running: ./gradlew build"
        assert "Demo JAR created: HealPlugin-DEMO-1.0.jar (4KB)" in messages
        assert backend.calls("/compile-plugin")[0]["project_name"] == "HealPlugin"

    async def test_compile_failure(self, session, backend, sample_project, notifications):
        backend.on("/compile-plugin", json_reply(500, {"success": False, "error": "disk full"}))
        session.open_project(sample_project)

        result = await session.compile()

        assert result is None
        assert session.compiled_jar is None
        assert session.console.messages()[-1] == "Compilation failed: disk full"
        assert ("error", "Failed to compile plugin") in notifications

    async def test_compile_without_project(self, session, backend):
        assert await session.compile() is None
        assert backend.requests == []
