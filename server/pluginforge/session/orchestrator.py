# pluginforge/session/orchestrator.py
"""
Top-level generation controller for a sandbox session.

Short descriptions are streamed (SSE, incremental file events); long ones go through a
background job whose status is polled. Failures end up in the build console and the
session's error flag, never as exceptions: the user can always retry or run auto-fix.
"""
import asyncio
import logging
from typing import Any, Dict, Optional, Set

from pluginforge.core.validator import check_description
from pluginforge.models import GenerateRequest, JobStatusOut, ProjectData, ProjectRecord
from pluginforge.session.client import APIError, GenerationRejected
from pluginforge.session.ingestor import IngestResult, StreamIngestor
from pluginforge.session.poller import BackgroundJobPoller
from pluginforge.utils.config import (
    GENERATE_BACKGROUND_THRESHOLD,
    POLL_INTERVAL_S,
    SANDBOX_BACKGROUND_THRESHOLD,
)

logger = logging.getLogger(__name__)

FLOW_THRESHOLDS = {
    "generate": GENERATE_BACKGROUND_THRESHOLD,
    "sandbox": SANDBOX_BACKGROUND_THRESHOLD,
}

STREAM_FAILED_HINT = "Generation stopped. Run auto-fix to resolve and continue"
BACKGROUND_FAILED_HINT = "Generation failed. Try again or simplify your prompt."


def choose_route(description: str, flow: str = "generate") -> str:
    """'background' when the description is strictly longer than the flow's threshold."""
    if flow not in FLOW_THRESHOLDS:
        raise ValueError(f"unknown generation flow {flow!r}")
    return "background" if len(description) > FLOW_THRESHOLDS[flow] else "stream"


class GenerationOrchestrator:
    def __init__(self, session, poll_interval: float = POLL_INTERVAL_S):
        self.session = session
        self.poll_interval = poll_interval
        self.ingestor = StreamIngestor(session)
        self.poller: Optional[BackgroundJobPoller] = None
        self.job_id: Optional[str] = None
        self.last_request: Optional[GenerateRequest] = None
        self.last_flow = "generate"
        self.last_result: Optional[IngestResult] = None
        self._stream_task: Optional[asyncio.Task] = None
        self._side_tasks: Set[asyncio.Task] = set()

    async def generate(self, request: GenerateRequest, flow: str = "generate") -> str:
        """
        Start a generation. Returns the route taken: 'rejected', 'stream' or 'background'.
        The stream route returns once the stream is exhausted; the background route returns
        once the job is queued and polling has started (see wait_background()).
        """
        s = self.session
        self.last_request, self.last_flow = request, flow

        problem = check_description(request.description)
        if problem:
            s.console.error(problem)
            s.notify("error", problem)
            return "rejected"

        if request.model:
            s.model = request.model
        else:
            request = request.model_copy(update={"model": s.model})

        if choose_route(request.description, flow) == "background":
            await self._start_background(request)
            return "background"
        await self._run_stream(request)
        return "stream"

    async def retry(self) -> Optional[str]:
        if self.last_request is None:
            return None
        return await self.generate(self.last_request, self.last_flow)

    def cancel(self) -> bool:
        """Detach from whatever is running. Nothing is sent to the server."""
        s = self.session
        cancelled = False
        if self._stream_task is not None and not self._stream_task.done():
            self._stream_task.cancel()
            cancelled = True
        if self.poller is not None and not self.poller.done:
            self.poller.cancel()
            cancelled = True
        if cancelled:
            s.is_generating = False
            s.mode = "idle"
        return cancelled

    async def wait_background(self):
        if self.poller is not None:
            await self.poller.wait()

    # ----------------------------
    # Streaming path
    # ----------------------------
    async def _run_stream(self, request: GenerateRequest):
        s = self.session
        if self.poller is not None and not self.poller.done:
            self.poller.cancel()
            s.console.info(f"Detached from background job {self.job_id}")
        s.is_generating = True
        s.mode = "streaming"
        s.has_error = False
        s.compiled_jar = None
        s.editor.discard()
        s.selected_path = None
        s.store.reset(request.pluginType, request.mcVersion)
        s.console.info("Starting AI generation...")
        s.console.info("Analyzing your requirements...")

        self._stream_task = asyncio.get_running_loop().create_task(self._stream(request))
        try:
            await asyncio.wait({self._stream_task})
        except asyncio.CancelledError:
            self._stream_task.cancel()
            raise
        finally:
            s.is_generating = False
            s.mode = "idle"

        if self._stream_task.cancelled():
            s.console.info("Generation cancelled")
            return
        self._stream_task.result()

    async def _stream(self, request: GenerateRequest):
        s = self.session
        try:
            async with s.client.open_generation_stream(request) as resp:
                result = await self.ingestor.ingest(resp.aiter_bytes())
        except GenerationRejected as e:
            s.console.error(e.message)
            s.notify("error", e.message)
            return
        except APIError as e:
            logger.error("Generation error: %s", e)
            s.has_error = True
            s.console.error(f"Error: {e.message}")
            s.console.info(STREAM_FAILED_HINT)
            s.notify("error", "Generation error - run auto-fix to resolve")
            return

        self.last_result = result
        if result.completed and result.project is not None:
            s.notify("success", "Plugin generated successfully!")
            await self._persist(request, result.project)

    async def _persist(self, request: GenerateRequest, project: ProjectData):
        s = self.session
        if not s.user_id:
            return
        record = ProjectRecord.from_project(s.user_id, request.description, project)
        try:
            await s.client.save_project(record)
        except APIError as e:
            logger.error("Failed to save project: %s", e)

    # ----------------------------
    # Background path
    # ----------------------------
    async def _start_background(self, request: GenerateRequest):
        s = self.session
        try:
            job = await s.client.create_job(request, s.user_id)
        except APIError as e:
            logger.error("Failed to start background generation: %s", e)
            s.console.error(f"Error: {e.message}")
            s.notify("error", "Failed to start generation")
            return

        if self.poller is not None:
            self.poller.cancel()
        self.job_id = job["id"]
        s.mode = "background"
        s.is_generating = True
        s.progress = 0
        s.console.info(f"Generation queued as background job {self.job_id}")
        s.notify("info", "Large prompt detected - Using background generation")

        self._spawn(self._trigger_background(self.job_id))
        self.poller = BackgroundJobPoller(
            s.client,
            self.job_id,
            on_complete=self._background_complete,
            on_failed=self._background_failed,
            on_progress=self._background_progress,
            interval=self.poll_interval,
            notify=s.notify,
        ).start()

    async def _trigger_background(self, job_id: str):
        # fire-and-forget: the poller reports the outcome
        try:
            await self.session.client.trigger_background(job_id)
        except APIError as e:
            logger.error("Background trigger failed for job %s: %s", job_id, e)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._side_tasks.add(task)
        task.add_done_callback(self._side_tasks.discard)
        return task

    def _background_progress(self, job: JobStatusOut):
        self.session.progress = job.progress

    def _background_complete(self, project: ProjectData):
        s = self.session
        s.editor.discard()
        s.store.replace_all(project)
        s.selected_path = None
        s.select_first()
        s.has_error = False
        s.progress = 100
        s.is_generating = False
        s.mode = "idle"
        s.console.success(f"Generated {len(project.files)} files successfully!")

    def _background_failed(self, message: str):
        s = self.session
        s.has_error = True
        s.is_generating = False
        s.mode = "idle"
        s.console.error(f"Error: {message}")
        s.console.info(BACKGROUND_FAILED_HINT)

    # ----------------------------
    # Simulated compile
    # ----------------------------
    async def compile(self) -> Optional[Dict[str, Any]]:
        s = self.session
        project = s.store.project
        if project is None:
            return None

        s.editor.flush()
        s.compiled_jar = None
        s.console.info("Starting compilation...")
        s.console.info(f"Running: {project.scripts[0] if project.scripts else './gradlew build'}")
        try:
            result = await s.client.compile_plugin(project)
        except APIError as e:
            s.console.error(f"Compilation failed: {e.message}")
            s.notify("error", "Failed to compile plugin")
            return None

        s.compiled_jar = {"data": result.get("jar_data", ""), "name": result.get("jar_name", "")}
        size_kb = round((result.get("size") or 0) / 1024)
        s.console.info("Creating demo JAR structure...")
        s.console.success(f"Demo JAR created: {s.compiled_jar['name']} ({size_kb}KB)")
        s.console.info("NOTE: This is a SIMULATED JAR for demonstration only")
        s.console.info("To create a REAL working plugin: download the source files and compile locally with Gradle/Maven")
        s.notify("success", "Demo JAR created! See console for important notes.")
        return s.compiled_jar
