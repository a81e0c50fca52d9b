# pluginforge/session/poller.py
import asyncio
import logging
from typing import Callable, Optional

from pluginforge.models import JobStatusOut, ProjectData
from pluginforge.session.client import APIError
from pluginforge.utils.config import POLL_INTERVAL_S

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("completed", "failed")


class BackgroundJobPoller:
    """
    Polls /check-generation-status for one job: immediately, then every `interval` seconds.

    Polling stops on the first terminal status. `on_complete` receives the project exactly
    once; transport errors are logged and retried on the next tick. Cancelling only stops
    the local loop; the job keeps running server-side.
    """

    def __init__(self,
                 client,
                 job_id: str,
                 on_complete: Callable[[ProjectData], None],
                 on_failed: Optional[Callable[[str], None]] = None,
                 on_progress: Optional[Callable[[JobStatusOut], None]] = None,
                 notify: Optional[Callable[[str, str], None]] = None,
                 interval: float = POLL_INTERVAL_S):
        self.client = client
        self.job_id = job_id
        self.on_complete = on_complete
        self.on_failed = on_failed
        self.on_progress = on_progress
        self.notify = notify
        self.interval = interval

        self.status = "pending"
        self.progress = 0
        self.error_message: Optional[str] = None
        self.polls = 0
        self._stopped = False
        self._handed_off = False
        self._task: Optional[asyncio.Task] = None

    @property
    def done(self) -> bool:
        return self._stopped

    def start(self) -> "BackgroundJobPoller":
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run(), name=f"poll-{self.job_id}")
        return self

    async def _run(self):
        while not self._stopped:
            await self.poll_once()
            if self._stopped:
                break
            await asyncio.sleep(self.interval)

    async def poll_once(self) -> Optional[str]:
        """One status check. Returns the observed status, or None on a transport error."""
        self.polls += 1
        try:
            job = await self.client.check_status(self.job_id)
        except APIError as e:
            logger.warning("Status check error for job %s: %s", self.job_id, e)
            return None

        self.status = job.status
        self.progress = job.progress
        self.error_message = job.error_message
        if self.on_progress:
            self.on_progress(job)

        if job.status == "completed":
            if job.project_data is None:
                logger.warning("Job %s completed without project data; polling again", self.job_id)
                return job.status
            self._stopped = True
            self._hand_off(job.project_data)
        elif job.status == "failed":
            self._stopped = True
            message = job.error_message or "Generation failed"
            self._notify("error", message)
            if self.on_failed:
                self.on_failed(message)
        return job.status

    def _hand_off(self, project: ProjectData):
        if self._handed_off:
            return
        self._handed_off = True
        self._notify("success", "Plugin generated successfully!")
        self.on_complete(project)

    def _notify(self, level: str, message: str):
        if self.notify:
            self.notify(level, message)

    def cancel(self):
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self):
        if self._task is not None:
            await asyncio.wait({self._task})
            if not self._task.cancelled():
                self._task.result()
