"""
Unit Tests for the background job poller
"""
import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from pluginforge.models import JobStatusOut
from pluginforge.session.client import APIError
from pluginforge.session.poller import BackgroundJobPoller

from conftest import make_project


def status(state, progress=0, error=None, project=None) -> JobStatusOut:
    return JobStatusOut(id="job-1", status=state, progress=progress, error_message=error, project_data=project)


@pytest.fixture
def api():
    return Mock(check_status=AsyncMock())


class TestBackgroundJobPoller:
    """Tests for status polling and the completion hand-off"""

    async def test_completion_hands_off_exactly_once(self, api):
        """Two polls that both observe completed still call back once"""
        project = make_project()
        api.check_status.side_effect = [status("completed", 100, project=project)] * 2
        on_complete = Mock()
        poller = BackgroundJobPoller(api, "job-1", on_complete=on_complete, interval=0)

        await poller.poll_once()
        await poller.poll_once()

        on_complete.assert_called_once_with(project)
        assert poller.done

    async def test_loop_stops_on_completed(self, api):
        """Polling runs until the first terminal status"""
        project = make_project()
        api.check_status.side_effect = [
            status("pending"),
            status("processing", 20),
            status("processing", 60),
            status("completed", 100, project=project),
            status("completed", 100, project=project),
        ]
        on_complete, progress = Mock(), []
        poller = BackgroundJobPoller(api, "job-1", on_complete=on_complete,
                                     on_progress=lambda job: progress.append(job.progress), interval=0).start()

        await asyncio.wait_for(poller.wait(), timeout=2)

        assert api.check_status.await_count == 4
        assert progress == [0, 20, 60, 100]
        on_complete.assert_called_once_with(project)

    async def test_failed_stops_polling_and_notifies(self, api):
        """A failed job reports its message and is not polled again"""
        api.check_status.side_effect = [status("processing", 10), status("failed", 20, error="Rate limit exceeded.")]
        on_complete, on_failed, notify = Mock(), Mock(), Mock()
        poller = BackgroundJobPoller(api, "job-1", on_complete=on_complete, on_failed=on_failed,
                                     notify=notify, interval=0).start()

        await asyncio.wait_for(poller.wait(), timeout=2)

        assert api.check_status.await_count == 2
        on_complete.assert_not_called()
        on_failed.assert_called_once_with("Rate limit exceeded.")
        notify.assert_called_once_with("error", "Rate limit exceeded.")

    async def test_transport_errors_are_retried(self, api):
        """A failed status check is logged and the next tick tries again"""
        project = make_project()
        api.check_status.side_effect = [
            APIError("connection reset"),
            APIError("HTTP 502", 502),
            status("completed", 100, project=project),
        ]
        on_complete, notify = Mock(), Mock()
        poller = BackgroundJobPoller(api, "job-1", on_complete=on_complete, notify=notify, interval=0).start()

        await asyncio.wait_for(poller.wait(), timeout=2)

        on_complete.assert_called_once_with(project)
        notify.assert_called_once_with("success", "Plugin generated successfully!")

    async def test_completed_without_project_keeps_polling(self, api):
        project = make_project()
        api.check_status.side_effect = [status("completed", 100), status("completed", 100, project=project)]
        on_complete = Mock()
        poller = BackgroundJobPoller(api, "job-1", on_complete=on_complete, interval=0)

        assert await poller.poll_once() == "completed"
        assert not poller.done
        on_complete.assert_not_called()

        await poller.poll_once()
        on_complete.assert_called_once_with(project)

    async def test_cancel_stops_local_loop(self, api):
        """Cancelling only detaches; no request is sent for it"""
        api.check_status.return_value = status("processing", 20)
        poller = BackgroundJobPoller(api, "job-1", on_complete=Mock(), interval=10).start()
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        poller.cancel()
        await asyncio.wait_for(poller.wait(), timeout=2)

        assert poller.done
        assert api.check_status.await_count == 1

    async def test_first_check_is_immediate(self, api):
        api.check_status.return_value = status("pending")
        poller = BackgroundJobPoller(api, "job-1", on_complete=Mock(), interval=30).start()

        for _ in range(3):
            await asyncio.sleep(0)

        assert api.check_status.await_count == 1
        poller.cancel()

    async def test_wait_raises_callback_errors(self, api):
        """A failing completion callback surfaces from wait()"""
        api.check_status.return_value = status("completed", 100, project=make_project())
        poller = BackgroundJobPoller(api, "job-1", on_complete=Mock(side_effect=RuntimeError("bad")),
                                     interval=0).start()

        with pytest.raises(RuntimeError, match="bad"):
            await asyncio.wait_for(poller.wait(), timeout=2)

    async def test_wait_after_cancel_returns(self, api):
        api.check_status.return_value = status("processing", 20)
        poller = BackgroundJobPoller(api, "job-1", on_complete=Mock(), interval=10).start()
        poller.cancel()

        await asyncio.wait_for(poller.wait(), timeout=2)

        assert poller.done
