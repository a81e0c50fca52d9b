import asyncio
import logging
from typing import Optional, Tuple

from pluginforge.utils.config import EDIT_DEBOUNCE_S

logger = logging.getLogger(__name__)


class DebouncedEditor:
    """
    Coalesces keystroke-level edits of the selected file.

    Each edit cancels and reschedules the commit timer; the last value always wins and
    is eventually written to the store (or immediately through flush()).
    """

    def __init__(self, session, delay: float = EDIT_DEBOUNCE_S):
        self.session = session
        self.delay = delay
        self._pending: Optional[Tuple[str, str]] = None
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> Optional[Tuple[str, str]]:
        return self._pending

    def pending_for(self, path: str) -> Optional[str]:
        if self._pending and self._pending[0] == path:
            return self._pending[1]
        return None

    def edit(self, content: Optional[str]):
        """Record new editor content for the selected file. Must run inside the event loop."""
        if content is None:
            return
        path = self.session.selected_path
        if path is None:
            return
        if self._pending and self._pending[0] != path:
            self.flush()
        self._pending = (path, content)
        self._cancel_timer()
        self._handle = asyncio.get_running_loop().call_later(self.delay, self.flush)

    def flush(self) -> bool:
        """Commit the pending edit now. Returns True when something was written."""
        self._cancel_timer()
        if self._pending is None:
            return False
        path, content = self._pending
        self._pending = None
        if not self.session.store.set_content(path, content):
            logger.warning("Dropped edit for %s: file no longer exists", path)
            return False
        return True

    def discard(self, path: Optional[str] = None):
        """Drop the pending edit (for `path` only, when given)."""
        if self._pending is None or (path is not None and self._pending[0] != path):
            return
        logger.debug("Discarding pending edit for %s", self._pending[0])
        self._pending = None
        self._cancel_timer()

    def _cancel_timer(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
