# pluginforge/session/sandbox.py
import logging
from typing import Any, Callable, Dict, Optional

from pluginforge.models import GenerateRequest, ProjectData, ProjectFile
from pluginforge.session.client import PluginForgeClient
from pluginforge.session.console import BuildConsoleLog
from pluginforge.session.editor import DebouncedEditor
from pluginforge.session.orchestrator import GenerationOrchestrator
from pluginforge.session.patcher import PatchApplier, PatchOutcome
from pluginforge.session.project import ProjectFileStore
from pluginforge.utils.config import DEFAULT_MODEL, EDIT_DEBOUNCE_S, POLL_INTERVAL_S

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]

_NOTIFY_LEVELS = {"error": logging.ERROR, "success": logging.INFO, "info": logging.INFO}


def log_notifier(level: str, message: str):
    logger.log(_NOTIFY_LEVELS.get(level, logging.INFO), "[notify:%s] %s", level, message)


class SandboxSession:
    """
    One interactive editing session: the project being generated/edited, its build
    console, the selected file and the flags the UI renders.
    """

    def __init__(self,
                 client: PluginForgeClient,
                 user_id: Optional[str] = None,
                 model: Optional[str] = None,
                 notify: Optional[Notifier] = None,
                 debounce: float = EDIT_DEBOUNCE_S,
                 poll_interval: float = POLL_INTERVAL_S):
        self.client = client
        self.user_id = user_id
        self.model = model or DEFAULT_MODEL
        self.notify: Notifier = notify or log_notifier

        self.store = ProjectFileStore()
        self.console = BuildConsoleLog()
        self.selected_path: Optional[str] = None
        self.has_error = False
        self.is_generating = False
        self.mode = "idle"
        self.progress = 0
        self.compiled_jar: Optional[Dict[str, Any]] = None

        self.editor = DebouncedEditor(self, delay=debounce)
        self.patcher = PatchApplier(self)
        self.orchestrator = GenerationOrchestrator(self, poll_interval=poll_interval)

    @property
    def project(self) -> Optional[ProjectData]:
        return self.store.project

    def select(self, path: Optional[str]) -> bool:
        """Point the editor at `path` (None clears). Unknown paths are refused."""
        if path is not None and self.store.get(path) is None:
            return False
        if path != self.selected_path:
            self.editor.flush()
        self.selected_path = path
        return True

    def select_first(self):
        paths = self.store.paths()
        self.select(paths[0] if paths else None)

    @property
    def selected_file(self) -> Optional[ProjectFile]:
        """The selected file resolved against the live file list, including an unsaved edit."""
        if self.selected_path is None:
            return None
        f = self.store.get(self.selected_path)
        if f is None:
            return None
        pending = self.editor.pending_for(f.path)
        if pending is not None:
            return ProjectFile(path=f.path, content=pending)
        return f

    def open_project(self, project: ProjectData):
        """Load a saved project (history) into the sandbox."""
        self.editor.discard()
        self.store.replace_all(project)
        self.has_error = False
        self.compiled_jar = None
        self.select_first()

    def export_source_text(self) -> str:
        self.editor.flush()
        return self.store.export_source_text()

    # ----------------------------
    # User actions
    # ----------------------------
    async def generate(self, description: str, plugin_type: str = "paper",
                       mc_version: str = "1.21", flow: str = "generate") -> str:
        request = GenerateRequest(description=description, pluginType=plugin_type,
                                  mcVersion=mc_version, model=self.model)
        return await self.orchestrator.generate(request, flow)

    async def auto_fix(self) -> PatchOutcome:
        return await self.patcher.auto_fix()

    async def update(self, prompt: str) -> PatchOutcome:
        return await self.patcher.update(prompt)

    async def compile(self) -> Optional[Dict[str, Any]]:
        return await self.orchestrator.compile()

    def cancel(self) -> bool:
        return self.orchestrator.cancel()

    async def aclose(self):
        self.orchestrator.cancel()
        self.editor.flush()
        await self.client.aclose()
