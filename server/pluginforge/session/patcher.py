# pluginforge/session/patcher.py
"""
Merges auto-fix patches and AI update results into the live project.

The whole response is fetched and validated before the first mutation, so a failed call
never leaves a half-applied patch set behind.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from pluginforge.session.client import APIError

logger = logging.getLogger(__name__)

NO_CHANGES_MESSAGE = "No changes needed. Code looks good!"
AUTO_FIX_FAILED_HINT = "Auto-fix failed. Retry auto-fix or edit the files manually."
UPDATE_FAILED_HINT = "Update failed. Run auto-fix to resolve issues automatically."
PROMPT_PREVIEW_CHARS = 100


@dataclass
class PatchOutcome:
    applied: bool
    changed: List[str] = field(default_factory=list)
    created: List[str] = field(default_factory=list)
    message: str = ""


class PatchApplier:
    def __init__(self, session):
        self.session = session
        self.in_flight = False

    async def auto_fix(self) -> PatchOutcome:
        """Send the build console and files to /auto-fix and replace the files it corrects."""
        s = self.session
        if s.store.project is None:
            return PatchOutcome(False, message="no project loaded")

        s.editor.flush()
        build_log = s.console.as_text()
        s.console.info("Running auto-fix analysis...")
        self.in_flight = True
        try:
            fixes = await s.client.auto_fix(build_log, s.store.file_dicts(), s.model)
        except APIError as e:
            logger.error("Auto-fix error: %s", e)
            return self._fail(e.message, AUTO_FIX_FAILED_HINT, "Failed to apply auto-fix")
        finally:
            self.in_flight = False

        # resolved after the await: the stream may have added files meanwhile
        patches = []
        for p in fixes.patches:
            if s.store.get(p.path) is None:
                logger.warning("Ignoring auto-fix patch for unknown file %s", p.path)
                continue
            patches.append(p)
        if not patches:
            return self._no_changes()

        changed: List[str] = []
        for p in patches:
            s.store.set_content(p.path, p.new_content)
            if p.path not in changed:
                changed.append(p.path)
                s.console.success(f"Fixed: {p.path}")
        self._refresh_selection(changed)

        s.has_error = False
        summary = f"Applied {len(changed)} fixes. {fixes.explanation}".strip()
        s.console.success(summary)
        s.notify("success", "Auto-fix applied!")
        return PatchOutcome(True, changed=changed, message=summary)

    async def update(self, prompt: Optional[str]) -> PatchOutcome:
        """Apply a free-text instruction through /update-plugin; may add new files."""
        s = self.session
        project = s.store.project
        if project is None or not prompt or not prompt.strip():
            return PatchOutcome(False, message="nothing to update")

        s.editor.flush()
        s.console.info(f"Processing request: {prompt[:PROMPT_PREVIEW_CHARS]}")
        self.in_flight = True
        try:
            result = await s.client.update_plugin(
                prompt, s.store.file_dicts(), project.platform, project.mc_version, s.model,
            )
        except APIError as e:
            logger.error("Update error: %s", e)
            return self._fail(e.message, UPDATE_FAILED_HINT, "Update failed - run auto-fix to resolve")
        finally:
            self.in_flight = False

        if not result.updates:
            return self._no_changes()

        changed: List[str] = []
        created: List[str] = []
        for u in result.updates:
            if s.store.upsert(u.path, u.content):
                created.append(u.path)
                s.console.success(f"Created: {u.path} - {u.description or 'New file'}")
            else:
                changed.append(u.path)
                s.console.success(f"Updated: {u.path} - {u.description or 'Modified'}")
        self._refresh_selection(changed + created)

        s.has_error = False
        total = len(changed) + len(created)
        summary = result.summary or f"{total} file(s) modified"
        s.console.success(f"Update Complete: {summary}")
        s.notify("success", f"Successfully updated {total} file(s)")
        return PatchOutcome(True, changed=changed, created=created, message=summary)

    def _refresh_selection(self, paths: List[str]):
        # an unsaved edit on a patched file would hide the patch in the editor
        s = self.session
        if s.selected_path in paths:
            s.editor.discard(s.selected_path)

    def _no_changes(self) -> PatchOutcome:
        s = self.session
        s.has_error = False
        s.console.info(NO_CHANGES_MESSAGE)
        s.notify("info", "No changes needed")
        return PatchOutcome(True, message=NO_CHANGES_MESSAGE)

    def _fail(self, message: str, hint: str, toast: str) -> PatchOutcome:
        s = self.session
        s.has_error = True
        s.console.error(f"Error: {message}")
        s.console.info(hint)
        s.notify("error", toast)
        return PatchOutcome(False, message=message)
