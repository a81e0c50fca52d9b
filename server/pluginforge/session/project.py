# pluginforge/session/project.py
"""
In-memory project model shared by the stream ingestor, the patch applier and local edits.

Every mutation touches a single entry found by path (replace-or-append), so producers
that interleave on the event loop never clone-and-swap the whole file list.
"""
from typing import Dict, List, Optional

from pluginforge.models import ProjectData, ProjectFile


class ProjectFileStore:
    def __init__(self, project: Optional[ProjectData] = None):
        self._project: Optional[ProjectData] = project

    @property
    def project(self) -> Optional[ProjectData]:
        return self._project

    @property
    def files(self) -> List[ProjectFile]:
        return self._project.files if self._project else []

    def _require(self) -> ProjectData:
        if self._project is None:
            self._project = ProjectData()
        return self._project

    def reset(self, platform: str, mc_version: str) -> ProjectData:
        """Start over with the "Generating..." placeholder."""
        self._project = ProjectData.placeholder(platform, mc_version)
        return self._project

    def replace_all(self, project: ProjectData):
        """Wholesale replacement (terminal `complete` event, background hand-off)."""
        self._project = project

    def update_info(self, project_name: str, language: str, platform: str, mc_version: str):
        current = self._require()
        # re-validate so language/platform get the same coercion as a full project
        updated = ProjectData.model_validate({
            **current.model_dump(exclude={"files"}),
            "project_name": project_name,
            "language": language,
            "platform": platform,
            "mc_version": mc_version,
        })
        current.project_name = updated.project_name
        current.language = updated.language
        current.platform = updated.platform
        current.mc_version = updated.mc_version

    def get(self, path: str) -> Optional[ProjectFile]:
        for f in self.files:
            if f.path == path:
                return f
        return None

    def paths(self) -> List[str]:
        return [f.path for f in self.files]

    def start_file(self, path: str) -> ProjectFile:
        existing = self.get(path)
        if existing is not None:
            existing.content = ""
            return existing
        f = ProjectFile(path=path, content="")
        self._require().files.append(f)
        return f

    def append_chunk(self, path: str, chunk: str) -> ProjectFile:
        f = self.get(path)
        if f is None:
            f = ProjectFile(path=path, content="")
            self._require().files.append(f)
        f.content += chunk
        return f

    def set_content(self, path: str, content: str) -> bool:
        """Replace content of an existing file; False when the path is unknown."""
        f = self.get(path)
        if f is None:
            return False
        f.content = content
        return True

    def upsert(self, path: str, content: str) -> bool:
        """Replace or append. Returns True when a new file was created."""
        if self.set_content(path, content):
            return False
        self._require().files.append(ProjectFile(path=path, content=content))
        return True

    def snapshot(self) -> Optional[ProjectData]:
        return self._project.model_copy(deep=True) if self._project else None

    def file_dicts(self) -> List[Dict[str, str]]:
        return [{"path": f.path, "content": f.content} for f in self.files]

    def export_source_text(self) -> str:
        """Plain-text bundle of every source file (the "download sources" artifact)."""
        p = self._project
        if p is None:
            return ""
        parts = [
            f"# {p.project_name}\n\n",
            f"Platform: {p.platform}\n",
            f"MC Version: {p.mc_version}\n\n",
            "## Files\n\n",
        ]
        for f in p.files:
            parts.append(f"### {f.path}\n```\n{f.content}\n```\n\n")
        return "".join(parts)
