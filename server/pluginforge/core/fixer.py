# pluginforge/core/fixer.py
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from pluginforge.core.llm_client import call_structured_generation
from pluginforge.core.prompts import build_fix_prompt, build_update_prompt
from pluginforge.models import FilePatch, FileUpdate, FixResult, UpdateResult
from pluginforge.utils.config import AGENT_TEMPERATURES
from pluginforge.utils.file_helpers import safe_normalize

logger = logging.getLogger(__name__)


# -------------------------
# Structured response models
# -------------------------
class PatchModel(BaseModel):
    path: str = Field(..., description="Existing file path")
    new_content: str = Field(..., description="Full corrected file content")


class FixResponseModel(BaseModel):
    patches: List[PatchModel] = Field(default_factory=list, description="Files to replace")
    explanation: str = Field("", description="What was wrong and what changed")


class UpdateItemModel(BaseModel):
    path: str = Field(..., description="Relative file path (new or existing)")
    content: str = Field(..., description="Full file content")
    description: Optional[str] = Field("", description="Short change description")


class UpdateResponseModel(BaseModel):
    updates: List[UpdateItemModel] = Field(default_factory=list, description="Added or changed files")
    summary: str = Field("", description="Summary of the update")


def _file_dicts(files: List[Any]) -> List[Dict[str, str]]:
    out = []
    for f in files:
        if isinstance(f, BaseModel):
            f = f.model_dump()
        out.append({"path": f.get("path", ""), "content": f.get("content", "")})
    return out


async def auto_fix(build_log: str, files: List[Any], model: Optional[str] = None,
                   debug: bool = False) -> FixResult:
    """
    Ask the model to correct existing files given the build console output.
    Patches for paths that are not part of the project are dropped: auto-fix never creates files.
    """
    file_list = _file_dicts(files)
    known = {safe_normalize(f["path"]) for f in file_list}
    parsed = await call_structured_generation(
        build_fix_prompt(build_log, file_list),
        FixResponseModel,
        model=model,
        temperature=AGENT_TEMPERATURES["fix"],
        debug=debug,
    )

    patches: List[FilePatch] = []
    for p in parsed.get("patches") or []:
        path = safe_normalize(p.get("path") or "")
        if path is None or path not in known:
            logger.warning("auto-fix returned patch for unknown file %r; skipped", p.get("path"))
            continue
        patches.append(FilePatch(path=path, new_content=p.get("new_content") or ""))
    logger.info("auto-fix produced %d patch(es)", len(patches))
    return FixResult(patches=patches, explanation=parsed.get("explanation") or "")


async def update_plugin(prompt: str, existing_files: List[Any], platform: str, mc_version: str,
                        model: Optional[str] = None, debug: bool = False) -> UpdateResult:
    """
    Apply a free-text instruction. New paths are allowed here, unlike auto_fix.
    """
    parsed = await call_structured_generation(
        build_update_prompt(prompt, _file_dicts(existing_files), platform, mc_version),
        UpdateResponseModel,
        model=model,
        temperature=AGENT_TEMPERATURES["update"],
        debug=debug,
    )

    updates: List[FileUpdate] = []
    seen = set()
    for u in parsed.get("updates") or []:
        path = safe_normalize(u.get("path") or "")
        if path is None:
            logger.warning("update returned unsafe path %r; skipped", u.get("path"))
            continue
        if path in seen:
            continue
        seen.add(path)
        updates.append(FileUpdate(path=path, content=u.get("content") or "", description=u.get("description") or ""))
    logger.info("update produced %d file change(s)", len(updates))
    return UpdateResult(updates=updates, summary=parsed.get("summary") or "")
