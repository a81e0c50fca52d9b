# pluginforge/core/codegen_agent.py
"""
Code Generation Agent
- Exposes:
    async def generate_project(request) -> ProjectData
    async def stream_project_events(project) -> AsyncGenerator[str, None]
- Single responsibility module that performs:
    - the LLM call for a plugin description
    - tolerant parsing of the answer into ProjectData (fenced JSON, fallback project)
    - streaming-safe emission of SSE frames (init/file_start/file_chunk/file_complete/complete)
"""
import re
import json
import asyncio
import logging
from typing import Any, AsyncGenerator, Dict, Optional

from pydantic import ValidationError

from pluginforge.core.llm_client import call_text_generation
from pluginforge.core.prompts import build_system_prompt, build_user_prompt
from pluginforge.core.validator import UnclearRequestError, is_readme_only, summarize_files
from pluginforge.models import GenerateRequest, ProjectData
from pluginforge.utils.config import AGENT_TEMPERATURES, STREAM_CHUNK_DELAY, STREAM_CHUNK_SZ
from pluginforge.utils.file_helpers import safe_normalize

logger = logging.getLogger(__name__)

_FENCE_RES = (
    re.compile(r"```json\s*\n([\s\S]*?)\n\s*```"),
    re.compile(r"```\s*\n([\s\S]*?)\n\s*```"),
)


class ProjectParseError(ValueError):
    pass


def _extract_json_text(content: str) -> str:
    for rx in _FENCE_RES:
        m = rx.search(content)
        if m:
            return m.group(1)
    return content.strip()


def _clean_files(raw_files: Any) -> list:
    """Drop unsafe paths and collapse duplicates (later entries win, first position kept)."""
    out: Dict[str, Dict[str, str]] = {}
    if not isinstance(raw_files, list):
        return []
    for f in raw_files:
        if not isinstance(f, dict):
            continue
        path = safe_normalize(f.get("path") or "")
        if path is None:
            logger.warning("Skipping file with unsafe path: %r", f.get("path"))
            continue
        content = f.get("content")
        out[path] = {"path": path, "content": content if isinstance(content, str) else str(content or "")}
    return list(out.values())


def load_project(content: str, plugin_type: str, mc_version: str) -> ProjectData:
    """
    Strict parse of a model answer. Raises UnclearRequestError when the model refused,
    ProjectParseError when the answer is not a usable project.
    """
    try:
        parsed = json.loads(_extract_json_text(content))
    except json.JSONDecodeError as e:
        raise ProjectParseError(f"invalid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ProjectParseError("top-level JSON is not an object")
    if parsed.get("error") == "unclear_request":
        raise UnclearRequestError(parsed.get("message") or UnclearRequestError().message)

    parsed["files"] = _clean_files(parsed.get("files"))
    parsed.setdefault("platform", plugin_type)
    parsed.setdefault("mc_version", mc_version)
    parsed.setdefault("scripts", ["./gradlew build"])
    try:
        return ProjectData.model_validate(parsed)
    except ValidationError as e:
        raise ProjectParseError(str(e)) from e


def fallback_project(content: str, plugin_type: str, mc_version: str) -> ProjectData:
    return ProjectData(
        project_name="GeneratedPlugin",
        language="java",
        platform=plugin_type,
        mc_version=mc_version,
        files=[{
            "path": "README.md",
            "content": (
                "# Generated Project\n\n"
                "Error parsing AI response. Please try regenerating.\n\n"
                f"{content[:1000]}"
            ),
        }],
        scripts=["./gradlew build"],
        explain_steps=[{"title": "Generation Complete", "description": "Project created with errors", "estimated_time": "0s"}],
        metadata={"dependencies": [], "notes": "Parse error occurred"},
    )


def parse_project_response(content: str, plugin_type: str, mc_version: str) -> ProjectData:
    """
    Lenient parse used by the streaming endpoint: a malformed answer becomes a README-only
    project carrying the raw text so the user can still see what came back.
    """
    try:
        project = load_project(content, plugin_type, mc_version)
    except ProjectParseError as e:
        logger.error("Failed to parse AI response: %s", e)
        return fallback_project(content, plugin_type, mc_version)

    if is_readme_only(project.files):
        # returned anyway; the user can run auto-fix or regenerate
        logger.warning("AI only generated README for a plugin request")
    return project


async def request_project_text(req: GenerateRequest, debug: bool = False) -> str:
    logger.info("Generating plugin: type=%s mc=%s model=%s len=%d",
                req.pluginType, req.mcVersion, req.model, len(req.description))
    return await call_text_generation(
        build_system_prompt(),
        build_user_prompt(req.description, req.pluginType, req.mcVersion),
        model=req.model,
        temperature=AGENT_TEMPERATURES["generate"],
        debug=debug,
    )


async def generate_project(req: GenerateRequest, debug: bool = False) -> ProjectData:
    """
    Entrypoint for the streaming endpoint: one model call, lenient parse.
    """
    content = await request_project_text(req, debug=debug)
    project = parse_project_response(content, req.pluginType, req.mcVersion)
    logger.info("Parsed project %s: %s", project.project_name, summarize_files(project.files))
    return project


# ----------------------------
# Streaming helpers (events -> SSE frames)
# ----------------------------
def sse_frame(event_type: str, data: Dict[str, Any]) -> str:
    return "data: " + json.dumps({"type": event_type, "data": data}, ensure_ascii=False) + "\n\n"


async def stream_project_events(project: ProjectData,
                                chunk_size: int = STREAM_CHUNK_SZ,
                                delay: float = STREAM_CHUNK_DELAY) -> AsyncGenerator[str, None]:
    """
    Async generator yielding SSE frames for an already generated project.
    Files are re-streamed in fixed-size chunks so the client can render typing progress.
    """
    chunk_size = max(1, chunk_size)
    try:
        yield sse_frame("init", {
            "project_name": project.project_name,
            "language": project.language,
            "platform": project.platform,
            "mc_version": project.mc_version,
        })
        for f in project.files:
            yield sse_frame("file_start", {"path": f.path})
            for i in range(0, len(f.content), chunk_size):
                yield sse_frame("file_chunk", {"path": f.path, "chunk": f.content[i:i + chunk_size]})
                if delay:
                    await asyncio.sleep(delay)
            yield sse_frame("file_complete", {"path": f.path, "content": f.content})
        yield sse_frame("complete", {"project": project.model_dump()})
    except Exception as e:
        logger.exception("Streaming failed for %s", project.project_name)
        yield sse_frame("error", {"message": str(e)})
