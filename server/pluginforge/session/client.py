# pluginforge/session/client.py
"""
Async HTTP client for the PluginForge backend, used by the editing session.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from pluginforge.models import (
    FixResult,
    GenerateRequest,
    JobStatusOut,
    ProjectData,
    ProjectRecord,
    UpdateResult,
)
from pluginforge.utils.config import API_BASE_URL, API_TIMEOUT

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class APIError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class GenerationRejected(APIError):
    """The server refused the description (unclear request) before generating."""


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}: {resp.text[:200] or resp.reason_phrase}"
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or f"HTTP {resp.status_code}")
    return f"HTTP {resp.status_code}"


def _parse(model: Type[M], data: Any, what: str) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise APIError(f"invalid {what} response: {e.error_count()} validation error(s)") from e


class PluginForgeClient:
    def __init__(self, base_url: str = API_BASE_URL,
                 http: Optional[httpx.AsyncClient] = None,
                 timeout: float = API_TIMEOUT):
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self):
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = await self.http.post(path, json=body)
        except httpx.HTTPError as e:
            raise APIError(f"{path}: {e.__class__.__name__}: {e}") from e
        if resp.status_code >= 400:
            raise APIError(_error_message(resp), resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise APIError(f"{path}: response is not JSON", resp.status_code) from e
        if not isinstance(data, dict) or data.get("success") is not True:
            raise APIError(_error_message(resp), resp.status_code)
        return data

    # ----------------------------
    # Streaming generation
    # ----------------------------
    @asynccontextmanager
    async def open_generation_stream(self, request: GenerateRequest) -> AsyncIterator[httpx.Response]:
        try:
            async with self.http.stream("POST", "/generate-plugin", json=request.model_dump()) as resp:
                if resp.status_code >= 400:
                    await resp.aread()
                    raise APIError(f"Generation failed: {_error_message(resp)}", resp.status_code)
                if resp.headers.get("content-type", "").startswith("application/json"):
                    await resp.aread()
                    raise GenerationRejected(_error_message(resp), resp.status_code)
                yield resp
        except httpx.HTTPError as e:
            raise APIError(f"{e.__class__.__name__}: {e}") from e

    # ----------------------------
    # Background jobs
    # ----------------------------
    async def create_job(self, request: GenerateRequest, user_id: Optional[str]) -> Dict[str, Any]:
        data = await self._post("/generation-jobs", {
            "user_id": user_id,
            "description": request.description,
            "plugin_type": request.pluginType,
            "mc_version": request.mcVersion,
            "model": request.model,
        })
        job = data.get("job") or {}
        if not job.get("id"):
            raise APIError("job creation returned no id")
        return job

    async def trigger_background(self, job_id: str) -> Dict[str, Any]:
        return await self._post("/generate-plugin-background", {"job_id": job_id})

    async def check_status(self, job_id: str) -> JobStatusOut:
        data = await self._post("/check-generation-status", {"job_id": job_id})
        if "job" not in data:
            raise APIError("status response has no job")
        return _parse(JobStatusOut, data["job"], "status")

    # ----------------------------
    # Patches
    # ----------------------------
    async def auto_fix(self, build_log: str, files: List[Dict[str, str]], model: Optional[str]) -> FixResult:
        data = await self._post("/auto-fix", {"buildLog": build_log, "files": files, "model": model})
        return _parse(FixResult, data.get("fixes") or {}, "auto-fix")

    async def update_plugin(self, prompt: str, files: List[Dict[str, str]], platform: str,
                            mc_version: str, model: Optional[str]) -> UpdateResult:
        data = await self._post("/update-plugin", {
            "prompt": prompt,
            "existingFiles": files,
            "platform": platform,
            "mcVersion": mc_version,
            "model": model,
        })
        return _parse(UpdateResult, data.get("updates") or {}, "update")

    # ----------------------------
    # Compile / persistence
    # ----------------------------
    async def compile_plugin(self, project: ProjectData) -> Dict[str, Any]:
        return await self._post("/compile-plugin", {
            "project_name": project.project_name,
            "files": [f.model_dump() for f in project.files],
            "platform": project.platform,
            "scripts": project.scripts,
        })

    async def save_project(self, record: ProjectRecord) -> Dict[str, Any]:
        return await self._post("/projects", record.model_dump())
