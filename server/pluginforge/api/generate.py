# pluginforge/api/generate.py
import logging
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.concurrency import run_in_threadpool

from pluginforge.api.responses import error_response, rejected_response
from pluginforge.core.background import JobNotFoundError, load_job, run_generation_job
from pluginforge.core.codegen_agent import generate_project, stream_project_events
from pluginforge.core.llm_client import LLMError
from pluginforge.core.store import StoreError, TableStore, get_job_store, get_project_store
from pluginforge.core.validator import UnclearRequestError, check_description
from pluginforge.models import CreateJobRequest, GenerateRequest, JobRequest, JobStatusOut
from pluginforge.utils import config

logger = logging.getLogger(__name__)

router = APIRouter()

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


@router.post("/generate-plugin")
async def generate_plugin(req: GenerateRequest):
    """
    Streaming generation. The model is called once; its project is then re-streamed as
    SSE frames (init, file_start, file_chunk..., file_complete, complete).
    Unclear requests are answered with a plain JSON {success: false, error} body instead.
    """
    problem = check_description(req.description)
    if problem:
        return rejected_response(problem)

    try:
        project = await generate_project(req)
    except UnclearRequestError as e:
        return rejected_response(e.message)
    except LLMError as e:
        return error_response(e.status_code, str(e))
    except Exception as e:
        logger.exception("Error in generate-plugin")
        return error_response(500, str(e))

    return StreamingResponse(
        stream_project_events(project, chunk_size=config.STREAM_CHUNK_SZ, delay=config.STREAM_CHUNK_DELAY),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/generation-jobs")
async def create_generation_job(req: CreateJobRequest, jobs: TableStore = Depends(get_job_store)):
    problem = check_description(req.description)
    if problem:
        return rejected_response(problem)

    row: Dict[str, Any] = {
        "user_id": req.user_id,
        "description": req.description,
        "plugin_type": req.plugin_type,
        "mc_version": req.mc_version,
        "model": req.model or config.DEFAULT_MODEL,
        "status": "pending",
        "progress": 0,
        "error_message": None,
        "project_data": None,
    }
    try:
        job = await run_in_threadpool(jobs.insert, row)
    except StoreError as e:
        logger.exception("Failed to create generation job")
        return error_response(500, str(e))
    return {"success": True, "job": job}


@router.post("/generate-plugin-background")
async def generate_plugin_background(req: JobRequest,
                                     background_tasks: BackgroundTasks,
                                     jobs: TableStore = Depends(get_job_store),
                                     projects: TableStore = Depends(get_project_store)):
    """
    Queue the worker for an existing job and return immediately; progress is read
    back through /check-generation-status.
    """
    try:
        await load_job(req.job_id, jobs)
    except JobNotFoundError as e:
        return error_response(404, str(e))
    except StoreError as e:
        return error_response(500, str(e))

    background_tasks.add_task(run_generation_job, req.job_id, jobs, projects)
    return {"success": True, "job_id": req.job_id}


@router.post("/check-generation-status")
async def check_generation_status(req: JobRequest, jobs: TableStore = Depends(get_job_store)):
    try:
        job = await load_job(req.job_id, jobs)
    except JobNotFoundError as e:
        return error_response(404, str(e))
    except StoreError as e:
        return error_response(500, str(e))

    out = JobStatusOut(
        id=job.id,
        status=job.status,
        progress=job.progress,
        error_message=job.error_message,
        project_data=job.project_data,
    )
    return JSONResponse({"success": True, "job": out.model_dump()})
