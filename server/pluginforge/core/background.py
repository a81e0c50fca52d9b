# pluginforge/core/background.py
"""
Background generation worker for long requests.

The job row is the only channel back to the client: progress goes
pending -> processing(10) -> 20 -> 60 -> 90 -> completed(100), or failed with an error_message.
"""
import logging

from starlette.concurrency import run_in_threadpool

from pluginforge.core.codegen_agent import ProjectParseError, load_project, request_project_text
from pluginforge.core.llm_client import LLMError
from pluginforge.core.store import StoreError, TableStore, utc_now
from pluginforge.core.validator import UnclearRequestError, is_readme_only
from pluginforge.models import GenerateRequest, GenerationJob, ProjectRecord

logger = logging.getLogger(__name__)

PARSE_FAILED_MESSAGE = "Failed to parse AI response. Please try again or simplify your prompt."


class JobNotFoundError(LookupError):
    pass


async def load_job(job_id: str, jobs: TableStore) -> GenerationJob:
    row = await run_in_threadpool(jobs.get, job_id)
    if not row:
        raise JobNotFoundError(f"Job not found: {job_id}")
    return GenerationJob.model_validate(row)


async def _progress(jobs: TableStore, job_id: str, **fields):
    await run_in_threadpool(jobs.update, job_id, fields)


async def _fail(jobs: TableStore, job_id: str, message: str):
    logger.error("Job %s failed: %s", job_id, message)
    await _progress(jobs, job_id, status="failed", error_message=message)


async def run_generation_job(job_id: str, jobs: TableStore, projects: TableStore) -> bool:
    """
    Run one queued job to a terminal state. Returns True when the job completed.
    Scheduled through FastAPI BackgroundTasks, so nothing here may raise past the job row.
    """
    try:
        job = await load_job(job_id, jobs)
    except (JobNotFoundError, StoreError) as e:
        logger.error("Cannot start job %s: %s", job_id, e)
        return False

    try:
        await _progress(jobs, job_id, status="processing", progress=10)
        req = GenerateRequest(
            description=job.description,
            pluginType=job.plugin_type,
            mcVersion=job.mc_version,
            model=job.model,
        )
        await _progress(jobs, job_id, progress=20)

        logger.info("Calling AI for job: %s", job_id)
        try:
            content = await request_project_text(req)
        except LLMError as e:
            await _fail(jobs, job_id, str(e))
            return False
        await _progress(jobs, job_id, progress=60)

        try:
            project = load_project(content, req.pluginType, req.mcVersion)
        except UnclearRequestError as e:
            await _fail(jobs, job_id, e.message)
            return False
        except ProjectParseError as e:
            logger.error("Failed to parse AI response for job %s: %s", job_id, e)
            await _fail(jobs, job_id, PARSE_FAILED_MESSAGE)
            return False
        if is_readme_only(project.files):
            logger.error("AI generated only README for job %s", job_id)
            await _fail(jobs, job_id, PARSE_FAILED_MESSAGE)
            return False

        await _progress(jobs, job_id, progress=90)

        if job.user_id:
            record = ProjectRecord.from_project(job.user_id, job.description, project)
            try:
                await run_in_threadpool(projects.insert, record.model_dump())
            except StoreError:
                logger.exception("Failed to save project for job %s", job_id)

        await _progress(
            jobs, job_id,
            status="completed",
            progress=100,
            project_data=project.model_dump(),
            completed_at=utc_now(),
        )
        logger.info("Job completed successfully: %s", job_id)
        return True
    except StoreError:
        logger.exception("Job %s lost its job row", job_id)
        return False
    except Exception as e:
        logger.exception("Unexpected error in job %s", job_id)
        try:
            await _fail(jobs, job_id, str(e) or e.__class__.__name__)
        except StoreError:
            logger.exception("Job %s could not be marked failed", job_id)
        return False
