import logging

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from pluginforge.api.responses import error_response
from pluginforge.core.store import StoreError, TableStore, get_project_store, utc_now
from pluginforge.models import ProjectRecord

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/projects")
async def save_project(record: ProjectRecord, projects: TableStore = Depends(get_project_store)):
    """Persist a finished generation to the user's history."""
    row = record.model_dump()
    row["created_at"] = row.get("created_at") or utc_now()
    try:
        saved = await run_in_threadpool(projects.insert, row)
    except StoreError as e:
        logger.error("Failed to save project %s: %s", record.project_name, e)
        return error_response(500, str(e))
    return {"success": True, "project": saved}
