# pluginforge/api/fixes.py
import logging

from fastapi import APIRouter

from pluginforge.api.responses import error_response
from pluginforge.core.fixer import auto_fix, update_plugin
from pluginforge.core.llm_client import LLMError
from pluginforge.models import AutoFixRequest, UpdateRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/auto-fix")
async def auto_fix_endpoint(req: AutoFixRequest):
    """
    Request JSON: {buildLog, files: [{path, content}], model}
    Response: {success, fixes: {patches: [{path, new_content}], explanation}}
    """
    if not req.files:
        return error_response(400, "files must not be empty")
    try:
        fixes = await auto_fix(req.buildLog, req.files, model=req.model)
    except LLMError as e:
        return error_response(e.status_code, str(e))
    except Exception as e:
        logger.exception("Error in auto-fix")
        return error_response(500, str(e))
    return {"success": True, "fixes": fixes.model_dump()}


@router.post("/update-plugin")
async def update_plugin_endpoint(req: UpdateRequest):
    """
    Request JSON: {prompt, existingFiles, platform, mcVersion, model}
    Response: {success, updates: {updates: [{path, content, description}], summary}}
    """
    if not req.prompt.strip():
        return error_response(400, "prompt must not be empty")
    try:
        updates = await update_plugin(req.prompt, req.existingFiles, req.platform, req.mcVersion, model=req.model)
    except LLMError as e:
        return error_response(e.status_code, str(e))
    except Exception as e:
        logger.exception("Error in update-plugin")
        return error_response(500, str(e))
    return {"success": True, "updates": updates.model_dump()}
