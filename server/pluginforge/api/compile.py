import logging

from fastapi import APIRouter

from pluginforge.api.responses import error_response
from pluginforge.core.compiler import build_demo_jar
from pluginforge.models import CompileRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/compile-plugin")
async def compile_plugin(req: CompileRequest):
    """Simulated compile: returns a base64 text bundle, never an executable JAR."""
    logger.info("Compiling project: %s", req.project_name)
    try:
        return build_demo_jar(req.project_name, req.files, req.platform, req.scripts)
    except Exception as e:
        logger.exception("Error in compile-plugin")
        return error_response(500, str(e))
