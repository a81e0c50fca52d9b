import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.compile import router as compile_router
from .api.fixes import router as fixes_router
from .api.generate import router as generate_router
from .api.projects import router as projects_router
from .utils.config import LOG_LEVEL

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(title="PluginForge AI Backend")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)
app.include_router(generate_router)
app.include_router(fixes_router)
app.include_router(compile_router)
app.include_router(projects_router)
