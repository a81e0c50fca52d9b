# pluginforge/utils/config.py
import os

from dotenv import load_dotenv

load_dotenv()

# ----------------------------
# LLM
# ----------------------------
DEFAULT_MODEL = os.environ.get("AI_DEFAULT_MODEL", "google/gemini-2.5-flash")
GEMINI_API_KEY_ENV = "GOOGLE_API_KEY_GEMINI"
LLM_RETRIES = int(os.environ.get("AI_RETRY_COUNT", 1))
TIMEOUT = int(os.environ.get("AI_TIMEOUT", 180))
LOG_DIR = os.environ.get("AI_BACKEND_LOG_DIR", "./ai_backend_logs")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

AGENT_TEMPERATURES = {
    "generate": float(os.environ.get("AI_TEMP_GENERATE", 0.5)),
    "fix": float(os.environ.get("AI_TEMP_FIX", 0.2)),
    "update": float(os.environ.get("AI_TEMP_UPDATE", 0.4)),
}

# ----------------------------
# Streaming / routing
# ----------------------------
STREAM_CHUNK_SZ = int(os.environ.get("AI_STREAM_CHUNK_SZ", 50))
STREAM_CHUNK_DELAY = float(os.environ.get("AI_STREAM_CHUNK_DELAY", 0.03))

# descriptions longer than this get the "complex request" prompt block
COMPLEX_PROMPT_THRESHOLD = 200

# strictly greater than: len == threshold still streams
GENERATE_BACKGROUND_THRESHOLD = 300
SANDBOX_BACKGROUND_THRESHOLD = 200

POLL_INTERVAL_S = float(os.environ.get("PLUGINFORGE_POLL_INTERVAL", 2.0))
EDIT_DEBOUNCE_S = float(os.environ.get("PLUGINFORGE_EDIT_DEBOUNCE", 0.15))

# ----------------------------
# Storage collaborators
# ----------------------------
SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_KEY = os.environ.get("SUPABASE_KEY", "")
JOBS_TABLE = os.environ.get("PLUGINFORGE_JOBS_TABLE", "generation_jobs")
PROJECTS_TABLE = os.environ.get("PLUGINFORGE_PROJECTS_TABLE", "projects")
STORE_TIMEOUT = int(os.environ.get("PLUGINFORGE_STORE_TIMEOUT", 10))

# ----------------------------
# Session client
# ----------------------------
API_BASE_URL = os.environ.get("PLUGINFORGE_API_URL", "http://localhost:8000")
API_TIMEOUT = float(os.environ.get("PLUGINFORGE_API_TIMEOUT", 300))
