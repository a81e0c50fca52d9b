# pluginforge/core/validator.py
import re
from typing import Any, Dict, Iterable, Optional

MIN_DESCRIPTION_LENGTH = 10

UNCLEAR_REQUEST_MESSAGE = (
    "Please provide a clear description of what you want your plugin to do.\n\n"
    "Examples:\n"
    "- 'Create an economy plugin with /balance and /pay commands'\n"
    "- 'Make a custom enchantment plugin with fire damage'\n"
    "- 'Build a minigame with team selection and arena teleportation'"
)

CODE_EXTENSIONS = (".java", ".kt", ".sk", ".mcfunction")

_WORD_RE = re.compile(r"[a-zA-Z]{3,}")


class UnclearRequestError(ValueError):
    """The description cannot be turned into a plugin; message is user-facing."""

    def __init__(self, message: str = UNCLEAR_REQUEST_MESSAGE):
        super().__init__(message)
        self.message = message


def check_description(description: Optional[str]) -> Optional[str]:
    """Return the unclear-request message for unusable descriptions, None when acceptable."""
    trimmed = (description or "").strip()
    if len(trimmed) < MIN_DESCRIPTION_LENGTH or not _WORD_RE.search(trimmed):
        return UNCLEAR_REQUEST_MESSAGE
    return None


def _path(f: Any) -> str:
    if isinstance(f, dict):
        return f.get("path") or ""
    return getattr(f, "path", "") or ""


def has_code_files(files: Iterable[Any]) -> bool:
    return any(_path(f).endswith(CODE_EXTENSIONS) or "plugin.yml" in _path(f) for f in files)


def is_readme_only(files: Iterable[Any]) -> bool:
    """The model answered a real request with nothing but a README."""
    files = list(files)
    return not has_code_files(files) and len(files) == 1 and "README" in _path(files[0])


def summarize_files(files: Iterable[Any]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for f in files:
        p = _path(f)
        ext = p.rsplit(".", 1)[-1].lower() if "." in p.rsplit("/", 1)[-1] else ""
        counts[ext] = counts.get(ext, 0) + 1
    return counts
