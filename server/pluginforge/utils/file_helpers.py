import os
import posixpath
from typing import Optional, Tuple


# --- Helper: safe path normalize & reject traversal/abs paths ---
def safe_normalize(p: str) -> Optional[str]:
    if not isinstance(p, str) or p.strip() == "":
        return None
    p = p.strip().replace("\\", "/")
    # disallow absolute paths
    if p.startswith("/") or os.path.isabs(p):
        return None
    clean = posixpath.normpath(p)
    if clean == "." or clean == ".." or clean.startswith("../"):
        return None
    return clean


def split_path(path: str) -> Tuple[str, str]:
    """Return (folder, file name) for a forward-slash project path."""
    folder, _, name = path.rpartition("/")
    return folder, name
