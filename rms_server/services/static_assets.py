"""
rms_server/services/static_assets.py
Built UI file resolution

    /                       -> index.html
    /assets/app.js          -> the file, if present
    /dashboard              -> index.html (client-side route)
    /app.abc123.js missing  -> None (asset-like paths never fall back)
    anything with '..'      -> None
"""
import posixpath
from pathlib import Path
from typing import Optional, Union

INDEX_FILE = "index.html"


def normalize_request_path(request_path: str) -> Optional[str]:
    """Collapse a URL path; None if it tries to climb out of the root."""
    if "\x00" in request_path:
        return None
    request_path = request_path.replace("\\", "/")
    if ".." in request_path:
        return None
    normalized = posixpath.normpath("/" + request_path.lstrip("/"))
    if normalized == "/":
        return "/" + INDEX_FILE
    return normalized


def resolve(web_root: Union[str, Path], request_path: str) -> Optional[Path]:
    """Absolute path of the file to serve for request_path, or None."""
    normalized = normalize_request_path(request_path)
    if normalized is None:
        return None

    root = Path(web_root).resolve()
    candidate = (root / normalized.lstrip("/")).resolve()
    if candidate != root and root not in candidate.parents:
        return None

    if candidate.is_file():
        return candidate

    if posixpath.splitext(normalized)[1]:
        return None

    index_file = root / INDEX_FILE
    if index_file.is_file():
        return index_file
    return None
