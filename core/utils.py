import os
import re
import shlex
from typing import Dict, Optional
from urllib.parse import quote

_CONTENT_RANGE_TOTAL = re.compile(r"/(\d+)\s*$")


def parse_content_range_total(header: Optional[str]) -> Optional[int]:
    """'0-14/250' -> 250, '*/0' -> 0, '0-14/*' or missing -> None."""
    if not header:
        return None
    m = _CONTENT_RANGE_TOTAL.search(header)
    return int(m.group(1)) if m else None


def entity_path(rest_path: str, name: str) -> str:
    return f"{rest_path}/{quote(name, safe='')}"


def generate_curl_command(base_url: str, api_key: str, table: str, rest_path: str = "/rest/v1", limit: int = 5) -> str:
    url = f"{base_url.rstrip('/')}{entity_path(rest_path, table)}?limit={limit}"
    return (
        f"curl {shlex.quote(url)} \\\n"
        f"  -H {shlex.quote('apikey: ' + api_key)} \\\n"
        f"  -H {shlex.quote('Authorization: Bearer ' + api_key)}"
    )


IGNORE_DIRS = {".git", "node_modules", "__pycache__", ".venv", "dist", "build", ".next", ".nuxt"}
EXTENSIONS = {".js", ".mjs", ".cjs", ".ts", ".jsx", ".tsx", ".json", ".html", ".htm", ".vue", ".svelte", ".env", ".toml", ".yaml", ".yml"}
MAX_FILE_SIZE = 5 * 1024 * 1024


def _is_candidate(filename: str) -> bool:
    return filename.startswith(".env") or os.path.splitext(filename)[1] in EXTENSIONS


def get_code_files(path: str) -> Dict[str, str]:
    """
    Recursively reads text files that may carry client configuration
    (bundles, env files, embedded JSON) from a directory or a single file.
    Unreadable files are skipped.
    """
    code_files = {}

    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                code_files[os.path.basename(path)] = f.read()
        except OSError:
            pass
        return code_files

    for root, dirs, files in os.walk(path):
        dirs[:] = [d for d in dirs if d not in IGNORE_DIRS]
        for file in files:
            if not _is_candidate(file):
                continue
            full_path = os.path.join(root, file)
            try:
                if os.path.getsize(full_path) < MAX_FILE_SIZE:
                    with open(full_path, "r", encoding="utf-8", errors="replace") as f:
                        code_files[os.path.relpath(full_path, path)] = f.read()
            except OSError:
                continue

    return code_files
