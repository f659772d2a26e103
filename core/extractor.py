import re
from typing import Dict, Iterable, Optional

from .models import Credential, DiscoveredCredentials

TOKEN_RE = re.compile(r"(?<![A-Za-z0-9_-])eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*")
CLOUD_URL_RE = re.compile(r"https://[a-z0-9-]+\.supabase\.co\b", re.IGNORECASE)

_PUBLIC_PREFIX = r"(?:NEXT_PUBLIC_|VITE_|REACT_APP_|EXPO_PUBLIC_|NUXT_PUBLIC_|GATSBY_|PUBLIC_)?"
_ASSIGN = r"[\"']?\s*[:=]\s*[\"'`]?"

ENV_PATTERNS = [
    re.compile(_PUBLIC_PREFIX + r"SUPABASE[_-]?(?:API[_-]?)?URL" + _ASSIGN + r"(https?://[^\"'`\s,;)]+)", re.IGNORECASE),
    re.compile(_PUBLIC_PREFIX + r"SUPABASE[_-]?(?:ANON[_-]?|PUBLIC[_-]?)?(?:API[_-]?)?KEY" + _ASSIGN + r"([A-Za-z0-9_.-]+)", re.IGNORECASE),
]


def _normalize_url(url: str) -> str:
    return url.strip().rstrip("/.;,)")


def extract_credentials(text: str) -> DiscoveredCredentials:
    """
    Pulls candidate base URLs and bearer tokens out of a blob of script or
    config text. Pure; the same text always gives the same lists.
    """
    urls: Dict[str, None] = {}
    tokens: Dict[str, None] = {}
    if not text:
        return DiscoveredCredentials()

    for m in CLOUD_URL_RE.finditer(text):
        urls.setdefault(_normalize_url(m.group(0)), None)

    for pattern in ENV_PATTERNS:
        for m in pattern.finditer(text):
            value = m.group(1).strip("\"'`")
            if value.lower().startswith(("https://", "http://")):
                urls.setdefault(_normalize_url(value), None)
            elif TOKEN_RE.fullmatch(value):
                tokens.setdefault(value, None)

    for m in TOKEN_RE.finditer(text):
        tokens.setdefault(m.group(0), None)

    return DiscoveredCredentials(urls=list(urls), tokens=list(tokens))


def extract_from_texts(texts: Iterable[str]) -> DiscoveredCredentials:
    urls: Dict[str, None] = {}
    tokens: Dict[str, None] = {}
    for text in texts:
        found = extract_credentials(text)
        urls.update(dict.fromkeys(found.urls))
        tokens.update(dict.fromkeys(found.tokens))
    return DiscoveredCredentials(urls=list(urls), tokens=list(tokens))


def first_credential(found: DiscoveredCredentials) -> Optional[Credential]:
    if not found.urls or not found.tokens:
        return None
    return Credential(endpoint_base_url=found.urls[0], bearer_token=found.tokens[0])
