"""
Pytest fixtures for the rlsprobe test suite.
"""

import io
from typing import Any, Dict, List, Optional
from urllib.parse import unquote

import httpx
import pytest
from rich.console import Console

from core.config import TargetConfig
from core.http import ResilientClient
from core.logger import ScanLogger

BASE_URL = "https://abcdefghijklmnop.supabase.co"
ANON_KEY = (
    "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9"
    ".eyJpc3MiOiJzdXBhYmFzZSIsInJlZiI6ImFiY2RlZmdoaWprbG1ub3AiLCJyb2xlIjoiYW5vbiJ9"
    ".dGVzdHNpZ25hdHVyZXRlc3RzaWduYXR1cmU"
)


class FakeSleep:
    """Records requested waits instead of suspending."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)


class FakeBackend:
    """
    Minimal PostgREST stand-in served through httpx.MockTransport.

    tables maps a name to an options dict:
        columns: {name: {"type": ..., "format": ...}} placed in definitions
        rows:    list of row dicts returned by GET
        status:  status code for the table endpoint (default 200)
        total:   Content-Range total override (None omits the header)
        raise_:  exception instance raised instead of responding
    """

    def __init__(self, tables: Optional[Dict[str, Dict[str, Any]]] = None, schema_status: int = 200,
                 extra_definitions: Optional[Dict[str, Any]] = None):
        self.tables = tables or {}
        self.schema_status = schema_status
        self.extra_definitions = extra_definitions or {}
        self.requests: List[httpx.Request] = []

    def schema(self) -> Dict[str, Any]:
        definitions = {
            name: {"type": "object", "properties": opts.get("columns", {})}
            for name, opts in self.tables.items()
            if not opts.get("hidden_from_schema")
        }
        definitions.update(self.extra_definitions)
        paths = {f"/{name}": {} for name in self.tables}
        paths["/rpc/{fn}"] = {}
        return {"swagger": "2.0", "info": {"description": "PostgREST"}, "paths": paths, "definitions": definitions}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/rest/v1/":
            if self.schema_status != 200:
                return httpx.Response(self.schema_status, json={"message": "nope"})
            return httpx.Response(200, json=self.schema())

        name = unquote(path[len("/rest/v1/"):])
        opts = self.tables.get(name)
        if opts is None:
            return httpx.Response(404, json={"message": "relation does not exist"})
        if opts.get("raise_") is not None:
            raise opts["raise_"]
        status = opts.get("status", 200)
        if status != 200:
            return httpx.Response(status, json={"message": "permission denied"})

        rows = opts.get("rows", [])
        limit = int(request.url.params.get("limit", len(rows)))
        page = rows[:limit]
        headers = {}
        total = opts.get("total", len(rows))
        if total is not None:
            headers["Content-Range"] = f"0-{len(page) - 1}/{total}" if page else f"*/{total}"
        return httpx.Response(200, json=page, headers=headers)

    def table_requests(self, name: str) -> List[httpx.Request]:
        return [r for r in self.requests if unquote(r.url.path) == f"/rest/v1/{name}"]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def quiet_logger():
    return ScanLogger(verbose=True, console=Console(file=io.StringIO()))


@pytest.fixture
def target_config():
    return TargetConfig(url=BASE_URL, key=ANON_KEY)


def make_client(handler, logger: ScanLogger, sleep: FakeSleep) -> ResilientClient:
    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return ResilientClient(http, logger, sleep)
