"""Tests for schema enumeration and per-table probing."""

import httpx
import pytest

from conftest import FakeBackend, make_client
from core.errors import SchemaUnavailable
from core.models import AccessState, ColumnInfo, EntityDescriptor, Severity
from scanners.openapi import OpenAPIScanner
from scanners.rls import RLSScanner


def users_backend(**kwargs):
    return FakeBackend({
        "users": {
            "columns": {"id": {"type": "integer"}, "email": {"type": "string", "format": "text"}},
            "rows": [{"id": 1, "email": "alice@example.com"}],
        },
        "posts": {"columns": {"id": {"type": "integer"}}, "rows": []},
    }, **kwargs)


class TestEnumeration:
    @pytest.mark.asyncio
    async def test_reads_tables_from_definitions(self, target_config, quiet_logger, fake_sleep):
        backend = users_backend()
        scanner = OpenAPIScanner(make_client(backend.handler, quiet_logger, fake_sleep), target_config, quiet_logger)
        result = await scanner.enumerate()
        assert result.names == ["users", "posts"]
        assert result.entities[0].columns == [
            ColumnInfo(name="id", type="integer"),
            ColumnInfo(name="email", type="string", format="text"),
        ]
        # path templates never become tables
        assert all("{" not in name for name in result.names)

    def test_parse_tables_filters_blank_and_templated_names(self, target_config, quiet_logger, fake_sleep):
        scanner = OpenAPIScanner(make_client(lambda r: httpx.Response(200), quiet_logger, fake_sleep), target_config)
        document = {
            "paths": {"/only_in_paths": {}},
            "definitions": {
                "": {},
                "  ": {},
                "{id}": {},
                "items": {"properties": {"tags": {"type": ["string", "null"]}, "meta": "bad"}},
                "empty": None,
            },
        }
        tables = scanner.parse_tables(document)
        assert [t.name for t in tables] == ["items", "empty"]
        assert tables[0].columns == [ColumnInfo(name="tags", type="string|null"), ColumnInfo(name="meta")]
        assert tables[1].columns == []

    def test_missing_definitions(self, target_config, quiet_logger, fake_sleep):
        scanner = OpenAPIScanner(make_client(lambda r: httpx.Response(200), quiet_logger, fake_sleep), target_config)
        assert scanner.parse_tables({"paths": {"/a": {}}}) == []
        assert scanner.parse_tables({"definitions": ["a"]}) == []

    @pytest.mark.asyncio
    async def test_schema_failure_raises(self, target_config, quiet_logger, fake_sleep):
        backend = users_backend(schema_status=404)
        scanner = OpenAPIScanner(make_client(backend.handler, quiet_logger, fake_sleep), target_config)
        with pytest.raises(SchemaUnavailable) as exc:
            await scanner.enumerate()
        assert exc.value.status == 404
        assert "HTTP 404" in exc.value.message

    @pytest.mark.asyncio
    async def test_non_json_schema_raises(self, target_config, quiet_logger, fake_sleep):
        client = make_client(lambda r: httpx.Response(200, text="<html>"), quiet_logger, fake_sleep)
        with pytest.raises(SchemaUnavailable):
            await OpenAPIScanner(client, target_config).enumerate()

    @pytest.mark.asyncio
    async def test_reuses_given_schema_response(self, target_config, quiet_logger, fake_sleep):
        backend = users_backend()
        scanner = OpenAPIScanner(make_client(backend.handler, quiet_logger, fake_sleep), target_config)
        response = httpx.Response(200, json=backend.schema())
        result = await scanner.enumerate(response)
        assert result.names == ["users", "posts"]
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_given_response_must_be_an_object(self, target_config, quiet_logger, fake_sleep):
        scanner = OpenAPIScanner(make_client(lambda r: httpx.Response(200), quiet_logger, fake_sleep), target_config)
        with pytest.raises(SchemaUnavailable) as exc:
            await scanner.enumerate(httpx.Response(200, json=["users"]))
        assert exc.value.message == "Schema document is not an object"


class TestRLSScanner:
    @pytest.mark.asyncio
    async def test_readable_table(self, target_config, quiet_logger, fake_sleep):
        backend = users_backend()
        scanner = RLSScanner(make_client(backend.handler, quiet_logger, fake_sleep), target_config)
        result = await scanner.scan(EntityDescriptor(name="users"))
        assert result.access_state == AccessState.ACCESSIBLE
        assert result.row_count == 1
        assert result.severity == Severity.HIGH
        request = backend.table_requests("users")[0]
        assert request.url.params["limit"] == "15"
        assert request.headers["prefer"] == "count=exact"

    @pytest.mark.asyncio
    async def test_row_count_uses_content_range_total(self, target_config, quiet_logger, fake_sleep):
        rows = [{"id": i, "title": "x"} for i in range(40)]
        backend = FakeBackend({"posts": {"rows": rows, "total": 250}})
        scanner = RLSScanner(make_client(backend.handler, quiet_logger, fake_sleep), target_config)
        result = await scanner.scan(EntityDescriptor(name="posts"))
        assert result.row_count == 250
        assert len(result.sample_rows) == 15
        assert result.severity == Severity.MEDIUM

    @pytest.mark.asyncio
    async def test_missing_content_range_falls_back_to_rows(self, target_config, quiet_logger, fake_sleep):
        backend = FakeBackend({"posts": {"rows": [{"id": 1}, {"id": 2}], "total": None}})
        scanner = RLSScanner(make_client(backend.handler, quiet_logger, fake_sleep), target_config)
        result = await scanner.scan(EntityDescriptor(name="posts"))
        assert result.row_count == 2

    @pytest.mark.asyncio
    async def test_empty_table_is_safe(self, target_config, quiet_logger, fake_sleep):
        backend = users_backend()
        scanner = RLSScanner(make_client(backend.handler, quiet_logger, fake_sleep), target_config)
        result = await scanner.scan(EntityDescriptor(name="posts", columns=[ColumnInfo(name="password")]))
        assert result.access_state == AccessState.ACCESSIBLE
        assert result.severity == Severity.SAFE
        assert result.row_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_denied_is_blocked(self, target_config, quiet_logger, fake_sleep, status):
        backend = FakeBackend({"secrets": {"status": status}})
        scanner = RLSScanner(make_client(backend.handler, quiet_logger, fake_sleep), target_config)
        result = await scanner.scan(EntityDescriptor(name="secrets"))
        assert result.access_state == AccessState.BLOCKED
        assert result.http_status == status
        assert result.severity is None
        assert len(backend.table_requests("secrets")) == 1

    @pytest.mark.asyncio
    async def test_server_error_is_errored_after_retries(self, target_config, quiet_logger, fake_sleep):
        backend = FakeBackend({"flaky": {"status": 500}})
        scanner = RLSScanner(make_client(backend.handler, quiet_logger, fake_sleep), target_config)
        result = await scanner.scan(EntityDescriptor(name="flaky"))
        assert result.access_state == AccessState.ERRORED
        assert result.error == "HTTP 500"
        assert len(backend.table_requests("flaky")) == 3

    @pytest.mark.asyncio
    async def test_table_names_are_url_encoded(self, target_config, quiet_logger, fake_sleep):
        backend = FakeBackend({"odd name/x": {"rows": [{"id": 1}]}})
        scanner = RLSScanner(make_client(backend.handler, quiet_logger, fake_sleep), target_config)
        result = await scanner.scan(EntityDescriptor(name="odd name/x"))
        assert result.access_state == AccessState.ACCESSIBLE
        assert "odd%20name%2Fx" in str(backend.requests[0].url)
