from typing import Any, Dict, List

from core.base import BaseScanner
from core.classifier import classify
from core.errors import ErrorKind
from core.models import AccessState, EntityDescriptor, EntityScanResult
from core.utils import entity_path, parse_content_range_total


class RLSScanner(BaseScanner):
    async def scan(self, entity: EntityDescriptor) -> EntityScanResult:
        table = entity.name
        limit = self.config.sample_limit
        self.log(f"[*] Scanning table: {table}", "cyan")
        outcome = await self.client.get(
            entity_path(self.config.rest_path, table),
            max_attempts=self.config.max_attempts,
            params={"limit": limit},
            headers={"Prefer": "count=exact"},
        )

        if outcome.kind == ErrorKind.ACCESS_DENIED:
            self.log(f"    [+] {table} is protected (HTTP {outcome.status})", "green")
            return EntityScanResult(
                name=table,
                access_state=AccessState.BLOCKED,
                http_status=outcome.status,
                columns=entity.columns,
            )

        if not outcome.ok:
            self.log(f"    [!] {table} could not be read: {outcome.error}", "yellow")
            return self._errored(entity, outcome.error, outcome.status)

        r = outcome.response
        try:
            data = r.json()
        except ValueError as e:
            return self._errored(entity, f"Invalid JSON body: {e}", r.status_code)
        rows: List[Dict[str, Any]] = [row for row in data if isinstance(row, dict)] if isinstance(data, list) else []

        total = parse_content_range_total(r.headers.get("content-range"))
        row_count = max(total, len(rows)) if total is not None else len(rows)
        sample = rows[:limit]

        verdict = classify(table, sample, entity.columns, row_count=row_count)
        if row_count:
            self.log(f"    [!] Read access confirmed for {table} (Rows: {row_count}, Severity: {verdict.severity.value})", "bold red")
        else:
            self.log(f"    [+] {table} is readable but returned no rows", "green")

        return EntityScanResult(
            name=table,
            access_state=AccessState.ACCESSIBLE,
            http_status=r.status_code,
            row_count=row_count,
            sample_rows=sample,
            columns=verdict.columns,
            sensitive_fields=verdict.sensitive_fields,
            severity=verdict.severity,
        )

    def _errored(self, entity: EntityDescriptor, error: str, status: int = None) -> EntityScanResult:
        return EntityScanResult(
            name=entity.name,
            access_state=AccessState.ERRORED,
            http_status=status,
            columns=entity.columns,
            error=error or "Unknown error",
        )
