from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from core.base import BaseScanner
from core.errors import SchemaUnavailable
from core.models import ColumnInfo, EntityDescriptor


@dataclass
class EnumerationResult:
    entities: List[EntityDescriptor] = field(default_factory=list)
    raw_schema: Dict[str, Any] = field(default_factory=dict)

    @property
    def names(self) -> List[str]:
        return [e.name for e in self.entities]


class OpenAPIScanner(BaseScanner):
    async def scan(self) -> Dict[str, Any]:
        endpoint = self.config.schema_endpoint
        self.log(f"[*] Fetching schema document from {endpoint}", "cyan")
        outcome = await self.client.get(endpoint, max_attempts=self.config.max_attempts)
        if not outcome.ok:
            raise SchemaUnavailable(f"Failed to enumerate tables: {outcome.error}", status=outcome.status)
        return self.decode(outcome.response)

    @staticmethod
    def decode(response: httpx.Response) -> Dict[str, Any]:
        try:
            document = response.json()
        except ValueError as e:
            raise SchemaUnavailable(f"Schema document is not JSON: {e}", status=response.status_code) from e
        if not isinstance(document, dict):
            raise SchemaUnavailable("Schema document is not an object", status=response.status_code)
        return document

    def parse_tables(self, document: Dict[str, Any]) -> List[EntityDescriptor]:
        # path listings repeat tables and carry {param} segments, definitions do not
        definitions = document.get("definitions") or {}
        if not isinstance(definitions, dict):
            return []
        entities = []
        seen = set()
        for raw_name, definition in definitions.items():
            name = str(raw_name).strip()
            if not name or "{" in name or "}" in name or name in seen:
                continue
            seen.add(name)
            entities.append(EntityDescriptor(name=name, columns=self.parse_columns(definition)))
        return entities

    @staticmethod
    def parse_columns(definition: Any) -> List[ColumnInfo]:
        if not isinstance(definition, dict):
            return []
        properties = definition.get("properties") or {}
        if not isinstance(properties, dict):
            return []
        columns = []
        for col_name, col_def in properties.items():
            col_def = col_def if isinstance(col_def, dict) else {}
            col_type = col_def.get("type") or "unknown"
            if isinstance(col_type, list):
                col_type = "|".join(str(t) for t in col_type)
            fmt = col_def.get("format")
            columns.append(ColumnInfo(
                name=str(col_name),
                type=str(col_type),
                format=str(fmt) if fmt is not None else None,
            ))
        return columns

    async def enumerate(self, response: Optional[httpx.Response] = None) -> EnumerationResult:
        """Parses an already fetched schema response when given one, else fetches it."""
        document = self.decode(response) if response is not None else await self.scan()
        entities = self.parse_tables(document)
        self.log(f"    [+] Found {len(entities)} tables in schema definitions", "green")
        return EnumerationResult(entities=entities, raw_schema=document)
