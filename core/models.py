import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Severity(str, Enum):
    SAFE = "safe"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def highest(cls, severities) -> "Severity":
        return max(severities, key=lambda s: s.rank, default=cls.SAFE)


_SEVERITY_RANK = {
    Severity.SAFE: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class AccessState(str, Enum):
    BLOCKED = "blocked"
    ACCESSIBLE = "accessible"
    ERRORED = "errored"


class DetectionMethod(str, Enum):
    COLUMN_NAME = "column_name"
    CONTENT_PATTERN = "content_pattern"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ProgressStage(str, Enum):
    CONNECTION = "connection"
    ENUMERATION = "enumeration"
    ANALYSIS = "analysis"
    COMPLETE = "complete"


class Record(BaseModel):
    """Frozen base; camelCase aliases are what the JSON export emits."""
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


_URL_SHAPE = re.compile(r"^https?://[^\s/]+(/\S*)?$")


class Credential(Record):
    endpoint_base_url: str
    bearer_token: str

    @field_validator("endpoint_base_url")
    @classmethod
    def _url_shape(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not _URL_SHAPE.match(v):
            raise ValueError(f"not a URL: {v!r}")
        return v

    @field_validator("bearer_token")
    @classmethod
    def _token_shape(cls, v: str) -> str:
        v = v.strip()
        if not v or any(c.isspace() for c in v):
            raise ValueError("bearer token must be a non-empty string without whitespace")
        return v


class DiscoveredCredentials(Record):
    urls: List[str] = Field(default_factory=list)
    tokens: List[str] = Field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.urls and not self.tokens


class ColumnInfo(Record):
    name: str
    type: str = "unknown"
    format: Optional[str] = None


class EntityDescriptor(Record):
    name: str
    columns: List[ColumnInfo] = Field(default_factory=list)


class SensitiveField(Record):
    field_name: str
    severity: Severity
    detection_method: DetectionMethod
    value_type: Optional[str] = None
    obfuscated_samples: List[str] = Field(default_factory=list, max_length=2)


class EntityScanResult(Record):
    name: str
    access_state: AccessState
    http_status: Optional[int] = None
    row_count: int = 0
    sample_rows: List[Dict[str, Any]] = Field(default_factory=list)
    columns: List[ColumnInfo] = Field(default_factory=list)
    sensitive_fields: List[SensitiveField] = Field(default_factory=list)
    severity: Optional[Severity] = None
    error: Optional[str] = None

    @property
    def blocked(self) -> bool:
        return self.access_state == AccessState.BLOCKED

    @property
    def errored(self) -> bool:
        return self.access_state == AccessState.ERRORED


class PartialFailure(Record):
    name: str
    error: str


class ScanSummary(Record):
    total_tables: int = 0
    vulnerable_tables: int = 0
    critical_tables: int = 0
    high_risk_tables: int = 0
    medium_risk_tables: int = 0
    low_risk_tables: int = 0
    safe_tables: int = 0
    blocked_tables: int = 0
    errored_tables: int = 0
    total_sensitive_fields: int = 0
    total_exposed_rows: int = 0


class ProgressEvent(Record):
    stage: ProgressStage
    message: str
    current: Optional[int] = None
    total: Optional[int] = None
    batch_index: Optional[int] = None
    total_batches: Optional[int] = None
    summary: Optional[ScanSummary] = None
    partial_failures: Optional[int] = None


class AssessmentResult(Record):
    endpoint_base_url: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    connection_ok: bool = False
    connection_status: Optional[int] = None
    entities: List[EntityScanResult] = Field(default_factory=list)
    summary: ScanSummary = Field(default_factory=ScanSummary)
    partial_failures: List[PartialFailure] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    cancelled: bool = False
    risk_score: int = 0
    risk_level: RiskLevel = RiskLevel.LOW
