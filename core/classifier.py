import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .config import SensitivityRules
from .models import ColumnInfo, DetectionMethod, SensitiveField, Severity

_CAMEL = re.compile(r"([a-z0-9])([A-Z])")

# "_" and "-" separate words in column names, so they count as boundaries
_COLUMN_RES = {
    family: [re.compile(rf"(?<![a-z0-9])(?:{p})(?![a-z0-9])", re.IGNORECASE) for p in patterns]
    for family, patterns in SensitivityRules.COLUMN_PATTERNS.items()
}
_VALUE_RES = {name: re.compile(p) for name, p in SensitivityRules.VALUE_VALIDATORS.items()}
_SEVERITY_ORDER = [Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM]


@dataclass
class Classification:
    name: str
    columns: List[ColumnInfo] = field(default_factory=list)
    sensitive_fields: List[SensitiveField] = field(default_factory=list)
    severity: Severity = Severity.SAFE


def normalize_field_name(name: str) -> str:
    return _CAMEL.sub(r"\1_\2", name).lower().replace("-", "_")


def sensitive_family(field_name: str) -> Optional[str]:
    normalized = normalize_field_name(field_name)
    for family, patterns in _COLUMN_RES.items():
        if any(p.search(normalized) for p in patterns):
            return family
    return None


def is_sensitive_field(field_name: str) -> bool:
    return sensitive_family(field_name) is not None


def field_severity(field_name: str) -> Severity:
    normalized = normalize_field_name(field_name)
    for severity in _SEVERITY_ORDER:
        if any(term in normalized for term in SensitivityRules.FIELD_SEVERITY[severity.value]):
            return severity
    return Severity.LOW


def validate_sensitive_value(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    if _VALUE_RES["email"].match(value):
        return "email"
    if _VALUE_RES["credit_card"].match(re.sub(r"[\s-]", "", value)):
        return "credit_card"
    if _VALUE_RES["ssn"].match(value):
        return "ssn"
    if _VALUE_RES["phone"].match(value):
        return "phone"
    return None


def obfuscate_value(value: Any, value_type: Optional[str]) -> str:
    if value is None or value == "":
        return ""
    s = str(value)
    last4 = re.sub(r"\D", "", s)[-4:]
    if value_type == "email" and "@" in s:
        local, domain = s.split("@", 1)
        return f"{local[:1]}***@{domain}"
    if value_type == "phone":
        return f"***-***-{last4}"
    if value_type == "credit_card":
        return f"****-****-****-{last4}"
    if value_type == "ssn":
        return f"***-**-{last4}"
    return f"{s[:3]}...{s[-3:]}" if len(s) > 10 else "***"


def infer_columns(rows: Sequence[Any]) -> List[ColumnInfo]:
    if not rows or not isinstance(rows[0], dict):
        return []
    return [ColumnInfo(name=str(k)) for k in rows[0].keys()]


def classify(entity_name: str, rows: Sequence[Dict[str, Any]], columns: Sequence[ColumnInfo] = (), row_count: int = None) -> Classification:
    """
    Column-name pass then content pass over the first rows, merged by field
    name with the first detection winning. Zero rows is always safe; rows
    with nothing recognisable are still medium, since the table is readable
    without row-level security.
    """
    rows = list(rows or [])
    row_count = len(rows) if row_count is None else row_count
    columns = list(columns) or infer_columns(rows)
    if row_count <= 0:
        return Classification(name=entity_name, columns=columns, severity=Severity.SAFE)

    names = [c.name for c in columns]
    if rows and isinstance(rows[0], dict):
        names += [str(k) for k in rows[0].keys() if str(k) not in names]

    found: Dict[str, Dict[str, Any]] = {}
    for name in names:
        if is_sensitive_field(name) and name not in found:
            found[name] = {
                "field_name": name,
                "severity": field_severity(name),
                "detection_method": DetectionMethod.COLUMN_NAME,
                "obfuscated_samples": [],
            }

    for row in rows[:SensitivityRules.CONTENT_SAMPLE_ROWS]:
        if not isinstance(row, dict):
            continue
        for key, value in row.items():
            value_type = validate_sensitive_value(value)
            if not value_type:
                continue
            key = str(key)
            entry = found.setdefault(key, {
                "field_name": key,
                "severity": Severity.HIGH,
                "detection_method": DetectionMethod.CONTENT_PATTERN,
                "value_type": value_type,
                "obfuscated_samples": [],
            })
            if len(entry["obfuscated_samples"]) < SensitivityRules.MAX_OBFUSCATED_SAMPLES:
                entry["obfuscated_samples"].append(obfuscate_value(value, value_type))

    fields = [SensitiveField(**entry) for entry in found.values()]
    severity = Severity.highest(f.severity for f in fields) if fields else Severity.MEDIUM
    return Classification(name=entity_name, columns=columns, sensitive_fields=fields, severity=severity)
