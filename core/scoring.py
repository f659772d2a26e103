"""
Aggregate counts and the 0-100 risk score.

The score is a heuristic weighting of what a scan exposed, not a probability:
each readable table adds a weight for its severity, every sensitive field adds
a fixed amount, and exposed rows add half a point each up to a per-table cap.
"""
from typing import Any, Dict, Iterable, List

from .models import AccessState, EntityScanResult, RiskLevel, ScanSummary, Severity

RISK_WEIGHTS = {
    "critical_table": 25,
    "high_table": 15,
    "medium_table": 8,
    "sensitive_field": 3,
    "exposed_row": 0.5,
    "exposed_row_cap": 20,
}

RISK_LEVEL_THRESHOLDS = [
    (75, RiskLevel.CRITICAL),
    (50, RiskLevel.HIGH),
    (25, RiskLevel.MEDIUM),
]

_TABLE_WEIGHT = {
    Severity.CRITICAL: RISK_WEIGHTS["critical_table"],
    Severity.HIGH: RISK_WEIGHTS["high_table"],
    Severity.MEDIUM: RISK_WEIGHTS["medium_table"],
}


def summarize(entities: Iterable[EntityScanResult]) -> ScanSummary:
    counts = dict.fromkeys(ScanSummary.model_fields, 0)
    for e in entities:
        counts["total_tables"] += 1
        counts["total_sensitive_fields"] += len(e.sensitive_fields)
        if e.access_state == AccessState.BLOCKED:
            counts["blocked_tables"] += 1
            continue
        if e.access_state == AccessState.ERRORED or e.severity is None:
            counts["errored_tables"] += 1
            continue
        if e.severity == Severity.SAFE:
            counts["safe_tables"] += 1
            continue
        bucket = {
            Severity.CRITICAL: "critical_tables",
            Severity.HIGH: "high_risk_tables",
            Severity.MEDIUM: "medium_risk_tables",
            Severity.LOW: "low_risk_tables",
        }[e.severity]
        counts[bucket] += 1
        counts["vulnerable_tables"] += 1
        counts["total_exposed_rows"] += e.row_count
    return ScanSummary(**counts)


def risk_score(entities: Iterable[EntityScanResult]) -> int:
    score = 0.0
    for e in entities:
        if e.blocked:
            continue
        score += _TABLE_WEIGHT.get(e.severity, 0)
        score += len(e.sensitive_fields) * RISK_WEIGHTS["sensitive_field"]
        if e.row_count > 0:
            score += min(e.row_count * RISK_WEIGHTS["exposed_row"], RISK_WEIGHTS["exposed_row_cap"])
    # half-up rounding, score is never negative
    return min(int(score + 0.5), 100)


def risk_level(score: int) -> RiskLevel:
    for threshold, level in RISK_LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return RiskLevel.LOW


def top_findings(entities: Iterable[EntityScanResult], limit: int = 5) -> List[Dict[str, Any]]:
    findings = []
    for e in entities:
        if e.access_state != AccessState.ACCESSIBLE or e.row_count <= 0:
            continue
        critical = [f.field_name for f in e.sensitive_fields if f.severity == Severity.CRITICAL]
        high = [f.field_name for f in e.sensitive_fields if f.severity == Severity.HIGH]
        if critical:
            findings.append({"severity": Severity.CRITICAL, "table": e.name, "row_count": e.row_count,
                             "message": f"{len(critical)} critical field(s) exposed: {', '.join(critical)}"})
        elif high:
            findings.append({"severity": Severity.HIGH, "table": e.name, "row_count": e.row_count,
                             "message": f"{len(high)} sensitive field(s) exposed: {', '.join(high)}"})
        else:
            findings.append({"severity": Severity.MEDIUM, "table": e.name, "row_count": e.row_count,
                             "message": f"{e.row_count} rows publicly accessible"})
    findings.sort(key=lambda f: (-f["severity"].rank, -f["row_count"]))
    return findings[:limit]
