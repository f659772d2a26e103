import csv
import io
import json
from typing import Any, Dict, List

from .config import SensitivityRules
from .models import AccessState, AssessmentResult, DiscoveredCredentials
from .scoring import top_findings
from .utils import generate_curl_command


class JSONReporter:
    def build(self, result: AssessmentResult, discovered: DiscoveredCredentials = None) -> Dict[str, Any]:
        report = result.to_dict()
        report["rulesVersion"] = SensitivityRules.VERSION
        report["topFindings"] = [
            {**f, "severity": f["severity"].value} for f in top_findings(result.entities)
        ]
        if discovered is not None:
            report["discovered"] = discovered.to_dict()
        return report

    def generate(self, result: AssessmentResult, discovered: DiscoveredCredentials = None) -> str:
        return json.dumps(self.build(result, discovered), indent=2, default=str)


class CSVReporter:
    HEADERS = ["Table Name", "Status", "Vulnerability Level", "Row Count", "Sensitive Fields", "Error"]

    def generate(self, result: AssessmentResult) -> str:
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(self.HEADERS)
        for e in result.entities:
            if e.access_state == AccessState.BLOCKED:
                level = "protected"
            elif e.severity is None:
                level = "unknown"
            else:
                level = e.severity.value
            writer.writerow([
                e.name,
                e.access_state.value.capitalize(),
                level,
                e.row_count,
                ", ".join(f.field_name for f in e.sensitive_fields),
                e.error or "",
            ])
        return buf.getvalue()


def curl_commands(result: AssessmentResult, api_key: str, rest_path: str = "/rest/v1") -> List[str]:
    return [
        f"# {e.name}\n" + generate_curl_command(result.endpoint_base_url, api_key, e.name, rest_path)
        for e in result.entities
        if e.access_state == AccessState.ACCESSIBLE and e.row_count > 0
    ]
