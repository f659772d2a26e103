import sys
from typing import List

from rich.console import Console
from rich.markup import escape

from .models import AssessmentResult, Severity

console = Console()


class CIHandler:
    def __init__(self, fail_on: str = "HIGH", format: str = "text"):
        self.fail_on = fail_on.upper()
        self.format = format.lower()
        try:
            self.threshold = Severity(self.fail_on.lower())
        except ValueError:
            self.threshold = Severity.HIGH

    def failures(self, result: AssessmentResult) -> List[str]:
        reasons = []
        for error in result.errors:
            reasons.append(f"Assessment error: {error}")
            self._print_error(error, "ERROR")
        for e in result.entities:
            if e.severity is not None and e.severity.rank >= self.threshold.rank and e.severity != Severity.SAFE:
                level = e.severity.value.upper()
                reasons.append(f"RLS Issue: {e.name} ({level})")
                self._print_error(f"RLS Risk in {e.name}: {level}", level)
        return reasons

    def evaluate(self, result: AssessmentResult) -> None:
        """
        Exits with 1 when the run could not complete or any table meets the
        failure threshold, else 0.
        """
        failure_reasons = self.failures(result)
        if failure_reasons:
            if self.format == "text":
                console.print(f"\n[bold red]CI Failure: {len(failure_reasons)} issues found.[/]")
            sys.exit(1)
        if self.format == "text":
            console.print("\n[bold green]CI Passed: No issues found meeting failure criteria.[/]")
        sys.exit(0)

    def _print_error(self, message: str, level: str):
        if self.format == "github":
            print(f"::error title=rlsprobe {level}::{message}")
        else:
            console.print(f"[red][!] {escape(message)}[/]", highlight=False)
