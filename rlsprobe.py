#!/usr/bin/env python3

import argparse
import asyncio
import os
import time

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from core.assessment import run_assessment
from core.banner import show_banner
from core.ci import CIHandler
from core.config import TargetConfig
from core.extractor import extract_from_texts, first_credential
from core.logger import ScanLogger
from core.models import AccessState, ProgressEvent, ProgressStage, Severity
from core.remediation import FixGenerator, detect_pattern, needs_policy
from core.report import CSVReporter, JSONReporter, curl_commands
from core.scoring import top_findings
from core.utils import get_code_files

console = Console()

SEVERITY_STYLE = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "yellow",
    Severity.MEDIUM: "dark_orange",
    Severity.LOW: "cyan",
    Severity.SAFE: "green",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PostgREST / Supabase RLS exposure probe")
    parser.add_argument("url", nargs="?", help="Target base URL (e.g. https://xyz.supabase.co)")
    parser.add_argument("key", nargs="?", help="Anon / public API key")
    parser.add_argument("--discover", help="File or directory to search for a URL and key")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--json", action="store_true", help="Save report to JSON file")
    parser.add_argument("--csv", action="store_true", help="Save table summary to CSV file")
    parser.add_argument("--gen-fixes", action="store_true", help="Generate SQL RLS migration for vulnerable tables")
    parser.add_argument("--curl", action="store_true", help="Save cURL reproduction commands for exposed tables")
    parser.add_argument("--ci", action="store_true", help="Exit with non-zero code on findings (for CI/CD)")
    parser.add_argument("--fail-on", default="HIGH", help="Lowest severity that fails --ci (default: HIGH)")
    parser.add_argument("--ci-format", default="text", choices=["text", "github"], help="CI annotation format")
    parser.add_argument("--batch-size", type=int, default=5, help="Tables scanned concurrently")
    parser.add_argument("--sample-limit", type=int, default=15, help="Rows sampled per table (1-15)")
    parser.add_argument("--timeout", type=int, default=10, help="Per-request timeout in seconds")
    parser.add_argument("--proxy", help="Proxy URL (e.g., http://127.0.0.1:8080)", default=None)
    return parser


def discover_credentials(path: str):
    console.print(f"[cyan][*] Reading code files from: {escape(path)}[/]")
    code_files = get_code_files(path)
    if not code_files:
        console.print("[yellow][!] No supported code files found.[/]")
        return None
    found = extract_from_texts(code_files.values())
    console.print(f"[green][+] Searched {len(code_files)} files: {len(found.urls)} URL(s), {len(found.tokens)} key(s).[/]")
    for url in found.urls:
        console.print(f"    [dim]url[/]   {escape(url)}", highlight=False)
    for token in found.tokens:
        console.print(f"    [dim]key[/]   {escape(token[:24])}...", highlight=False)
    return found


def render_results(result, verbose: bool):
    summary = result.summary
    level_style = SEVERITY_STYLE.get(Severity(result.risk_level.value.lower()), "white")
    scorecard = (
        f"[bold]Risk Score:[/] [{level_style}]{result.risk_score}/100 ({result.risk_level.value})[/]\n"
        f"[bold red]CRITICAL:[/] {summary.critical_tables}   [yellow]HIGH:[/] {summary.high_risk_tables}   "
        f"[dark_orange]MEDIUM:[/] {summary.medium_risk_tables}   [cyan]LOW:[/] {summary.low_risk_tables}\n"
        f"[green]SAFE:[/] {summary.safe_tables}   [blue]BLOCKED:[/] {summary.blocked_tables}   "
        f"[magenta]ERRORED:[/] {summary.errored_tables}\n"
        f"Sensitive fields: {summary.total_sensitive_fields}   Exposed rows: {summary.total_exposed_rows}"
    )
    console.print(Panel(scorecard, title="[bold]Risk Scorecard[/]", border_style="red" if summary.vulnerable_tables else "green"))

    t_rls = Table(title="Row Level Security (RLS)", expand=True)
    t_rls.add_column("Table", style="cyan")
    t_rls.add_column("Access", justify="center")
    t_rls.add_column("Rows", justify="right")
    t_rls.add_column("Sensitive Fields")
    t_rls.add_column("Risk", justify="center")

    ordered = sorted(result.entities, key=lambda e: (-(e.severity.rank if e.severity else -1), -e.row_count))
    for e in ordered:
        if not verbose and e.severity == Severity.SAFE:
            continue
        if e.access_state == AccessState.BLOCKED:
            access, risk = "[green]BLOCKED[/]", "[blue]PROTECTED[/]"
        elif e.access_state == AccessState.ERRORED:
            access, risk = "[magenta]ERROR[/]", f"[dim]{escape(e.error or 'unknown')}[/]"
        else:
            style = SEVERITY_STYLE[e.severity]
            access, risk = "[red]READ[/]", f"[{style}]{e.severity.value.upper()}[/]"
        fields = ", ".join(f"{f.field_name} ({f.severity.value})" for f in e.sensitive_fields) or "[dim]-[/]"
        t_rls.add_row(escape(e.name), access, str(e.row_count), escape(fields) if e.sensitive_fields else fields, risk)
    console.print(t_rls)

    findings = top_findings(result.entities)
    if findings:
        console.print(Panel(
            "\n".join(f"[{SEVERITY_STYLE[f['severity']]}]{f['severity'].value.upper()}[/] {escape(f['table'])}: {escape(f['message'])}" for f in findings),
            title="[bold]Top Findings[/]", border_style="red",
        ))

    if result.partial_failures:
        console.print(f"[yellow][!] {len(result.partial_failures)} table(s) could not be scanned:[/]")
        for failure in result.partial_failures:
            console.print(f"    [dim]{escape(failure.name)}: {escape(failure.error)}[/]", highlight=False)


async def main(argv=None):
    show_banner(console)
    args = build_parser().parse_args(argv)

    discovered = None
    url, key = args.url, args.key
    if args.discover:
        discovered = discover_credentials(args.discover)
        pair = first_credential(discovered) if discovered else None
        if pair is not None:
            url = url or pair.endpoint_base_url
            key = key or pair.bearer_token

    if not url or not key:
        console.print("[bold red][!] A target URL and key are required (pass them or use --discover).[/]")
        return 2

    config = TargetConfig(
        url=url, key=key, verbose=args.verbose, proxy=args.proxy, timeout=args.timeout,
        batch_size=max(1, args.batch_size), sample_limit=min(max(1, args.sample_limit), 15),
    )
    console.print(Panel.fit(f"[bold white]Target:[/] {escape(config.url)}", border_style="blue"))

    with Progress(SpinnerColumn(), TextColumn("[cyan]{task.description}"), BarColumn(), console=console) as p:
        task = p.add_task("Connecting...", total=None)

        def on_progress(event: ProgressEvent):
            if event.stage == ProgressStage.ANALYSIS:
                p.update(task, description=f"Batch {event.batch_index}/{event.total_batches}: {event.message}", total=event.total, completed=event.current)
            elif event.stage == ProgressStage.COMPLETE:
                p.update(task, description=event.message, total=max(event.total or 0, 1), completed=max(event.total or 0, 1))
            else:
                p.update(task, description=event.message)

        result = await run_assessment(url, key, on_progress, config=config, logger=ScanLogger(verbose=args.verbose, console=console))

    console.print("\n")
    console.rule("[bold cyan]Scan Complete - Final Report[/]")

    if result.errors and not result.entities:
        for error in result.errors:
            console.print(f"[bold red][!] {escape(error)}[/]")
    else:
        render_results(result, args.verbose)

    if args.json or args.csv or args.gen_fixes or args.curl:
        timestamp = int(time.time())
        output_dir = f"audit_report_{timestamp}"
        os.makedirs(output_dir, exist_ok=True)

        if args.json:
            filename = os.path.join(output_dir, f"audit_report_{timestamp}.json")
            with open(filename, "w", encoding="utf-8") as f:
                f.write(JSONReporter().generate(result, discovered))
            console.print(f"[bold green]JSON Report saved: {filename}[/]")

        if args.csv:
            filename = os.path.join(output_dir, f"tables_{timestamp}.csv")
            with open(filename, "w", encoding="utf-8", newline="") as f:
                f.write(CSVReporter().generate(result))
            console.print(f"[bold green]CSV saved: {filename}[/]")

        if args.gen_fixes:
            filename = os.path.join(output_dir, f"fixes_{timestamp}.sql")
            with open(filename, "w", encoding="utf-8") as f:
                f.write(FixGenerator().generate(result.entities))
            patterns = {}
            for e in filter(needs_policy, result.entities):
                patterns.setdefault(detect_pattern(e.columns).pattern, []).append(e.name)
            for pattern, tables in patterns.items():
                console.print(f"    [cyan]{pattern}[/]: {escape(', '.join(tables))}", highlight=False)
            console.print(f"[bold green]SQL Fix Script saved: {filename}[/]")

        if args.curl:
            filename = os.path.join(output_dir, f"curl_{timestamp}.sh")
            with open(filename, "w", encoding="utf-8") as f:
                f.write("\n\n".join(curl_commands(result, config.key, config.rest_path)) + "\n")
            console.print(f"[bold green]cURL commands saved: {filename}[/]")

    if args.ci:
        CIHandler(fail_on=args.fail_on, format=args.ci_format).evaluate(result)

    return 0 if not result.errors else 1


def cli():
    try:
        raise SystemExit(asyncio.run(main()))
    except KeyboardInterrupt:
        console.print("\n[bold red][-] Interrupted by user[/]")
        raise SystemExit(130)


if __name__ == "__main__":
    cli()
