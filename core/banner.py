from rich.console import Console
from rich.panel import Panel


def show_banner(console: Console):
    banner_art = r"""
       _                     _
  _ __| |___ _ __ _ _ ___| |__  ___
 | '__| / __| '_ \ '__/ _ \ '_ \/ _ \
 | |  | \__ \ |_) | | | (_) | |_) | __/
 |_|  |_|___/ .__/|_|  \___/|_.__/\___|
            |_|
"""
    description = "rlsprobe enumerates the tables a PostgREST API exposes to a public key, samples what it can read and flags tables left without row-level security."
    console.print(f"[bold cyan]{banner_art}[/]", highlight=False)
    console.print(Panel(description, border_style="cyan", title="RLS Exposure Probe", subtitle="v1.0"))
