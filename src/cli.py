"""Typer CLI application for SEO Insights.

Provides commands to generate AI report summaries from Search Console
exports, preview how a prompt would be chunked, test the LLM connection,
and show configuration status.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from src.config import DEFAULT_CONFIG_PATH
from src.errors import SEOInsightsError
from src.models.report import ReportType

console = Console()
app = typer.Typer(
    name="seo-insights",
    help="SEO Insights -- AI reports from Google Search Console data.",
    add_completion=False,
    no_args_is_help=True,
)

REPORT_TYPE_HELP = "Report type: " + ", ".join(t.value for t in ReportType) + "."


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging level and format."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _run_async(coro):
    """Run an async coroutine from synchronous CLI context."""
    return asyncio.run(coro)


def _get_app(config_path: str):
    """Lazy-import and return an initialised SEOInsightsApp."""
    from src.app import SEOInsightsApp
    insights_app = SEOInsightsApp(config_path=config_path)
    insights_app.initialize()
    return insights_app


def _parse_report_type(value: str) -> ReportType:
    try:
        return ReportType(value)
    except ValueError:
        raise typer.BadParameter("Unknown report type " + repr(value) + ". " + REPORT_TYPE_HELP)


def _load_rows(path: Path) -> list[dict[str, Any]]:
    """Read GSC rows from a JSON file (a list, or an object with ``rows``)."""
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    if isinstance(data, dict):
        data = data.get("rows", [])
    if not isinstance(data, list):
        raise typer.BadParameter(str(path) + " does not contain a list of rows.")
    return data


# ------------------------------------------------------------------
# report
# ------------------------------------------------------------------
@app.command()
def report(
    data_file: Path = typer.Argument(..., exists=True, help="GSC rows as a JSON file."),
    report_type: str = typer.Option("top_gainers", "--type", "-t", help=REPORT_TYPE_HELP),
    start_date: str = typer.Option(..., "--start", help="Start of the date range (YYYY-MM-DD)."),
    end_date: str = typer.Option(..., "--end", help="End of the date range (YYYY-MM-DD)."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the summary to a file."),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the response cache."),
    config: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to settings.yaml."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Generate an AI report summary from a Search Console export."""
    _setup_logging(verbose)
    kind = _parse_report_type(report_type)
    rows = _load_rows(data_file)
    console.print(Panel("[bold cyan]" + kind.value + " report: " + str(len(rows)) + " rows[/bold cyan]"))

    try:
        insights_app = _get_app(config)
        engine = insights_app.get_report_engine()
        with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
            progress.add_task(description="Generating report...", total=None)
            summary = _run_async(
                engine.generate_report_summary(
                    kind, rows, (start_date, end_date), use_cache=not no_cache
                )
            )
    except SEOInsightsError as exc:
        console.print("[red]✘[/red] " + type(exc).__name__ + ": " + str(exc))
        raise typer.Exit(code=1)

    if output:
        output.write_text(summary, encoding="utf-8")
        console.print("[green]✔[/green] Summary written to " + str(output))
    else:
        console.print(summary)


# ------------------------------------------------------------------
# plan
# ------------------------------------------------------------------
@app.command()
def plan(
    data_file: Path = typer.Argument(..., exists=True, help="GSC rows as a JSON file."),
    report_type: str = typer.Option("top_gainers", "--type", "-t", help=REPORT_TYPE_HELP),
    model: str = typer.Option("gpt-4", "--model", "-m", help="Model whose input ceiling to plan for."),
    max_input_tokens: Optional[int] = typer.Option(None, "--max-input-tokens", help="Override the model ceiling."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Show how a report prompt would be chunked, without calling the API."""
    _setup_logging(verbose)
    from src.integrations.request_orchestrator import plan_prompt_chunks
    from src.modules.reporting import build_report_prompt
    from src.utils.chunking import ChunkingEngine
    from src.utils.text_processing import estimate_tokens, get_model_token_limit

    kind = _parse_report_type(report_type)
    rows = _load_rows(data_file)
    prompt = build_report_prompt(kind, rows, ("start", "end"))
    ceiling = max_input_tokens or get_model_token_limit(model)
    total = estimate_tokens(prompt)

    console.print(Panel("[bold cyan]Chunk plan for " + model + " (ceiling " + str(ceiling) + " tokens)[/bold cyan]"))
    if total <= ceiling:
        console.print("[green]✔[/green] Prompt fits in one request (" + str(total) + " estimated tokens).")
        return

    chunks = plan_prompt_chunks(ChunkingEngine.for_model_ceiling(ceiling), prompt)
    table = Table(title=str(len(chunks)) + " chunks", show_header=True, header_style="bold magenta")
    table.add_column("Chunk", style="cyan")
    table.add_column("Characters", justify="right")
    table.add_column("Est. tokens", justify="right")
    for chunk in chunks:
        table.add_row(str(chunk.index + 1), str(len(chunk.content)), str(chunk.estimated_tokens))
    console.print(table)
    console.print("Prompt total: " + str(total) + " estimated tokens.")


# ------------------------------------------------------------------
# ping
# ------------------------------------------------------------------
@app.command()
def ping(
    config: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to settings.yaml."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Check that the completion service answers."""
    _setup_logging(verbose)
    try:
        engine = _get_app(config).get_report_engine()
    except SEOInsightsError as exc:
        console.print("[red]✘[/red] " + str(exc))
        raise typer.Exit(code=1)

    if _run_async(engine.test_connection()):
        console.print("[green]✔[/green] Connection successful.")
    else:
        console.print("[red]✘[/red] Connection test failed.")
        raise typer.Exit(code=1)


# ------------------------------------------------------------------
# status
# ------------------------------------------------------------------
@app.command()
def status(
    config: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to settings.yaml."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Show configuration and credential status."""
    _setup_logging(verbose)
    console.print(Panel("[bold cyan]System Status[/bold cyan]"))

    table = Table(title="Component Status", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan", min_width=15)
    table.add_column("Status", min_width=10)
    table.add_column("Details", max_width=60)

    labels = {
        "ok": "[green]✔ OK[/green]",
        "warning": "[yellow]⚠ Warning[/yellow]",
        "error": "[red]✘ Error[/red]",
    }
    for name, entry in _get_app(config).get_status().items():
        table.add_row(
            name.replace("_", " ").title(),
            labels.get(entry["status"], entry["status"]),
            entry["details"],
        )
    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
