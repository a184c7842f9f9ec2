"""CLI entry point for the instruction runner."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from src.golden import GoldenOverrideTable
from src.grammar.grammar import DEFAULT_GRAMMAR, split_compound
from src.models.config import FrameworkConfig
from src.models.session import ScenarioSuite
from src.orchestrator import ExecutionOrchestrator

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(config: str, url: str | None) -> FrameworkConfig:
    try:
        cfg = FrameworkConfig.load(config)
    except FileNotFoundError:
        if not url:
            console.print(f"[red]Config file not found: {config}[/red]")
            console.print("Run 'qaptain init' to create a default config, or pass --url.")
            sys.exit(1)
        cfg = FrameworkConfig(target_url=url)
    return cfg


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Natural-language browser test runner"""
    setup_logging(verbose)


@cli.command()
@click.option("--scenarios", "-s", "scenarios_file", required=True, help="Scenario suite JSON file")
@click.option("--config", "-c", default="qa-config.json", help="Config file path")
@click.option("--url", "-u", default=None, help="Target URL (overrides suite and config)")
def run(scenarios_file: str, config: str, url: str | None) -> None:
    """Run every scenario in a suite file against the target URL."""
    try:
        with open(scenarios_file) as f:
            suite = ScenarioSuite.model_validate(json.load(f))
    except FileNotFoundError:
        console.print(f"[red]Scenario file not found: {scenarios_file}[/red]")
        sys.exit(1)

    cfg = _load_config(config, url or suite.url)
    target = url or suite.url or cfg.target_url
    if not suite.scenarios:
        console.print("[yellow]No scenarios in suite[/yellow]")
        return

    orchestrator = ExecutionOrchestrator.from_config(cfg)
    result = orchestrator.run(target, suite.scenarios)
    session = result.session

    colour = "green" if session.status == "completed" else "red"
    console.print(f"\n[bold {colour}]Session {session.status}[/bold {colour}]")
    table = Table(title=f"Results for {target}")
    table.add_column("Scenario", style="bold")
    table.add_column("Status")
    table.add_column("Duration")
    table.add_column("Error")
    for scenario in result.scenarios:
        status_colour = {"passed": "green", "failed": "red"}.get(scenario.status, "yellow")
        duration = f"{scenario.duration_ms / 1000:.1f}s" if scenario.duration_ms is not None else "-"
        title = scenario.title + (" [dim](golden)[/dim]" if scenario.golden_override else "")
        table.add_row(title, f"[{status_colour}]{scenario.status}[/{status_colour}]",
                      duration, scenario.error_message or "")
    console.print(table)
    console.print(
        f"Scenarios: [green]{session.passed_scenarios} passed[/green], "
        f"[red]{session.failed_scenarios} failed[/red] | "
        f"Steps: {session.passed_steps}/{session.total_steps} passed"
    )
    if result.analysis:
        console.print(f"\n[bold]Analysis[/bold] (quality score {result.analysis.quality_score}/100)")
        console.print(result.analysis.summary)
    console.print(f"Session data: [blue]{Path(cfg.runs_dir) / session.id}[/blue]")

    if session.status == "failed":
        console.print(f"[red]{session.error_message}[/red]")
        sys.exit(2)
    if session.failed_scenarios:
        sys.exit(1)


@cli.command()
@click.argument("instruction")
def parse(instruction: str) -> None:
    """Show the structured command(s) an instruction parses to."""
    commands = DEFAULT_GRAMMAR.parse_steps(instruction)
    if commands is None:
        parts = split_compound(instruction)
        console.print("[yellow]No grammar rule matched; this step would be sent to AI planning.[/yellow]")
        for part in parts:
            if DEFAULT_GRAMMAR.parse(part) is None:
                console.print(f"  unmatched: {part}")
        return
    for command in commands:
        console.print_json(command.model_dump_json())


@cli.command()
@click.option("--config", "-c", default="qa-config.json", help="Config file path")
def golden(config: str) -> None:
    """List scenario titles that run golden (canonical) steps."""
    golden_file = None
    if Path(config).exists():
        golden_file = FrameworkConfig.load(config).golden_scenarios_file
    table_data = GoldenOverrideTable.load(golden_file)
    table = Table(title="Golden scenarios")
    table.add_column("Title", style="bold")
    table.add_column("Steps")
    for title in table_data.titles:
        table.add_row(title, "\n".join(table_data.lookup(title) or []))
    console.print(table)


@cli.command()
@click.option("--target", "-t", prompt="Target URL", help="Website URL to test")
def init(target: str) -> None:
    """Create a default configuration file."""
    config_path = Path("qa-config.json")
    if config_path.exists():
        if not click.confirm("qa-config.json already exists. Overwrite?"):
            return

    cfg = FrameworkConfig(target_url=target)
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nWrite a scenario suite and run:")
    console.print("  [blue]qaptain run --scenarios scenarios.json[/blue]")


if __name__ == "__main__":
    cli()
