"""Console script for moodle_tutor."""

import csv
import json
import logging
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .analytics import (
    StudentScore,
    analyze_cohort_performance,
    identify_outliers,
    recommend_cohort_strategy,
)
from .config import ConfigError, ConfigLoader
from .utils.logging import get_logger, setup_logging

app = typer.Typer(help="Moodle tutor assistant: MCP server and offline cohort analysis.")
console = Console(stderr=True)
logger = get_logger(__name__)


def read_scores(path: Path) -> list[StudentScore]:
    """Read student scores from a CSV (student_id,score) or JSON file.

    Raises:
        ValueError: If the file content is not a list of score records
    """
    with open(path, encoding="utf-8", newline="") as f:
        if path.suffix.lower() == ".json":
            data = json.load(f)
            if not isinstance(data, list):
                raise ValueError("JSON scores file must contain a list of records")
            return [StudentScore.from_dict(record) for record in data]

        return [StudentScore.from_dict(row) for row in csv.DictReader(f)]


@app.command()
def serve(
    config: Path | None = typer.Option(None, "--config", "-c", help="YAML configuration file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    log_file: Path | None = typer.Option(None, "--log-file", help="Also write logs to this file."),
) -> None:
    """Run the MCP server on stdio."""
    from .server import create_server

    load_dotenv()
    try:
        app_config = ConfigLoader().load(config)
        level = logging.DEBUG if verbose else app_config.logging.level_number
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/] {e}")
        raise typer.Exit(1)

    setup_logging(level=level, log_file=log_file or app_config.logging.file)
    logger.info("Starting Moodle tutor MCP server")

    create_server(app_config).run()


@app.command()
def analyze(
    scores_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="CSV or JSON scores file."),
    config: Path | None = typer.Option(None, "--config", "-c", help="YAML file with a thresholds section."),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
) -> None:
    """Analyze a cohort's scores offline."""
    load_dotenv()
    try:
        thresholds = ConfigLoader().load(config, require_moodle=False).thresholds
        records = read_scores(scores_file)
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/] {e}")
        raise typer.Exit(1)
    except (ValueError, KeyError) as e:
        console.print(f"[red]Invalid scores file:[/] {e}")
        raise typer.Exit(1)

    assessment = analyze_cohort_performance(records, thresholds)
    strategy = recommend_cohort_strategy(records, thresholds)
    outliers = identify_outliers(records, thresholds)

    out = Console()

    if as_json:
        out.print_json(
            data={
                "assessment": assessment.to_dict(),
                "strategy": strategy.to_dict(),
                "outliers": [
                    {
                        "student_id": o.student_id,
                        "score": o.score,
                        "type": o.type.value,
                        "deviation_from_median": o.deviation_from_median,
                    }
                    for o in outliers
                ],
            }
        )
        return

    stats = assessment.statistics
    table = Table(title=f"Cohort statistics ({stats.count} students)", header_style="bold magenta")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for name, value in (
        ("Mean", stats.mean),
        ("Median", stats.median),
        ("Std dev", stats.std_dev),
        ("Min", stats.min),
        ("Q1", stats.q1),
        ("Q3", stats.q3),
        ("Max", stats.max),
    ):
        table.add_row(name, f"{value:.1f}")
    out.print(table)

    distribution = assessment.distribution
    out.print(
        f"[bold]Distribution:[/bold] {distribution.type.value} "
        f"(confidence {distribution.confidence * 100:.0f}%)"
    )

    levels = Table(title="Skill levels", header_style="bold magenta")
    levels.add_column("Level")
    levels.add_column("Students", justify="right")
    for level, count in assessment.level_counts.items():
        levels.add_row(level.value, str(count))
    out.print(levels)

    out.print(f"[bold]Strategy:[/bold] {strategy.type.value}")
    out.print(f"  {strategy.reasoning}")
    for group in strategy.suggested_groups:
        out.print(f"  - {group.name}: {group.student_count} students, {group.recommended_pace}")

    if outliers:
        out.print("[bold]Outliers:[/bold]")
        for outlier in outliers:
            out.print(f"  Student {outlier.student_id}: {outlier.score:.1f} ({outlier.type.value})")

    for recommendation in assessment.recommendations:
        out.print(f"[yellow]*[/yellow] {recommendation}")


if __name__ == "__main__":
    app()
