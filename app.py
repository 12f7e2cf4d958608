"""
Shift Log Labor Analytics - Command Line Application

Reads a WMS shift export (CSV), runs the analysis engine and prints the
labor-efficiency summary:
- Throughput: occupancy / pure / hourly-flow / dynamic interval UPH
- Utilization, lost time and buffer time
- Job timing, job-type mix and maturity score
"""

import json
import logging
from pathlib import Path
from typing import Optional

import pandas as pd
import typer
from rich.console import Console
from rich.table import Table

from config import Config
from core.analysis.engine import AnalysisResult, analyze_shift
from core.calculations.activity import build_activity_matrix
from core.records.models import records_from_dataframe
from core.time_windows.filters import filter_records_by_window
from utils.config import get_buffer_config, load_config, validate_config
from utils.formatting import coerce_timestamp

# Configure logging
logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False, help="Warehouse shift log labor analytics")
console = Console()


def _render_summary(result: AnalysisResult) -> None:
    stats = result.stats

    t = Table(title="Shift Summary")
    t.add_column("Metric")
    t.add_column("Global", justify="right")
    t.add_column("Picking", justify="right")
    t.add_column("Packing", justify="right")
    t.add_column("Sorting", justify="right")
    for label, attr in [
        ("UPH (occupancy)", "uph"),
        ("UPH (pure active)", "uph_pure"),
        ("UPH (hourly flow)", "uph_hourly_flow"),
        ("UPH (dynamic interval)", "dynamic_interval_uph"),
        ("Productive UPH", "productive_uph"),
        ("TPH", "tph"),
        ("Utilization %", "utilization"),
        ("Total volume", "total_volume"),
    ]:
        t.add_row(
            label,
            str(getattr(stats, attr)),
            str(getattr(stats.picking, attr)),
            str(getattr(stats.packing, attr)),
            str(getattr(stats.sorting, attr)),
        )
    console.print(t)

    console.print(
        f"Lost time: {stats.lost_time} min | Allowed buffer: {stats.allowed_buffer_time} min | "
        f"GSPT: {stats.gspt_sec if stats.gspt_sec is not None else 'n/a'}"
    )

    jobs = Table(title="Job Types")
    jobs.add_column("Archetype")
    jobs.add_column("Jobs", justify="right")
    jobs.add_column("Units", justify="right")
    for archetype, summary in result.job_classification.summary.items():
        jobs.add_row(archetype.value, str(summary.count), str(summary.volume))
    console.print(jobs)

    console.print(
        f"[bold]Maturity:[/bold] {result.maturity.weighted_score:.2f} ({result.maturity.label})"
    )
    if result.telemetry:
        console.print(f"[yellow]{len(result.telemetry)} overlap events detected[/yellow]")


@app.command()
def analyze(
    csv_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Shift export CSV"),
    start: Optional[str] = typer.Option(None, "--start", help="Only tasks starting at or after this timestamp"),
    end: Optional[str] = typer.Option(None, "--end", help="Only tasks starting at or before this timestamp"),
    intra_job_buffer: Optional[float] = typer.Option(None, help="Intra-job buffer (minutes)"),
    job_transition_buffer: Optional[float] = typer.Option(None, help="Job transition buffer (minutes)"),
    alert_threshold: Optional[float] = typer.Option(None, help="Anomaly alert threshold (minutes)"),
    flow_bucket_interval: Optional[int] = typer.Option(None, help="Dynamic flow bucket size (minutes)"),
    flow_method: Optional[str] = typer.Option(None, help="interval | user_daily_average"),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON"),
    activity: bool = typer.Option(False, "--activity", help="Print the user x hour activity matrix"),
    env_file: Optional[Path] = typer.Option(None, "--env-file", help="Alternative .env file"),
):
    """Analyze a shift export and print the labor summary."""
    if env_file:
        load_config(str(env_file))
    else:
        load_config()

    problems = validate_config()
    if problems:
        for problem in problems:
            console.print(f"[red]Configuration error:[/red] {problem}")
        raise typer.Exit(1)

    try:
        config = get_buffer_config(
            intra_job_buffer=intra_job_buffer,
            job_transition_buffer=job_transition_buffer,
            alert_threshold=alert_threshold,
            flow_bucket_interval=flow_bucket_interval,
            flow_calculation_method=flow_method,
        )
        df = pd.read_csv(csv_path)
        records = records_from_dataframe(df)
        if start or end:
            records = filter_records_by_window(
                records,
                coerce_timestamp(start) if start else None,
                coerce_timestamp(end) if end else None,
            )
    except ValueError as e:
        console.print(f"[red]Invalid input:[/red] {e}")
        raise typer.Exit(1)

    logger.info(f"Loaded {len(records)} records from {csv_path}")
    result = analyze_shift(records, config)

    if as_json:
        typer.echo(json.dumps(result.summary(), indent=2, default=str))
    else:
        _render_summary(result)

    if activity:
        matrix = build_activity_matrix(records, config.timezone)
        console.print(matrix.to_string() if not matrix.empty else "No activity")


if __name__ == "__main__":
    app()
