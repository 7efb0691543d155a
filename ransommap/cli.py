from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd
import typer

from .api_clients.base import SearchClientError
from .api_clients.shodan import ShodanSearchClient, build_search_request, load_response, save_response
from .config import get_settings
from .logging_config import logger, setup_logging
from .services.aggregator import CountSummary, aggregate
from .services.normalizer import read_devices
from .services.pipeline import run_pipeline
from .services.plot_input import build_figure, build_plot_input, save_html

app = typer.Typer(help="Find ransomware-infected hosts through Shodan and map where they are.")

TOP_ROWS = 10


@app.callback()
def configure() -> None:
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json)


def _fetch_document(query: str, limit: int) -> Dict[str, Any]:
    settings = get_settings()
    request = build_search_request(settings.shodan_api_key, query, limit)
    client = ShodanSearchClient(
        page_size=settings.page_size,
        timeout=settings.request_timeout_seconds,
        min_interval=settings.min_request_interval_seconds,
    )
    return asyncio.run(client.fetch(request))


def _echo_summary(summary: CountSummary) -> None:
    for line in summary.report_lines():
        typer.echo(line)
    if summary.total == 0:
        return
    for name, frame in summary.to_frames().items():
        typer.echo("")
        typer.echo(f"Top infections by {name.replace('_', '/')}:")
        typer.echo(frame.head(TOP_ROWS).to_string(index=False))


@app.command()
def run(
        query: Optional[str] = typer.Option(None, "--query", "-q", help="Shodan search expression."),
        limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Maximum number of matches to fetch."),
        output: Optional[Path] = typer.Option(None, "--output", "-o", help="CSV file for the device table."),
        map_output: Optional[Path] = typer.Option(None, "--map", help="HTML file for the world map."),
        no_map: bool = typer.Option(False, "--no-map", help="Skip rendering the map."),
        from_json: Optional[Path] = typer.Option(
            None,
            "--from-json",
            exists=True,
            dir_okay=False,
            help="Replay a saved Shodan response instead of calling the API.",
        ),
        save_json: Optional[Path] = typer.Option(None, "--save-json", help="Keep the raw Shodan response here."),
):
    """
    Fetch matches, write the device CSV, print the summary and render the map.
    """
    settings = get_settings()
    try:
        if from_json is not None:
            document = load_response(from_json)
        else:
            document = _fetch_document(query or settings.search_query, limit or settings.result_limit)
    except SearchClientError as exc:
        logger.error("pipeline.failed", error=str(exc), error_type=type(exc).__name__)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    if save_json is not None:
        save_response(document, save_json)

    result = run_pipeline(
        document,
        csv_path=output or settings.output_csv,
        map_path=None if no_map else (map_output or settings.output_html),
    )
    _echo_summary(result.summary)
    typer.echo("")
    typer.echo(f"Wrote {len(result.devices)} rows to {result.csv_path}")
    if result.map_path is not None:
        typer.echo(f"Wrote map to {result.map_path}")


def _load_devices(csv_path: Path) -> pd.DataFrame:
    try:
        return read_devices(csv_path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="CSV_PATH") from exc


@app.command()
def report(
        csv_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Device CSV written by 'run'."),
):
    """
    Print the infection summary for an existing device CSV.
    """
    _echo_summary(aggregate(_load_devices(csv_path)))


@app.command("map")
def map_command(
        csv_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Device CSV written by 'run'."),
        output: Optional[Path] = typer.Option(None, "--output", "-o", help="HTML file to write."),
):
    """
    Render the world map for an existing device CSV.
    """
    points = build_plot_input(_load_devices(csv_path))
    written = save_html(build_figure(points), output or get_settings().output_html)
    typer.echo(f"Wrote map with {len(points)} locations to {written}")


def main() -> None:
    """Entry point for console_scripts."""
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Interrupted by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
