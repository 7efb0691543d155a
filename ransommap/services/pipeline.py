from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from ..api_clients.shodan import extract_matches
from ..logging_config import logger
from ..models.schemas import LocationPoint
from .aggregator import CountSummary, aggregate
from .normalizer import normalize
from .plot_input import build_figure, build_plot_input, save_html


@dataclass
class PipelineResult:
    devices: pd.DataFrame
    summary: CountSummary
    points: List[LocationPoint]
    csv_path: Path
    map_path: Optional[Path] = None


def run_pipeline(
    document: Dict[str, Any],
    *,
    csv_path: str | Path,
    map_path: str | Path | None = None,
) -> PipelineResult:
    """Turn a fetched search response into the device CSV, the summary and (optionally) the map."""
    records = extract_matches(document)
    devices = normalize(records, output_path=csv_path)
    summary = aggregate(devices)
    points = build_plot_input(devices)
    written_map = None
    if map_path is not None:
        written_map = save_html(build_figure(points), map_path)
    logger.info("pipeline.done", records=len(records), devices=len(devices), locations=len(points))
    return PipelineResult(
        devices=devices,
        summary=summary,
        points=points,
        csv_path=Path(csv_path),
        map_path=written_map,
    )
