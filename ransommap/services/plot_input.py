from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

import pandas as pd
import plotly.graph_objects as go
import plotly.io as pio

from ..logging_config import logger
from ..models.schemas import LocationPoint
from .aggregator import label

LOCATION_KEYS = ["CountryCode", "City", "Longitude", "Latitude"]
LATITUDE_RANGE = (-60, 90)
LONGITUDE_RANGE = (-180, 180)


def build_plot_input(devices: pd.DataFrame) -> List[LocationPoint]:
    """One point per distinct location, with ``n`` infected hosts seen there.

    Rows without coordinates stay in the table and the counts but cannot be plotted.
    """
    located = devices.dropna(subset=["Longitude", "Latitude"])
    if located.empty:
        return []
    grouped = (
        located.groupby(LOCATION_KEYS, sort=True)
        .agg(Country=("Country", "first"), n=("Country", "size"))
        .reset_index()
    )
    return [
        LocationPoint(
            country=str(row.Country),
            country_code=str(row.CountryCode),
            city=str(row.City),
            longitude=float(row.Longitude),
            latitude=float(row.Latitude),
            n=int(row.n),
        )
        for row in grouped.itertuples(index=False)
    ]


def _hover_text(point: LocationPoint) -> str:
    place = f"{point.city}, {label(point.country)}" if point.city.strip() else label(point.country)
    return f"{place}: {point.n} infected host{'' if point.n == 1 else 's'}"


def build_figure(points: Sequence[LocationPoint], title: str = "Ransomware-infected hosts") -> go.Figure:
    counts = [point.n for point in points]
    largest = max(counts, default=1)
    fig = go.Figure(
        go.Scattergeo(
            lon=[point.longitude for point in points],
            lat=[point.latitude for point in points],
            text=[_hover_text(point) for point in points],
            hoverinfo="text",
            mode="markers",
            marker=dict(
                size=counts,
                sizemode="area",
                sizeref=2.0 * largest / (40.0**2),
                sizemin=4,
                color=counts,
                colorscale="Reds",
                cmin=0,
                colorbar=dict(title="Infections"),
                line=dict(width=0.5, color="rgb(40,40,40)"),
            ),
        )
    )
    fig.update_geos(
        projection_type="natural earth",
        showcountries=True,
        showland=True,
        landcolor="rgb(240,240,240)",
        lataxis_range=list(LATITUDE_RANGE),
        lonaxis_range=list(LONGITUDE_RANGE),
    )
    fig.update_layout(title=title, margin=dict(l=0, r=0, t=40, b=0))
    return fig


def save_html(fig: go.Figure, path: str | Path, include_plotlyjs: str = "cdn") -> Path:
    out_path = Path(path)
    logger.info("map.saving", path=str(out_path))
    out_path.parent.mkdir(parents=True, exist_ok=True)
    pio.write_html(fig, file=str(out_path), include_plotlyjs=include_plotlyjs)
    return out_path
