from __future__ import annotations

import ipaddress
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import pandas as pd
from pydantic import ValidationError

from ..logging_config import logger
from ..models.schemas import DEVICE_COLUMNS, NUMERIC_DTYPES, DeviceRow

CSV_DTYPES = {
    "IPAddress": str,
    "Transport": str,
    "Service": str,
    "OperatingSystem": str,
    "Country": str,
    "CountryCode": str,
    "City": str,
    "RansomLetter": str,
    **NUMERIC_DTYPES,
}


@dataclass(frozen=True)
class Lookup:
    """Result of reading a nested field: either present with a value or absent."""

    present: bool
    value: Any = None

    @classmethod
    def absent(cls) -> "Lookup":
        return cls(present=False)

    def text(self) -> str:
        if self.present and isinstance(self.value, str):
            return self.value
        return ""


def lookup(record: Any, *path: str) -> Lookup:
    """Walk ``path`` through nested mappings. Missing keys and JSON nulls are absent."""
    current = record
    for key in path:
        if not isinstance(current, Mapping) or current.get(key) is None:
            return Lookup.absent()
        current = current[key]
    return Lookup(present=True, value=current)


def _ip_text(record: Any) -> str:
    ip_str = lookup(record, "ip_str")
    if ip_str.present:
        return ip_str.text()
    packed = lookup(record, "ip").value
    if isinstance(packed, int) and not isinstance(packed, bool):
        try:
            return str(ipaddress.ip_address(packed))
        except ValueError:
            return ""
    return ""


def _flatten(record: Any) -> Optional[Dict[str, Any]]:
    # only a missing location block or missing note text excludes a record;
    # absent scalars inside it stay empty / null on the row
    location = lookup(record, "location")
    if not location.present or not isinstance(location.value, Mapping):
        return None
    letter = lookup(record, "screenshot", "text").text()
    if not letter.strip():
        return None
    return {
        "ip_address": _ip_text(record),
        "port": lookup(record, "port").value,
        "transport": lookup(record, "transport").text(),
        "service": lookup(record, "product").text(),
        "operating_system": lookup(record, "os").text(),
        "country": lookup(location.value, "country_name").text(),
        "country_code": lookup(location.value, "country_code").text(),
        "city": lookup(location.value, "city").text(),
        "longitude": lookup(location.value, "longitude").value,
        "latitude": lookup(location.value, "latitude").value,
        "ransom_letter": letter,
    }


def to_device_row(record: Any) -> Optional[DeviceRow]:
    """Map one raw search match onto a :class:`DeviceRow`, or ``None`` when it is unusable."""
    flat = _flatten(record)
    if flat is None:
        return None
    try:
        return DeviceRow(**flat)
    except ValidationError as exc:
        logger.debug("normalize.skip", ip=flat.get("ip_address"), errors=exc.error_count())
        return None


def normalize(records: Iterable[Any], output_path: str | Path | None = None) -> pd.DataFrame:
    """Flatten raw matches into the device table, sorted by country.

    Records without a location, without screenshot text or with values of the
    wrong type are left out. When ``output_path`` is given the table is also
    written there as CSV.
    """
    rows = []
    skipped = 0
    for record in records:
        row = to_device_row(record)
        if row is None:
            skipped += 1
            continue
        rows.append(row.model_dump(by_alias=True))
    frame = pd.DataFrame(rows, columns=DEVICE_COLUMNS).astype(NUMERIC_DTYPES)
    frame = frame.sort_values("Country", kind="stable").reset_index(drop=True)
    logger.info("normalize.done", kept=len(frame), skipped=skipped)
    if output_path is not None:
        write_devices(frame, output_path)
    return frame


def write_devices(frame: pd.DataFrame, path: str | Path) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(target, columns=DEVICE_COLUMNS, index=False, encoding="utf-8")
    logger.info("devices.written", path=str(target), rows=len(frame))
    return target


def read_devices(path: str | Path) -> pd.DataFrame:
    source = Path(path)
    frame = pd.read_csv(
        source,
        dtype=CSV_DTYPES,
        keep_default_na=False,
        na_values={column: [""] for column in NUMERIC_DTYPES},
        float_precision="round_trip",
        encoding="utf-8",
    )
    missing = [column for column in DEVICE_COLUMNS if column not in frame.columns]
    if missing:
        raise ValueError(f"{source} is missing columns: {', '.join(missing)}")
    return frame[DEVICE_COLUMNS]
