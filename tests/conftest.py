from __future__ import annotations

import copy
from typing import Any

import pytest

from ransommap.config import get_settings

SETTINGS_ENV = (
    "SHODAN_API_KEY",
    "SEARCH_QUERY",
    "RESULT_LIMIT",
    "PAGE_SIZE",
    "OUTPUT_CSV",
    "OUTPUT_HTML",
    "LOG_LEVEL",
    "LOG_JSON",
)

RAW_MATCHES: list[dict[str, Any]] = [
    {
        "ip_str": "203.0.113.10",
        "port": 3389,
        "transport": "tcp",
        "product": "Remote Desktop Protocol",
        "os": "Windows Server 2019",
        "location": {
            "country_name": "United States",
            "country_code": "US",
            "city": "Austin",
            "longitude": -97.74,
            "latitude": 30.27,
        },
        "screenshot": {"text": "YOUR FILES HAVE BEEN ENCRYPTED\nsend 0.1 BTC", "labels": ["ransomware"]},
    },
    {
        "ip_str": "198.51.100.7",
        "port": 5900,
        "transport": "tcp",
        "product": "VNC",
        "os": None,
        "location": {
            "country_name": "Germany",
            "country_code": "DE",
            "city": "Berlin",
            "longitude": 13.41,
            "latitude": 52.52,
        },
        "screenshot": {"text": "Oops, your important files are encrypted."},
    },
    {
        "ip_str": "192.0.2.44",
        "port": 3389,
        "transport": "tcp",
        "product": "Remote Desktop Protocol",
        "location": {
            "country_name": "Germany",
            "country_code": "DE",
            "city": "Berlin",
            "longitude": 13.41,
            "latitude": 52.52,
        },
        "screenshot": {"text": "All your documents were locked, pay in bitcoin"},
    },
    {
        # login screen, no ransom note
        "ip_str": "192.0.2.99",
        "port": 3389,
        "transport": "tcp",
        "location": {"country_name": "France", "country_code": "FR", "city": "Paris", "longitude": 2.35, "latitude": 48.85},
        "screenshot": {"labels": ["desktop"]},
    },
    {
        # no location block at all
        "ip_str": "192.0.2.100",
        "port": 5900,
        "transport": "tcp",
        "screenshot": {"text": "files encrypted"},
    },
    {
        "ip_str": "203.0.113.200",
        "port": 5900,
        "transport": "tcp",
        "product": "VNC",
        "location": {
            "country_name": "Austria",
            "country_code": "AT",
            "city": None,
            "longitude": 16.37,
            "latitude": 48.21,
        },
        "screenshot": {"text": "decrypt key: contact us"},
    },
]


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    for key in SETTINGS_ENV:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def raw_matches() -> list[dict[str, Any]]:
    return copy.deepcopy(RAW_MATCHES)


@pytest.fixture()
def shodan_document(raw_matches) -> dict[str, Any]:
    return {"matches": raw_matches, "total": len(raw_matches)}
