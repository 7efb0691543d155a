from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from ..logging_config import logger
from .base import MalformedResponseError, SearchClient

SEARCH_URL = "https://api.shodan.io/shodan/host/search"


@dataclass(frozen=True)
class SearchRequest:
    url: str
    query: str
    limit: int
    params: Dict[str, str] = field(repr=False)

    def page_params(self, page: int) -> Dict[str, str]:
        return {**self.params, "page": str(page)}


def build_search_request(api_key: str | None, query: str, limit: int) -> SearchRequest:
    """Describe a Shodan host search.

    An empty ``api_key`` is accepted here; Shodan answers such a request with
    401, which the client surfaces as :class:`AuthError`.
    """
    if limit < 1:
        raise ValueError("limit must be a positive integer")
    params = {"query": query, "limit": str(limit)}
    if api_key:
        params = {"key": api_key, **params}
    return SearchRequest(url=SEARCH_URL, query=query, limit=limit, params=params)


def extract_matches(document: Any) -> List[Dict[str, Any]]:
    matches = document.get("matches") if isinstance(document, dict) else None
    if not isinstance(matches, list):
        raise MalformedResponseError("response has no 'matches' array")
    return matches


class ShodanSearchClient(SearchClient):
    """Paged Shodan host search, one request in flight at a time."""

    name = "shodan"
    base_url = "https://api.shodan.io"

    def __init__(self, *, page_size: int = 100, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.page_size = page_size

    def _headers(self) -> Dict[str, str]:
        return {"Accept": "application/json"}

    async def fetch(self, request: SearchRequest) -> Dict[str, Any]:
        matches: List[Dict[str, Any]] = []
        total: int | None = None
        pages = math.ceil(request.limit / self.page_size)
        for page in range(1, pages + 1):
            payload = await self._get_json(request.url, request.page_params(page))
            page_matches = extract_matches(payload)
            if isinstance(payload.get("total"), int):
                total = payload["total"]
            matches.extend(page_matches)
            logger.info("fetch.page", provider=self.name, page=page, matches=len(page_matches), total=total)
            if not page_matches or len(matches) >= request.limit:
                break
            if total is not None and len(matches) >= total:
                break
        matches = matches[: request.limit]
        logger.info("fetch.done", provider=self.name, query=request.query, matches=len(matches))
        return {"matches": matches, "total": total if total is not None else len(matches)}


def load_response(path: str | Path) -> Dict[str, Any]:
    """Read a saved search response so a run can be replayed offline."""
    source = Path(path)
    try:
        with source.open("r", encoding="utf-8") as handle:
            document = json.load(handle)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"{source} is not valid JSON") from exc
    extract_matches(document)
    return document


def save_response(document: Dict[str, Any], path: str | Path) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        json.dump(document, handle)
    logger.info("fetch.saved", path=str(target), matches=len(document.get("matches", [])))
    return target
