# -*- coding: utf-8 -*-
"""Web search for prompt augmentation (Google Custom Search).

``search`` raises ``RetrievalFailed``; ``search_as_text`` never raises and
returns a plain-text block that can be injected into an LLM prompt, with
failures rendered in-band as ``[search_error: ...]``.
"""

from typing import Optional

import httpx
from loguru import logger
from pydantic import BaseModel

from bot_configs import NO_SEARCH_RESULTS, SEARCH_ERROR_PREFIX
from errors import RetrievalFailed
from text_utils import truncate

GOOGLE_CSE_URL = "https://www.googleapis.com/customsearch/v1"
SNIPPET_LIMIT = 200


class SearchResult(BaseModel):
    title: str
    url: str
    snippet: str


def search_error(detail: str) -> str:
    return f"[{SEARCH_ERROR_PREFIX}: {detail}]"


def _field(item: dict, key: str, default: str) -> str:
    value = item.get(key)
    if value is None or value == "":
        return default
    return str(value).strip() or default


def format_search_results(results: list[SearchResult]) -> str:
    if not results:
        return NO_SEARCH_RESULTS
    lines = [f"{i}. {r.title}: {r.url} - {r.snippet}" for i, r in enumerate(results, 1)]
    return "\n".join(lines)


class WebSearchClient:
    def __init__(
        self,
        api_key: Optional[str],
        engine_id: Optional[str],
        timeout_sec: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.engine_id = engine_id
        self.timeout_sec = timeout_sec
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.engine_id)

    async def search(self, query: str) -> list[SearchResult]:
        if not self.configured:
            raise RetrievalFailed("Google CSE API Key or ID is not configured.")

        params = {"q": query, "key": self.api_key, "cx": self.engine_id}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_sec, transport=self._transport) as client:
                r = await client.get(GOOGLE_CSE_URL, params=params)
        except httpx.TimeoutException as exc:
            raise RetrievalFailed(f"Search request timed out after {self.timeout_sec}s.") from exc
        except httpx.HTTPError as exc:
            raise RetrievalFailed("No response received from Google Search API.") from exc

        if r.status_code != 200:
            raise RetrievalFailed(f"Received status {r.status_code} - {r.text[:200]}")
        try:
            data = r.json()
        except ValueError as exc:
            raise RetrievalFailed(f"Malformed search response: {exc}") from exc
        if not isinstance(data, dict):
            raise RetrievalFailed(f"Malformed search response: expected an object, got {type(data).__name__}")

        items = data.get("items") or []
        if not isinstance(items, list):
            raise RetrievalFailed(f"Malformed search response: items is {type(items).__name__}")

        results = []
        for item in items:
            if not isinstance(item, dict):
                logger.debug(f"Skipping malformed search item: {item!r}")
                continue
            snippet = _field(item, "snippet", "No snippet available.")
            results.append(
                SearchResult(
                    title=_field(item, "title", "No Title"),
                    url=_field(item, "link", "No Link"),
                    snippet=truncate(snippet, SNIPPET_LIMIT),
                )
            )
        return results

    async def search_as_text(self, query: str) -> str:
        try:
            results = await self.search(query)
        except RetrievalFailed as exc:
            logger.warning(f"Search for '{query}' failed: {exc}")
            return search_error(str(exc))
        return format_search_results(results)
