"""Web search through the Exa search API.

A single outbound POST; results are passed through as title/url/summary.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from mdfetch.config import SearchConfig
from mdfetch.errors import SearchError


class SearchResult(BaseModel):
    """One search hit."""

    title: str
    url: str
    summary: str


class _SearchResponse(BaseModel):
    results: list[SearchResult]


def build_search_request(
    query: str,
    include_domains: list[str] | None,
    num_results: int,
) -> dict[str, Any]:
    """Build the JSON body for the search endpoint."""
    return {
        "query": query,
        "include_domains": include_domains,
        "num_results": num_results,
        "contents": {"text": False, "summary": True},
    }


async def search(
    query: str,
    include_domains: list[str] | None = None,
    config: SearchConfig | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[SearchResult]:
    """Search the web.

    Args:
        query: Natural language query
        include_domains: If given, results only come from these domains
        config: Search configuration
        client: Optional client (a temporary one is used otherwise)

    Returns:
        Search results

    Raises:
        SearchError: If the API key is missing or the request fails
    """
    cfg = config or SearchConfig()
    api_key = cfg.get_resolved_api_key()
    if not api_key:
        raise SearchError(
            "search api key not configured (set search.api_key or EXA_API_KEY)"
        )

    body = build_search_request(query, include_domains, cfg.num_results)
    headers = {"x-api-key": api_key, "content-type": "application/json"}
    logger.debug(f"Searching: {query!r} (domains={include_domains})")

    try:
        if client is not None:
            response = await client.post(
                cfg.base_url, json=body, headers=headers, timeout=cfg.timeout
            )
        else:
            async with httpx.AsyncClient() as http:
                response = await http.post(
                    cfg.base_url, json=body, headers=headers, timeout=cfg.timeout
                )
        response.raise_for_status()
        parsed = _SearchResponse.model_validate(response.json())
    except httpx.HTTPStatusError as e:
        raise SearchError(
            f"search failed: HTTP {e.response.status_code}: {e.response.text[:200]}"
        ) from e
    except httpx.HTTPError as e:
        raise SearchError(f"search failed: {e!r}") from e
    except (ValueError, ValidationError) as e:
        raise SearchError(f"search returned malformed response: {e}") from e

    logger.info(f"Search returned {len(parsed.results)} results for {query!r}")
    return parsed.results
