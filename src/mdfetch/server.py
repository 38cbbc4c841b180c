"""MCP server exposing the fetch and search tools over streamable HTTP."""

from __future__ import annotations

from typing import Annotated

from loguru import logger
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import Field

from mdfetch.config import MdfetchConfig
from mdfetch.constants import DEFAULT_SERVER_NAME
from mdfetch.errors import SearchError
from mdfetch.fetch import fetch_urls, reset_orchestrator
from mdfetch.search import search as run_search

INSTRUCTIONS = (
    "Fetch web pages as clean markdown and search the web. "
    "Use fetch for any URL; JavaScript-heavy pages are rendered automatically."
)


async def fetch_tool(urls: list[str], config: MdfetchConfig) -> list[dict[str, str]]:
    """Fetch URLs and return one {content} or {error} object per URL."""
    results = await fetch_urls(urls, config.fetch)
    return [result.to_payload() for result in results]


async def search_tool(
    query: str, include_domains: list[str] | None, config: MdfetchConfig
) -> list[dict[str, str]]:
    """Search and return title/url/summary objects.

    Raises:
        ToolError: If the search fails
    """
    try:
        results = await run_search(query, include_domains, config.search)
    except SearchError as e:
        logger.error(f"Search failed: {e}")
        raise ToolError(str(e)) from e
    return [result.model_dump() for result in results]


def build_server(config: MdfetchConfig) -> FastMCP:
    """Construct a FastMCP server wired to the fetch orchestrator and search client."""
    server = FastMCP(
        DEFAULT_SERVER_NAME,
        instructions=INSTRUCTIONS,
        host=config.server.host,
        port=config.server.port,
        streamable_http_path=config.server.path,
        stateless_http=config.server.stateless,
    )

    @server.tool()
    async def fetch(
        urls: Annotated[list[str], Field(description="A list of URLs to fetch.")],
    ) -> list[dict[str, str]]:
        """Fetches URLs from the internet and extracts their contents as markdown.

        This is the highly recommended way to fetch pages. Returns one entry per
        URL, in order: {"content": ...} on success or {"error": ...} on failure.
        """
        return await fetch_tool(urls, config)

    @server.tool()
    async def search(
        query: Annotated[
            str, Field(description="The natural language query to search for.")
        ],
        include_domains: Annotated[
            list[str] | None,
            Field(
                description=(
                    "If specified, results will only come from these domains, "
                    'e.g. ["example.com"].'
                )
            ),
        ] = None,
    ) -> list[dict[str, str]]:
        """Searches the web and returns title, url and summary for each result."""
        return await search_tool(query, include_domains, config)

    return server


def run_server(config: MdfetchConfig) -> None:
    """Run the MCP server until interrupted, then close the shared browser."""
    server = build_server(config)
    logger.info(
        f"Serving MCP on http://{config.server.host}:{config.server.port}"
        f"{config.server.path}"
    )
    try:
        server.run(transport="streamable-http")
    finally:
        reset_orchestrator()
