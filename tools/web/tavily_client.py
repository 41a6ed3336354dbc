"""Tavily REST client implementing the Fetcher contract.

Search goes to /search, page content to /extract. Both are plain JSON POSTs
made with httpx, so no SDK is needed.
"""

import httpx

from api.base_client import BaseFetcher
from models.errors import ScrapeError, SearchError
from models.research import SearchResult
from utils.logger import get_logger

logger = get_logger(__name__)

TAVILY_SEARCH_URL = "https://api.tavily.com/search"
TAVILY_EXTRACT_URL = "https://api.tavily.com/extract"
DEFAULT_TIMEOUT_S = 20.0


class TavilyFetcher(BaseFetcher):
    """
    Tavily-powered fetcher.

    Tavily renders JavaScript and extracts readable text server-side, which
    covers the browser-driven rendering this pipeline relies on.
    """

    def __init__(
        self,
        api_key: str,
        max_results: int = 5,
        search_depth: str = "advanced",
        timeout_s: float = DEFAULT_TIMEOUT_S,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Args:
            api_key: Tavily API key
            max_results: Maximum results per search (1-10)
            search_depth: "basic" (faster) or "advanced" (deeper)
            timeout_s: Per-request timeout
            http_client: Optional shared AsyncClient (closed by close() only if owned)
        """
        if not api_key:
            raise ValueError("TAVILY_API_KEY not set")
        self.api_key = api_key
        self.max_results = max(1, min(int(max_results), 10))
        self.search_depth = search_depth
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout_s)

    async def search(self, query: str) -> list[SearchResult]:
        payload = {
            "api_key": self.api_key,
            "query": query,
            "search_depth": self.search_depth,
            "max_results": self.max_results,
            "include_answer": False,
            "include_raw_content": False,
        }
        try:
            response = await self._client.post(TAVILY_SEARCH_URL, json=payload)
            response.raise_for_status()
            data = response.json() if response.content else {}
        except httpx.TimeoutException as e:
            raise SearchError(f"Search timed out for '{query}'", reason="timeout", cause=e) from e
        except httpx.HTTPStatusError as e:
            reason = "rate_limit" if e.response.status_code == 429 else "provider_error"
            raise SearchError(
                f"Search failed with HTTP {e.response.status_code}", reason=reason, cause=e
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise SearchError(
                f"Search failed for '{query}': {e}", reason="provider_error", cause=e
            ) from e

        if not isinstance(data, dict):
            raise SearchError("Unexpected search payload", reason="bad_request")

        results = []
        for item in data.get("results") or []:
            url = str(item.get("url") or "").strip()
            if not url:
                continue
            results.append(
                SearchResult(
                    title=str(item.get("title") or "").strip() or url,
                    url=url,
                    snippet=str(item.get("content") or "").strip(),
                )
            )

        logger.info(
            f"Tavily returned {len(results)} results",
            extra={"extra_fields": {"query": query, "result_count": len(results)}},
        )
        return results

    async def scrape(self, url: str) -> str:
        payload = {"api_key": self.api_key, "urls": [url]}
        try:
            response = await self._client.post(TAVILY_EXTRACT_URL, json=payload)
            response.raise_for_status()
            data = response.json() if response.content else {}
        except httpx.TimeoutException as e:
            raise ScrapeError(f"Timed out extracting {url}", reason="timeout", cause=e) from e
        except httpx.HTTPStatusError as e:
            reason = "rate_limit" if e.response.status_code == 429 else "navigation"
            raise ScrapeError(
                f"Extract failed with HTTP {e.response.status_code}", reason=reason, cause=e
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ScrapeError(f"Extract failed for {url}: {e}", reason="navigation", cause=e) from e

        for item in (data.get("results") or []) if isinstance(data, dict) else []:
            content = str(item.get("raw_content") or "").strip()
            if content:
                return content

        failed = (data.get("failed_results") or []) if isinstance(data, dict) else []
        if failed:
            detail = failed[0].get("error") if isinstance(failed[0], dict) else failed[0]
            raise ScrapeError(f"Navigation failed for {url}: {detail}", reason="navigation")
        raise ScrapeError(f"No content extracted from {url}", reason="empty_extraction")

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
