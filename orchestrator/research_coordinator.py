"""
ResearchCoordinator - staged research run for a single topic.

State machine:
    PLANNING -> FETCHING (round 1) -> FOLLOW_UP_PLANNING -> FETCHING (round 2) -> DONE

Key guarantees:
- Per-URL and per-query failures are recorded in the corpus, never raised
- Results inside a record keep dispatch order regardless of completion order
- Cancellation returns the partial corpus with cancelled=True
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum

from api.base_client import BaseFetcher, BaseTextGenerator
from models.errors import CacheError, CoordinationError, error_kind_of
from models.research import ContentFailure, ContentResult, ContentSuccess, ResearchCorpus, ResearchRecord
from orchestrator.cancellation import CancellationToken, RunCancelled
from orchestrator.query_planner import FollowUpPlanner, LLMGapAnalysis, QueryPlanner
from orchestrator.retry_executor import RetryExecutor
from tools.web.cache import DEFAULT_TTL_SECONDS, ContentCache
from tools.web.rate_limiter import RateLimiter, origin_of
from utils.logger import get_logger

logger = get_logger(__name__)


class CoordinatorState(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    FETCHING = "fetching"
    FOLLOW_UP_PLANNING = "follow_up_planning"
    DONE = "done"


@dataclass(frozen=True)
class ResearchSettings:
    max_concurrent_fetches: int = 5
    max_results_per_query: int = 5
    cache_ttl_s: float = DEFAULT_TTL_SECONDS
    planning_temperature: float = 0.7


@dataclass(frozen=True)
class ResearchResult:
    corpus: ResearchCorpus
    cancelled: bool = False
    error: CoordinationError | None = None

    @property
    def attempted(self) -> int:
        return self.corpus.attempted

    @property
    def failed(self) -> int:
        return self.corpus.failed

    @property
    def succeeded(self) -> int:
        return self.attempted - self.failed

    @property
    def cache_hits(self) -> int:
        return sum(1 for r in self.corpus.successes() if r.cache_hit)

    def summary(self) -> str:
        text = f"research completed with {self.failed} fetch failures out of {self.attempted} attempted"
        if self.cancelled:
            text = f"research cancelled; {text}"
        return text


@dataclass
class _PendingRecord:
    """Mutable per-query buffer; slots are filled at their dispatch index."""

    query: str
    urls: list[str] = field(default_factory=list)
    slots: list[ContentResult | None] = field(default_factory=list)
    search_done: bool = False
    search_error: str | None = None

    def finalize(self, round_index: int) -> ResearchRecord:
        results = []
        for url, slot in zip(self.urls, self.slots):
            if slot is None:
                slot = ContentFailure(
                    url=url,
                    error_kind="cancelled",
                    message="Fetch cancelled before completion",
                    reason="cancelled",
                )
            results.append(slot)
        search_error = self.search_error
        if not self.search_done and search_error is None:
            search_error = "cancelled"
        return ResearchRecord(
            query=self.query,
            results=tuple(results),
            search_error=search_error,
            round_index=round_index,
        )


class ResearchCoordinator:
    """
    Orchestrates query planning and throttled, cached, retried fetches.

    Instances are single-use: construct a fresh coordinator per topic.

    Example usage:
        coordinator = ResearchCoordinator(fetcher, generator, RateLimiter(), RetryExecutor(), cache)
        result = await coordinator.run("AWS ECS Rails deployment")
        print(result.summary())
    """

    def __init__(
        self,
        fetcher: BaseFetcher,
        generator: BaseTextGenerator,
        rate_limiter: RateLimiter,
        retry_executor: RetryExecutor,
        cache: ContentCache | None = None,
        follow_up_planner: FollowUpPlanner | None = None,
        settings: ResearchSettings | None = None,
    ):
        """
        Args:
            fetcher: Search and scrape collaborator
            generator: Text generator used for query planning
            rate_limiter: Per-origin politeness limiter
            retry_executor: Retry strategy shared by every scrape
            cache: Optional content cache (None disables caching)
            follow_up_planner: Gap analysis strategy (defaults to LLMGapAnalysis)
            settings: Concurrency and result bounds
        """
        self.fetcher = fetcher
        self.rate_limiter = rate_limiter
        self.retry = retry_executor
        self.cache = cache
        self.settings = settings or ResearchSettings()
        self.query_planner = QueryPlanner(generator, temperature=self.settings.planning_temperature)
        self.follow_up_planner = follow_up_planner or LLMGapAnalysis(
            generator, temperature=self.settings.planning_temperature
        )
        self.state = CoordinatorState.IDLE
        self.round_index = 0
        self._semaphore: asyncio.Semaphore | None = None

    def _transition(self, state: CoordinatorState) -> None:
        self.state = state
        logger.info(
            f"Research state -> {state.value}",
            extra={"extra_fields": {"state": state.value, "round": self.round_index}},
        )

    async def run(self, topic: str, cancel_token: CancellationToken | None = None) -> ResearchResult:
        """
        Run both research rounds for a topic.

        Raises:
            CoordinationError: If this coordinator has already been used
        """
        if self.state is not CoordinatorState.IDLE:
            raise CoordinationError(
                "ResearchCoordinator instances are single-use",
                context={"state": self.state.value},
            )

        token = cancel_token or CancellationToken()
        self._semaphore = asyncio.Semaphore(max(1, self.settings.max_concurrent_fetches))
        corpus = ResearchCorpus(topic=topic)
        cancelled = False
        error = None

        try:
            self._transition(CoordinatorState.PLANNING)
            queries = await self._plan(token, "query_planning", lambda: self.query_planner.plan(topic))

            self.round_index = 1
            self._transition(CoordinatorState.FETCHING)
            await self._fetch_round(queries, corpus, token)

            self._transition(CoordinatorState.FOLLOW_UP_PLANNING)
            follow_ups = await self._plan(
                token, "follow_up_planning", lambda: self.follow_up_planner.plan(topic, corpus)
            )

            self.round_index = 2
            self._transition(CoordinatorState.FETCHING)
            await self._fetch_round(follow_ups, corpus, token)
        except RunCancelled:
            cancelled = True
            error = CoordinationError(
                "Research run cancelled",
                reason="cancelled",
                context={"state": self.state.value, "round": self.round_index},
            )
            logger.warning(
                "Research run cancelled; returning partial corpus",
                extra={"extra_fields": {"state": self.state.value, "records": len(corpus)}},
            )

        self._transition(CoordinatorState.DONE)
        corpus.seal()
        result = ResearchResult(corpus=corpus, cancelled=cancelled, error=error)
        logger.info(
            result.summary(),
            extra={
                "extra_fields": {
                    "topic": topic,
                    "records": len(corpus),
                    "attempted": result.attempted,
                    "failed": result.failed,
                    "cache_hits": result.cache_hits,
                }
            },
        )
        return result

    async def _plan(self, token: CancellationToken, label: str, operation) -> list[str]:
        outcome = await token.guard(self.retry.execute(operation, label=label))
        if not outcome.ok:
            logger.warning(
                f"{label} failed, continuing with no queries: {outcome.message}",
                extra={"extra_fields": {"stage": label, "error_kind": outcome.error_kind}},
            )
            return []
        queries = outcome.value or []
        logger.info(f"{label} produced {len(queries)} queries", extra={"extra_fields": {"stage": label}})
        return queries

    async def _fetch_round(
        self, queries: list[str], corpus: ResearchCorpus, token: CancellationToken
    ) -> None:
        pending = [_PendingRecord(query=q) for q in queries]
        try:
            if pending:
                await token.guard(asyncio.gather(*(self._research_query(p) for p in pending)))
        finally:
            for record in pending:
                corpus.append(record.finalize(self.round_index))

    async def _research_query(self, pending: _PendingRecord) -> None:
        try:
            results = await self.fetcher.search(pending.query)
        except Exception as e:
            pending.search_done = True
            pending.search_error = str(e)
            logger.warning(
                f"Search failed for '{pending.query}': {e}",
                extra={"extra_fields": {"query": pending.query, "error_type": type(e).__name__}},
            )
            return

        results = results[: self.settings.max_results_per_query]
        pending.urls = [r.url for r in results]
        pending.slots = [None] * len(results)
        pending.search_done = True

        await asyncio.gather(*(self._fetch_into(pending, i, url) for i, url in enumerate(pending.urls)))

    async def _fetch_into(self, pending: _PendingRecord, index: int, url: str) -> None:
        async with self._semaphore:
            try:
                pending.slots[index] = await self.fetch_url(url)
            except Exception as e:
                # Anything escaping fetch_url is still a failure of this URL only.
                logger.error(
                    f"Unexpected error fetching {url!r}: {e}",
                    extra={"extra_fields": {"url": url, "error_type": type(e).__name__}},
                )
                pending.slots[index] = ContentFailure(
                    url=url,
                    error_kind=error_kind_of(e),
                    message=str(e) or type(e).__name__,
                    reason=getattr(e, "reason", None),
                )

    async def fetch_url(self, url: str) -> ContentResult:
        """Cache-checked, rate-limited, retried fetch of a single URL."""
        cached = self._cache_get(url)
        if cached is not None:
            logger.debug("Cache hit", extra={"extra_fields": {"url": url}})
            return ContentSuccess(url=url, content=cached, cache_hit=True)

        await self.rate_limiter.wait_for(origin_of(url))
        outcome = await self.retry.execute(lambda: self.fetcher.scrape(url), label=url)

        if outcome.ok:
            self._cache_set(url, outcome.value)
            return ContentSuccess(url=url, content=outcome.value)

        logger.warning(
            f"Fetch failed after {outcome.attempts} attempts: {url}",
            extra={
                "extra_fields": {
                    "url": url,
                    "error_kind": outcome.error_kind,
                    "reason": outcome.reason,
                    "attempts": outcome.attempts,
                }
            },
        )
        return ContentFailure(
            url=url,
            error_kind=outcome.error_kind,
            message=outcome.message,
            reason=outcome.reason,
            attempts=outcome.attempts,
        )

    def _cache_get(self, url: str) -> str | None:
        if self.cache is None:
            return None
        try:
            return self.cache.get(url)
        except CacheError as e:
            logger.warning(
                f"Cache read failed, fetching live: {e}", extra={"extra_fields": {"url": url}}
            )
            return None

    def _cache_set(self, url: str, content: str) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(url, content, ttl=self.settings.cache_ttl_s)
        except CacheError as e:
            logger.warning(f"Cache write failed: {e}", extra={"extra_fields": {"url": url}})
