"""
Tests for ResearchCoordinator: ordering, partial failure tolerance, caching,
planning degradation and cancellation.
"""

import asyncio

import pytest

from models.errors import CacheError, CoordinationError
from models.research import ContentFailure, ContentSuccess, SearchResult
from orchestrator.cancellation import CancellationToken
from orchestrator.query_planner import LLMGapAnalysis, NoGapAnalysis
from orchestrator.research_coordinator import CoordinatorState, ResearchCoordinator, ResearchSettings
from orchestrator.retry_executor import RetryExecutor, RetryPolicy
from tools.web.cache import ContentCache
from tools.web.rate_limiter import RateLimiter

from fakes import FakeFetcher, FakeTextGenerator, generation_failure

SCENARIO_PLAN = """Implementation:
ECS task definitions for Rails
History:
Rails on AWS history
Challenges:
Rails migrations during ECS deploys
"""


def make_coordinator(
    fetcher,
    generator,
    retry,
    rate_limiter=None,
    cache=None,
    follow_up=None,
    settings=None,
):
    return ResearchCoordinator(
        fetcher=fetcher,
        generator=generator,
        rate_limiter=rate_limiter or RateLimiter(min_delay_s=0.0),
        retry_executor=retry,
        cache=cache,
        follow_up_planner=follow_up or NoGapAnalysis(),
        settings=settings,
    )


class BrokenCache(ContentCache):
    def get(self, url):
        raise CacheError("cache down")

    def set(self, url, content, ttl=None):
        raise CacheError("cache down")


class CountingFetcher(FakeFetcher):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.in_flight = 0
        self.max_in_flight = 0

    async def scrape(self, url):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            return await super().scrape(url)
        finally:
            self.in_flight -= 1


@pytest.mark.integration
def test_ecs_rails_scenario(fast_retry, rate_limiter):
    generator = FakeTextGenerator({"research planner": SCENARIO_PLAN})
    fetcher = FakeFetcher(results_per_query=2, failing=("site1",))
    coordinator = make_coordinator(fetcher, generator, fast_retry, rate_limiter=rate_limiter)

    result = asyncio.run(coordinator.run("AWS ECS Rails deployment"))

    records = result.corpus.records
    assert [r.query for r in records] == [
        "ECS task definitions for Rails",
        "Rails on AWS history",
        "Rails migrations during ECS deploys",
    ]
    for record in records:
        assert len(record.results) == 2
        assert isinstance(record.results[0], ContentSuccess)
        assert isinstance(record.results[1], ContentFailure)
        assert record.results[1].error_kind == "scrape_error"
        assert record.results[1].attempts == 4
    assert result.attempted == 6
    assert result.failed == 3
    assert result.summary() == "research completed with 3 fetch failures out of 6 attempted"
    assert coordinator.state is CoordinatorState.DONE
    assert result.corpus.sealed


def test_records_and_results_keep_dispatch_order(fast_retry):
    generator = FakeTextGenerator({"research planner": "q1\nq2"})
    # q1 and each query's first URL finish last
    fetcher = FakeFetcher(results_per_query=3, delays={"q1": 0.05, "site0": 0.03})
    coordinator = make_coordinator(fetcher, generator, fast_retry)

    result = asyncio.run(coordinator.run("topic"))

    assert result.corpus.queries == ["q1", "q2"]
    for record in result.corpus:
        assert [r.url for r in record.results] == [
            f"https://site{i}.example.com/{record.query}" for i in range(3)
        ]
        assert all(r.url.endswith(record.query) for r in record.results)


def test_partial_failures_do_not_abort_the_run(fast_retry):
    generator = FakeTextGenerator(
        {"research planner": "main query", "research analyst": "Security:\nfollow up query"}
    )
    fetcher = FakeFetcher(results_per_query=5, failing=("site0", "site2", "site4"))
    coordinator = make_coordinator(
        fetcher,
        generator,
        fast_retry,
        follow_up=LLMGapAnalysis(generator),
    )

    result = asyncio.run(coordinator.run("topic"))

    first = result.corpus.records[0]
    assert len(first.results) == 5
    assert first.success_count == 2
    assert first.failure_count == 3
    assert [type(r) for r in first.results] == [
        ContentFailure,
        ContentSuccess,
        ContentFailure,
        ContentSuccess,
        ContentFailure,
    ]
    assert result.corpus.queries == ["main query", "follow up query"]
    assert [r.round_index for r in result.corpus] == [1, 2]


def test_planning_failure_degrades_to_empty_query_list(fast_retry):
    generator = FakeTextGenerator({"research planner": generation_failure()})
    fetcher = FakeFetcher()
    coordinator = make_coordinator(fetcher, generator, fast_retry)

    result = asyncio.run(coordinator.run("topic"))

    assert len(result.corpus) == 0
    assert result.cancelled is False
    assert fetcher.searches == []
    assert len(generator.calls) == 4


def test_follow_up_failure_keeps_first_round(fast_retry):
    generator = FakeTextGenerator(
        {"research planner": "only query", "research analyst": generation_failure()}
    )
    coordinator = make_coordinator(
        FakeFetcher(results_per_query=1), generator, fast_retry, follow_up=LLMGapAnalysis(generator)
    )

    result = asyncio.run(coordinator.run("topic"))

    assert result.corpus.queries == ["only query"]
    assert result.error is None


def test_search_error_is_recorded_as_empty_record(fast_retry):
    generator = FakeTextGenerator({"research planner": "good query\nbad query"})
    fetcher = FakeFetcher(results_per_query=2, search_failures=("bad query",))
    coordinator = make_coordinator(fetcher, generator, fast_retry)

    result = asyncio.run(coordinator.run("topic"))

    good, bad = result.corpus.records
    assert len(good.results) == 2 and good.search_error is None
    assert bad.results == ()
    assert "search failed for bad query" in bad.search_error


def test_results_are_capped_per_query(fast_retry):
    generator = FakeTextGenerator({"research planner": "q"})
    coordinator = make_coordinator(
        FakeFetcher(results_per_query=8),
        generator,
        fast_retry,
        settings=ResearchSettings(max_results_per_query=3),
    )
    result = asyncio.run(coordinator.run("topic"))
    assert len(result.corpus.records[0].results) == 3


def test_cache_hit_skips_scrape_and_successes_are_cached(fast_retry, cache):
    cached_url = "https://site0.example.com/q"
    cache.set(cached_url, "cached body")
    generator = FakeTextGenerator({"research planner": "q"})
    fetcher = FakeFetcher(results_per_query=2)
    coordinator = make_coordinator(fetcher, generator, fast_retry, cache=cache)

    result = asyncio.run(coordinator.run("topic"))

    first, second = result.corpus.records[0].results
    assert first.content == "cached body" and first.cache_hit is True
    assert second.cache_hit is False
    assert fetcher.scrapes == ["https://site1.example.com/q"]
    assert cache.get("https://site1.example.com/q") == "Content of https://site1.example.com/q"
    assert result.cache_hits == 1


def test_cache_failure_degrades_to_live_fetch(fast_retry):
    generator = FakeTextGenerator({"research planner": "q"})
    fetcher = FakeFetcher(results_per_query=2)
    coordinator = make_coordinator(fetcher, generator, fast_retry, cache=BrokenCache())

    result = asyncio.run(coordinator.run("topic"))

    assert result.failed == 0
    assert len(fetcher.scrapes) == 2


def test_running_without_cache_gives_equivalent_results(fast_retry):
    def run(cache):
        generator = FakeTextGenerator({"research planner": "q1\nq2"})
        coordinator = make_coordinator(FakeFetcher(failing=("site1",)), generator, fast_retry, cache=cache)
        return asyncio.run(coordinator.run("topic")).corpus.records

    with_cache = run(ContentCache())
    without_cache = run(None)
    assert with_cache == without_cache


def test_in_flight_fetches_are_bounded(fast_retry):
    generator = FakeTextGenerator({"research planner": "q1\nq2"})
    fetcher = CountingFetcher(results_per_query=6)
    coordinator = make_coordinator(
        fetcher, generator, fast_retry, settings=ResearchSettings(max_concurrent_fetches=2)
    )

    result = asyncio.run(coordinator.run("topic"))

    assert result.attempted == 12
    assert fetcher.max_in_flight == 2


def test_coordinator_is_single_use(fast_retry):
    generator = FakeTextGenerator({"research planner": "q"})
    coordinator = make_coordinator(FakeFetcher(), generator, fast_retry)
    asyncio.run(coordinator.run("topic"))

    with pytest.raises(CoordinationError):
        asyncio.run(coordinator.run("topic"))


def test_cancellation_returns_partial_corpus(fast_retry):
    generator = FakeTextGenerator({"research planner": "q1\nq2"})
    fetcher = FakeFetcher(results_per_query=2, hang=True)
    coordinator = make_coordinator(fetcher, generator, fast_retry)

    async def run():
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.05, token.cancel)
        return await asyncio.wait_for(coordinator.run("topic", cancel_token=token), timeout=2.0)

    result = asyncio.run(run())

    assert result.cancelled is True
    assert result.error.reason == "cancelled"
    assert result.corpus.queries == ["q1", "q2"]
    for record in result.corpus:
        assert [r.error_kind for r in record.results] == ["cancelled", "cancelled"]
    assert "research cancelled" in result.summary()


def test_cancellation_is_not_lost_during_backoff():
    generator = FakeTextGenerator({"research planner": "q"})
    fetcher = FakeFetcher(results_per_query=1, failing=("site0",))
    slow_retry = RetryExecutor(RetryPolicy(max_retries=3, delay_unit_s=30.0))
    coordinator = make_coordinator(fetcher, generator, slow_retry)

    async def run():
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.05, token.cancel)
        return await asyncio.wait_for(coordinator.run("topic", cancel_token=token), timeout=2.0)

    result = asyncio.run(run())

    assert result.cancelled is True
    assert fetcher.scrapes == ["https://site0.example.com/q"]
    assert result.corpus.records[0].results[0].error_kind == "cancelled"


def test_cancel_before_start_yields_empty_corpus(fast_retry):
    generator = FakeTextGenerator({"research planner": "q"})
    coordinator = make_coordinator(FakeFetcher(), generator, fast_retry)

    async def run():
        token = CancellationToken()
        token.cancel()
        return await coordinator.run("topic", cancel_token=token)

    result = asyncio.run(run())
    assert result.cancelled is True
    assert len(result.corpus) == 0
    assert generator.calls == []


SURROGATE_URL = "https://a.example.com/\ud800"


class SurrogateUrlFetcher(FakeFetcher):
    """Search results as json decoding yields them for a lone \\ud800 escape."""

    async def search(self, query):
        self.searches.append(query)
        return [
            SearchResult(title="ok", url="https://b.example.com/ok"),
            SearchResult(title="bad", url=SURROGATE_URL),
        ]


class ExplodingCache(ContentCache):
    def get(self, url):
        if "explode" in url:
            raise RuntimeError("unexpected cache bug")
        return super().get(url)


def test_unencodable_url_does_not_abort_the_run(fast_retry):
    generator = FakeTextGenerator({"research planner": "q"})
    fetcher = SurrogateUrlFetcher()
    cache = ContentCache()
    coordinator = make_coordinator(fetcher, generator, fast_retry, cache=cache)

    result = asyncio.run(coordinator.run("topic"))

    (record,) = result.corpus.records
    assert [r.url for r in record.results] == ["https://b.example.com/ok", SURROGATE_URL]
    assert result.attempted == 2
    assert result.failed == 0
    assert cache.get(SURROGATE_URL) == f"Content of {SURROGATE_URL}"


def test_unexpected_error_is_recorded_against_its_url_only(fast_retry):
    class Fetcher(FakeFetcher):
        async def search(self, query):
            return [
                SearchResult(title="a", url="https://a.example.com/fine"),
                SearchResult(title="b", url="https://b.example.com/explode"),
            ]

    generator = FakeTextGenerator({"research planner": "q"})
    coordinator = make_coordinator(Fetcher(), generator, fast_retry, cache=ExplodingCache())

    result = asyncio.run(coordinator.run("topic"))

    assert not result.cancelled
    ok, failed = result.corpus.records[0].results
    assert isinstance(ok, ContentSuccess)
    assert isinstance(failed, ContentFailure)
    assert failed.url == "https://b.example.com/explode"
    assert failed.error_kind == "unknown"
    assert failed.message == "unexpected cache bug"
