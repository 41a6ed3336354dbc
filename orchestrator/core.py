"""
ResearchPipeline - topic in, article out.

Key guarantees:
- run() never raises; every outcome is described by a PipelineReport
- Fetch failures and document generation failures are reported separately
- A fresh ResearchCoordinator is built for every run
"""

import asyncio
import concurrent.futures
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, TypeVar

from api.base_client import BaseFetcher, BaseTextGenerator
from models.document import Article
from models.errors import DocumentGenerationError
from orchestrator.cancellation import CancellationToken
from orchestrator.content_generator import ContentGenerator, GenerationSettings
from orchestrator.query_planner import FollowUpPlanner, LLMGapAnalysis, NoGapAnalysis
from orchestrator.research_coordinator import ResearchCoordinator, ResearchResult, ResearchSettings
from orchestrator.retry_executor import RetryExecutor, RetryPolicy
from tools.web.cache import ContentCache
from tools.web.rate_limiter import RateLimiter
from utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PipelineReport:
    run_id: str
    topic: str
    research: ResearchResult
    article: Article | None = None
    generation_error: DocumentGenerationError | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def is_success(self) -> bool:
        return self.article is not None

    def summary(self) -> str:
        lines = [self.research.summary()]
        if self.generation_error is not None:
            error = self.generation_error
            lines.append(f"document generation failed at {error.stage}: {error.message}")
        elif self.article is not None:
            article = self.article
            lines.append(
                f"article generated: {len(article.sections)} sections, {article.word_count} words"
            )
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "topic": self.topic,
            "research": {
                "records": len(self.research.corpus),
                "attempted": self.research.attempted,
                "failed": self.research.failed,
                "cache_hits": self.research.cache_hits,
                "cancelled": self.research.cancelled,
            },
            "article": (
                {
                    "sections": len(self.article.sections),
                    "words": self.article.word_count,
                    "polished": self.article.polished,
                }
                if self.article
                else None
            ),
            "generation_error": (
                {
                    "stage": self.generation_error.stage,
                    "reason": self.generation_error.reason,
                    "message": self.generation_error.message,
                }
                if self.generation_error
                else None
            ),
            "timestamp": self.timestamp,
        }


class ResearchPipeline:
    """
    Wires research and document generation around injected collaborators.

    Example usage:
        pipeline = ResearchPipeline(fetcher, text_generator, cache=ContentCache())
        report = pipeline.run_sync("AWS ECS Rails deployment")
        print(report.summary())
    """

    def __init__(
        self,
        fetcher: BaseFetcher,
        generator: BaseTextGenerator,
        cache: ContentCache | None = None,
        rate_limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        research_settings: ResearchSettings | None = None,
        generation_settings: GenerationSettings | None = None,
        gap_analysis: bool = True,
    ):
        self.fetcher = fetcher
        self.generator = generator
        self.cache = cache
        self.rate_limiter = rate_limiter or RateLimiter()
        self.retry_executor = RetryExecutor(retry_policy)
        self.research_settings = research_settings or ResearchSettings()
        self.generation_settings = generation_settings or GenerationSettings()
        self.gap_analysis = gap_analysis

    def _follow_up_planner(self) -> FollowUpPlanner:
        if self.gap_analysis:
            temperature = self.research_settings.planning_temperature
            return LLMGapAnalysis(self.generator, temperature=temperature)
        return NoGapAnalysis()

    async def run(self, topic: str, cancel_token: CancellationToken | None = None) -> PipelineReport:
        run_id = str(uuid.uuid4())
        logger.info("Pipeline run started", extra={"extra_fields": {"run_id": run_id, "topic": topic}})

        coordinator = ResearchCoordinator(
            fetcher=self.fetcher,
            generator=self.generator,
            rate_limiter=self.rate_limiter,
            retry_executor=self.retry_executor,
            cache=self.cache,
            follow_up_planner=self._follow_up_planner(),
            settings=self.research_settings,
        )
        research = await coordinator.run(topic, cancel_token=cancel_token)

        if research.cancelled:
            return PipelineReport(run_id=run_id, topic=topic, research=research)

        content_generator = ContentGenerator(
            self.generator, self.retry_executor, self.generation_settings
        )
        try:
            article = await content_generator.generate(research.corpus)
        except DocumentGenerationError as e:
            logger.error(
                f"Document generation failed: {e}",
                extra={"extra_fields": {"run_id": run_id, "stage": e.stage, "reason": e.reason}},
            )
            return PipelineReport(run_id=run_id, topic=topic, research=research, generation_error=e)

        report = PipelineReport(run_id=run_id, topic=topic, research=research, article=article)
        logger.info("Pipeline run complete", extra={"extra_fields": report.to_dict()})
        return report

    def run_sync(self, topic: str) -> PipelineReport:
        return run_sync(self.run(topic))


def run_sync(coro: Awaitable[T]) -> T:
    """
    Run a coroutine to completion from synchronous code.

    If an event loop is already running in this thread, the coroutine runs on
    its own loop in a worker thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
        return executor.submit(asyncio.run, coro).result()
