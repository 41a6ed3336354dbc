import sys

from config.config import Config
from orchestrator.core import PipelineReport, ResearchPipeline, run_sync
from tools.web.factory import create_fetcher, create_text_generator, get_content_cache
from tools.web.rate_limiter import RateLimiter


def build_pipeline(config: Config) -> ResearchPipeline:
    """
    Build a ResearchPipeline from configuration.

    Raises:
        ValueError: If required API keys are missing
    """
    return ResearchPipeline(
        fetcher=create_fetcher(config),
        generator=create_text_generator(config),
        cache=get_content_cache(config),
        rate_limiter=RateLimiter(min_delay_s=config.RATE_LIMIT_MIN_DELAY_S),
        retry_policy=config.retry_policy(),
        research_settings=config.research_settings(),
        generation_settings=config.generation_settings(),
        gap_analysis=config.ENABLE_GAP_ANALYSIS,
    )


async def run_topic(pipeline: ResearchPipeline, topic: str) -> PipelineReport:
    # The fetcher's HTTP client is bound to this loop, so close it here.
    try:
        return await pipeline.run(topic)
    finally:
        await pipeline.fetcher.close()


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    topic = " ".join(argv).strip()
    if not topic:
        print("Usage: python main.py <topic>", file=sys.stderr)
        return 2

    config = Config()
    if not config.validate():
        print("Configuration is incomplete; see logs/error.log", file=sys.stderr)
        return 1

    pipeline = build_pipeline(config)
    report = run_sync(run_topic(pipeline, topic))

    print(report.summary(), file=sys.stderr)
    if report.article is None:
        return 1
    print(report.article.text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
