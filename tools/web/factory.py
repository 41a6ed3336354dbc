"""Factories for building pipeline collaborators from configuration."""

from api.openai_client import OpenAITextGenerator
from config.config import Config
from utils.logger import get_logger

from .cache import ContentCache
from .tavily_client import TavilyFetcher

logger = get_logger(__name__)

# Singleton cache instance (process-shared)
_cache_instance: ContentCache | None = None


def get_content_cache(config: Config) -> ContentCache | None:
    """
    Return the process-wide content cache, or None when caching is disabled.
    """
    global _cache_instance

    if not config.CACHE_ENABLED:
        return None
    if _cache_instance is None:
        _cache_instance = ContentCache(default_ttl=config.RESEARCH_CACHE_TTL_SECONDS)
    return _cache_instance


def create_fetcher(config: Config) -> TavilyFetcher:
    """
    Raises:
        ValueError: If TAVILY_API_KEY is not set
    """
    if not config.TAVILY_API_KEY:
        raise ValueError("TAVILY_API_KEY not set in environment")
    logger.info("Using Tavily for search and extraction")
    return TavilyFetcher(api_key=config.TAVILY_API_KEY, max_results=config.MAX_RESULTS_PER_QUERY)


def create_text_generator(config: Config) -> OpenAITextGenerator:
    """
    Raises:
        ValueError: If OPENAI_API_KEY is not set
    """
    if not config.OPENAI_API_KEY:
        raise ValueError("OPENAI_API_KEY not set in environment")
    logger.info(f"Using {config.get_model_info()} for text generation")
    return OpenAITextGenerator(api_key=config.OPENAI_API_KEY, model_name=config.DEFAULT_MODEL)
