import os
from pathlib import Path

from dotenv import load_dotenv

from orchestrator.content_generator import GenerationSettings
from orchestrator.research_coordinator import ResearchSettings
from orchestrator.retry_executor import RetryPolicy
from utils.logger import get_logger

logger = get_logger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Configuration management for the research pipeline."""

    def __init__(self, env_path: Path | None = None):
        """Initialize configuration with environment variables."""
        env_path = env_path or Path(__file__).parent.parent / ".env"
        if env_path.exists():
            load_dotenv(dotenv_path=env_path)

        # API configuration
        self.OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
        self.TAVILY_API_KEY = os.getenv("TAVILY_API_KEY")
        self.DEFAULT_MODEL = os.getenv("DEFAULT_MODEL", "gpt-4o-mini")

        # Fetch politeness, retries and caching
        self.RATE_LIMIT_MIN_DELAY_S = float(os.getenv("RATE_LIMIT_MIN_DELAY_S", "1.0"))
        self.MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
        self.RETRY_BACKOFF_BASE = float(os.getenv("RETRY_BACKOFF_BASE", "2"))
        self.RETRY_DELAY_UNIT_S = float(os.getenv("RETRY_DELAY_UNIT_S", "1.0"))
        self.CACHE_ENABLED = _env_bool("CACHE_ENABLED", True)
        self.RESEARCH_CACHE_TTL_SECONDS = int(os.getenv("RESEARCH_CACHE_TTL_SECONDS", str(24 * 60 * 60)))

        # Research run shape
        self.MAX_CONCURRENT_FETCHES = int(os.getenv("MAX_CONCURRENT_FETCHES", "5"))
        self.MAX_RESULTS_PER_QUERY = int(os.getenv("MAX_RESULTS_PER_QUERY", "5"))
        self.ENABLE_GAP_ANALYSIS = _env_bool("ENABLE_GAP_ANALYSIS", True)

        # Document generation
        self.GENERATION_TEMPERATURE = float(os.getenv("GENERATION_TEMPERATURE", "0.7"))
        self.EXPAND_SECTIONS = _env_bool("EXPAND_SECTIONS", True)
        self.POLISH_ARTICLE = _env_bool("POLISH_ARTICLE", False)
        self.MAX_CONCURRENT_SECTIONS = int(os.getenv("MAX_CONCURRENT_SECTIONS", "3"))

    def validate(self) -> bool:
        """
        Validate that required keys are present and numeric settings are sane.

        Returns:
            bool: True if configuration is valid, False otherwise
        """
        ok = True
        if not self.OPENAI_API_KEY:
            logger.error("OPENAI_API_KEY is not set. Please set it in the .env file.")
            ok = False
        if not self.TAVILY_API_KEY:
            logger.error("TAVILY_API_KEY is not set. Please set it in the .env file.")
            ok = False
        if self.MAX_RETRIES < 0:
            logger.error(f"MAX_RETRIES must be >= 0, got {self.MAX_RETRIES}")
            ok = False
        if self.RETRY_BACKOFF_BASE < 1:
            logger.error(f"RETRY_BACKOFF_BASE must be >= 1, got {self.RETRY_BACKOFF_BASE}")
            ok = False
        if self.RETRY_DELAY_UNIT_S < 0:
            logger.error(f"RETRY_DELAY_UNIT_S must be >= 0, got {self.RETRY_DELAY_UNIT_S}")
            ok = False
        if self.MAX_CONCURRENT_FETCHES < 1:
            logger.error(f"MAX_CONCURRENT_FETCHES must be >= 1, got {self.MAX_CONCURRENT_FETCHES}")
            ok = False
        return ok

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.MAX_RETRIES,
            backoff_base=self.RETRY_BACKOFF_BASE,
            delay_unit_s=self.RETRY_DELAY_UNIT_S,
        )

    def research_settings(self) -> ResearchSettings:
        return ResearchSettings(
            max_concurrent_fetches=self.MAX_CONCURRENT_FETCHES,
            max_results_per_query=self.MAX_RESULTS_PER_QUERY,
            cache_ttl_s=self.RESEARCH_CACHE_TTL_SECONDS,
            planning_temperature=self.GENERATION_TEMPERATURE,
        )

    def generation_settings(self) -> GenerationSettings:
        return GenerationSettings(
            temperature=self.GENERATION_TEMPERATURE,
            expand_sections=self.EXPAND_SECTIONS,
            polish=self.POLISH_ARTICLE,
            max_concurrent_sections=self.MAX_CONCURRENT_SECTIONS,
        )

    def get_model_info(self) -> str:
        return f"OpenAI ({self.DEFAULT_MODEL})"
