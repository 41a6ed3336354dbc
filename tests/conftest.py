import pytest
from dotenv import load_dotenv

from orchestrator.retry_executor import RetryExecutor, RetryPolicy
from tools.web.cache import ContentCache
from tools.web.rate_limiter import RateLimiter

from fakes import FakeClock

# Load environment variables from .env file for tests
load_dotenv()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fast_retry(clock):
    """Retry executor with the default policy whose backoff only advances the fake clock."""
    return RetryExecutor(RetryPolicy(max_retries=3), sleep=clock.sleep)


@pytest.fixture
def rate_limiter(clock):
    return RateLimiter(min_delay_s=1.0, clock=clock, sleep=clock.sleep)


@pytest.fixture
def cache(clock):
    return ContentCache(clock=clock)


@pytest.fixture
def mock_env(monkeypatch):
    """Fixture to mock environment variables for testing."""
    env_vars = {
        "OPENAI_API_KEY": "test-openai-key",
        "TAVILY_API_KEY": "test-tavily-key",
        "DEFAULT_MODEL": "gpt-4o-mini",
        "MAX_RETRIES": "2",
        "RATE_LIMIT_MIN_DELAY_S": "0.5",
        "ENABLE_GAP_ANALYSIS": "false",
        "POLISH_ARTICLE": "true",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars
