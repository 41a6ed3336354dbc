from abc import ABC, abstractmethod

from models.research import SearchResult


class BaseTextGenerator(ABC):
    """
    Abstract base class for text completion providers.
    The pipeline only depends on this contract, never on a concrete SDK.
    """

    provider_name: str = "unknown"
    model_name: str | None = None

    @abstractmethod
    async def complete(self, system_prompt: str, user_prompt: str, temperature: float = 0.7) -> str:
        """
        Get a completion for a system/user prompt pair.

        Args:
            system_prompt: Instructions for the model
            user_prompt: The request itself
            temperature: Controls randomness

        Returns:
            The generated text (never empty)

        Raises:
            GenerationError: On transport failure, rate-limit rejection or empty/invalid response
        """


class BaseFetcher(ABC):
    """
    Abstract base class for web search and page-content retrieval.
    """

    @abstractmethod
    async def search(self, query: str) -> list[SearchResult]:
        """
        Run a web search.

        Raises:
            SearchError: On transport or parse failure
        """

    @abstractmethod
    async def scrape(self, url: str) -> str:
        """
        Retrieve the readable text content of a page.

        Raises:
            ScrapeError: On timeout, navigation failure or empty extraction
        """

    async def close(self) -> None:
        """Release any held resources. Default implementation does nothing."""
        return None
