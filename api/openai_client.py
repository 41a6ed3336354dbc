import openai

from models.errors import GenerationError
from utils.logger import get_logger

from .base_client import BaseTextGenerator

logger = get_logger(__name__)


class OpenAITextGenerator(BaseTextGenerator):
    """
    Text generator backed by the OpenAI chat completions API.
    SDK exceptions are normalized into GenerationError reasons.
    """

    provider_name = "openai"

    def __init__(
        self,
        api_key: str,
        model_name: str = "gpt-4o-mini",
        max_tokens: int = 2000,
        timeout_s: float = 60.0,
        client: "openai.AsyncOpenAI | None" = None,
    ):
        """
        Initialize the OpenAI text generator.

        Args:
            api_key: The OpenAI API key
            model_name: The model to use for every completion
            max_tokens: Maximum number of tokens to generate per call
            timeout_s: Per-request timeout in seconds
            client: Optional pre-built AsyncOpenAI client
        """
        self.client = client or openai.AsyncOpenAI(api_key=api_key, timeout=timeout_s)
        self.model_name = model_name
        self.max_tokens = max_tokens

    async def complete(self, system_prompt: str, user_prompt: str, temperature: float = 0.7) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=self.max_tokens,
            )
        except openai.APITimeoutError as e:
            raise GenerationError("OpenAI request timed out", reason="timeout", cause=e) from e
        except openai.RateLimitError as e:
            raise GenerationError("OpenAI rate limit exceeded", reason="rate_limit", cause=e) from e
        except openai.AuthenticationError as e:
            raise GenerationError("OpenAI authentication failed", reason="auth", cause=e) from e
        except openai.BadRequestError as e:
            raise GenerationError("OpenAI rejected the request", reason="bad_request", cause=e) from e
        except openai.APIError as e:
            raise GenerationError(f"OpenAI API error: {e}", reason="provider_error", cause=e) from e

        text = ""
        if response.choices:
            text = (response.choices[0].message.content or "").strip()
        if not text:
            raise GenerationError("OpenAI returned an empty completion", reason="empty_response")

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.debug(
                "Completion received",
                extra={
                    "extra_fields": {
                        "model": self.model_name,
                        "prompt_tokens": usage.prompt_tokens,
                        "completion_tokens": usage.completion_tokens,
                    }
                },
            )
        return text
