import logging

from groq import (
    APIConnectionError,
    APIStatusError,
    AsyncGroq,
    NotFoundError,
    RateLimitError,
)

from pitch_coach.config import settings
from pitch_coach.errors import GenerationError

logger = logging.getLogger(__name__)


class GroqClient:
    """Async wrapper around the official Groq SDK with model fallback."""

    def __init__(self, api_key: str | None = None, models: list[str] | None = None) -> None:
        self._models = list(models if models is not None else settings.analysis_models)
        self._client = AsyncGroq(api_key=api_key or settings.groq_api_key)

    async def close(self) -> None:
        """Release the underlying httpx session."""
        await self._client.close()

    async def chat(
        self,
        messages: list[dict],
        *,
        model: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        kwargs: dict = {
            "model": model,
            "messages": messages,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        resp = await self._client.chat.completions.create(**kwargs)
        return resp.choices[0].message.content or ""

    async def chat_with_fallback(
        self,
        messages: list[dict],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> tuple[str, str]:
        """Try each fallback model in order; return ``(content, model_used)``.

        A rate-limited (quota) or unknown model moves on to the next one.  Any
        other API error stops immediately.  When every model is exhausted the
        last upstream error is raised as :class:`GenerationError`.
        """
        last_error: Exception | None = None
        for model in self._models:
            logger.info("Trying model %s", model)
            try:
                content = await self.chat(
                    messages, model=model, temperature=temperature, max_tokens=max_tokens
                )
                return content, model
            except (RateLimitError, NotFoundError) as e:
                logger.warning("Model %s unavailable (%s), trying next", model, e.status_code)
                last_error = e
            except APIStatusError as e:
                raise GenerationError(
                    f"Groq API error ({model}): {e.status_code} - {e.message}"
                ) from e
            except APIConnectionError as e:
                raise GenerationError(f"Could not reach Groq: {e}") from e

        if last_error is None:
            raise GenerationError("No generation models configured")
        raise GenerationError(f"All generation models failed: {last_error}") from last_error
