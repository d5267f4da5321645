"""
Language-model collaborator backed by Groq (async client).
Failures are mapped onto three signals the pipeline routes on:
overload (retry once on the alternate model), network (local fallback), generic error.
"""
import logging
from typing import Optional

import groq
from groq import AsyncGroq

from .. import config
from ..errors import LLMError, LLMOverloadedError, LLMUnavailableError

logger = logging.getLogger(__name__)

OVERLOAD_STATUS_CODES = {429, 503, 529}


class GroqLanguageModel:
    """complete(prompt) -> text, with Groq exceptions translated to pipeline errors."""

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        fallback_model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.model = model or config.groq_model()
        self.fallback_model = fallback_model or config.groq_fallback_model()
        self._client = AsyncGroq(
            api_key=api_key,
            timeout=timeout if timeout is not None else config.llm_timeout_seconds(),
            max_retries=0,
        )

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0,
        max_tokens: int = 1024,
    ) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        try:
            response = await self._client.chat.completions.create(
                model=model or self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except groq.APIConnectionError as exc:
            # includes APITimeoutError
            raise LLMUnavailableError(f"language model unreachable: {exc}") from exc
        except groq.RateLimitError as exc:
            raise LLMOverloadedError(f"language model rate limited: {exc}") from exc
        except groq.APIStatusError as exc:
            if exc.status_code in OVERLOAD_STATUS_CODES or "overloaded" in str(exc).lower():
                raise LLMOverloadedError(f"language model overloaded: {exc}") from exc
            raise LLMError(f"language model error ({exc.status_code}): {exc}") from exc
        except groq.GroqError as exc:
            raise LLMError(f"language model error: {exc}") from exc
        return (response.choices[0].message.content or "").strip()


async def complete_with_model_switch(llm, prompt: str, system: Optional[str] = None, **kwargs) -> str:
    """
    One call; on an overload signal switch to the alternate model and retry exactly once.
    A second overload (or any other error) propagates to the caller's fallback.
    """
    try:
        return await llm.complete(prompt, system=system, **kwargs)
    except LLMOverloadedError as exc:
        alternate = getattr(llm, "fallback_model", None)
        logger.warning("llm_client: overloaded model=%s retry_model=%s error=%s",
                       getattr(llm, "model", "N/A"), alternate or "N/A", exc)
        return await llm.complete(prompt, system=system, model=alternate, **kwargs)


def build_language_model():
    """GroqLanguageModel when GROQ_API_KEY is set, else None (deterministic fallbacks only)."""
    api_key = config.groq_api_key()
    if not api_key:
        logger.info("llm_client: GROQ_API_KEY not set; running without a language model")
        return None
    return GroqLanguageModel(api_key)
