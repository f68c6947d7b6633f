# src/omniflow/llm/client.py

from __future__ import annotations

import logging
import time
from typing import Any, List, Optional

import httpx
import openai
from openai import AsyncOpenAI

from ..errors import ServiceError

logger = logging.getLogger(__name__)


def _is_auth_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    return exc.__class__.__name__ in {"UnauthorizedError"}


def _is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"TooManyRequestsError"}


def _is_connection_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.APIConnectionError, httpx.TimeoutException)):
        return True
    return exc.__class__.__name__ in {"Timeout", "ConnectTimeout", "ReadTimeout", "WriteTimeout"}


def _is_not_found_error(exc: Exception) -> bool:
    # OpenAI-compatible SDK uses NotFoundError for HTTP 404 (unknown model)
    return isinstance(exc, openai.NotFoundError)


def friendly_llm_error_message(err: Exception) -> str:
    msg = str(err).strip() or "LLM error."
    if "API key is not set" in msg:
        return "LLM is not configured (missing API key). Set OMNIFLOW_OPENAI_API_KEY in .env."
    if "model list is empty" in msg:
        return "LLM is not configured (no models). Set OMNIFLOW_LLM_MODELS in .env."
    return msg


def _first_text(completion: Any) -> str:
    """Take the first choice's text; the core does not interpret structure beyond that."""
    try:
        content = completion.choices[0].message.content
    except (AttributeError, IndexError, TypeError):
        return ""
    return (content or "").strip()


class OpenAICompletionClient:
    """
    Async text-completion client for any OpenAI-compatible endpoint.

    Behavior:
    - Tries models in the configured order (OMNIFLOW_LLM_MODELS).
    - 404 (model not available) -> cool the model down for an hour, try next.
    - Rate limit / network issues -> try next.
    - Auth issues -> fail fast (no retries across models).
    - Every failure surfaces as ServiceError.
    """

    BAD_MODEL_COOLDOWN_SECONDS = 3600.0

    def __init__(self, settings, *, client: AsyncOpenAI | None = None) -> None:
        api_key = getattr(settings, "openai_api_key", None)
        base_url = str(getattr(settings, "openai_base_url", "") or "").strip()
        self._models: List[str] = [
            m.strip() for m in list(getattr(settings, "llm_models", []) or []) if m and m.strip()
        ]
        self._bad_models: dict[str, float] = {}  # model -> retry_at (monotonic)

        if client is not None:
            self._client = client
            return

        if not api_key or not str(api_key).strip():
            raise ServiceError("LLM API key is not set. Set OMNIFLOW_OPENAI_API_KEY in your .env.")
        if not base_url:
            raise ServiceError("LLM base URL is not set. Set OMNIFLOW_OPENAI_BASE_URL in your .env.")

        connect_s = float(getattr(settings, "llm_connect_timeout_seconds", 5.0))
        read_s = float(getattr(settings, "llm_read_timeout_seconds", 60.0))

        # Automatic retries are disabled to allow quick fallback across models.
        self._client = AsyncOpenAI(
            base_url=base_url,
            api_key=str(api_key),
            timeout=httpx.Timeout(connect=connect_s, read=read_s, write=10.0, pool=connect_s),
            max_retries=0,
        )

    @property
    def models(self) -> list[str]:
        return list(self._models)

    async def complete(
            self,
            system_prompt: str,
            user_prompt: str,
            *,
            max_tokens: int,
            temperature: float,
    ) -> str:
        if not self._models:
            raise ServiceError("LLM model list is empty. Set OMNIFLOW_LLM_MODELS in your .env.")

        last_error: Optional[Exception] = None
        now = time.monotonic()

        for model in self._models:
            retry_at = self._bad_models.get(model)
            if retry_at is not None and retry_at > now:
                continue

            logger.info("LLM: trying model=%s max_tokens=%d", model, max_tokens)
            t0 = time.monotonic()
            try:
                completion = await self._client.chat.completions.create(
                    model=model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    max_tokens=int(max_tokens),
                    temperature=float(temperature),
                )
            except Exception as e:
                last_error = e

                if _is_auth_error(e):
                    raise ServiceError(
                        "LLM authentication failed. Check your API key (OMNIFLOW_OPENAI_API_KEY)."
                    ) from e

                if _is_not_found_error(e):
                    self._bad_models[model] = time.monotonic() + self.BAD_MODEL_COOLDOWN_SECONDS
                    logger.info("LLM: model not available (404): %s", model)
                elif _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                elif _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                else:
                    logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)
                continue

            text = _first_text(completion)
            if text:
                logger.info("LLM: completed with model=%s (%.2fs)", model, time.monotonic() - t0)
                return text

            last_error = ServiceError(f"Model returned no content: {model}")

        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise ServiceError("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise ServiceError("LLM network/timeout error. Try again later or change models.") from last_error
            raise ServiceError("All LLM models failed.") from last_error

        raise ServiceError("All LLM models failed.")
