"""LLM service for the Groq OpenAI-compatible chat completions API."""
import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence

import openai
from openai import AsyncOpenAI

from carevibe.core.config import settings
from carevibe.core.logging import logger


RETRYABLE_STATUS_CODES = {429, 503}
RETRYABLE_MESSAGE_HINTS = (
    "over capacity",
    "temporarily unavailable",
    "model",
    "try again",
)


class LLMServiceError(Exception):
    """A failed completion request, with the HTTP status when there was one."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        model: Optional[str] = None,
        transient: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.model = model
        # Network failures and timeouts
        self.transient = transient

    @property
    def retryable(self) -> bool:
        """Whether the next candidate model should be tried.

        Status codes and free-text hints are both honoured; a message that
        merely mentions "model" counts as retryable.
        """
        if self.transient or self.status_code in RETRYABLE_STATUS_CODES:
            return True
        lowered = (self.message or "").lower()
        return any(hint in lowered for hint in RETRYABLE_MESSAGE_HINTS)

    def __str__(self) -> str:
        if self.status_code:
            return f"{self.message} (status {self.status_code})"
        return self.message


class LLMNotConfiguredError(LLMServiceError):
    """Raised when no API key is configured."""


def _error_message(error: openai.APIStatusError) -> str:
    """Prefer the provider's own message over the client's "Error code: ..." text."""
    body = error.body
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    if isinstance(body, str) and body:
        return body
    return error.message or f"HTTP {error.status_code}"


def strip_code_fences(text: str) -> str:
    """Remove ```json fences some models wrap around JSON replies."""
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


class LLMService:
    """Async client for chat completions with model fallback."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.llm.base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.llm.api_key
        self.timeout = timeout or settings.llm.timeout_seconds
        self._client: Optional[AsyncOpenAI] = None
        self._client_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> AsyncOpenAI:
        # The connection pool belongs to the loop that opened it; each asyncio.run gets its own
        loop = asyncio.get_running_loop()
        if self._client is None or self._client_loop is not loop:
            # Retries are disabled; complete_with_fallback moves to the next model instead
            self._client = AsyncOpenAI(
                base_url=self.base_url,
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=0,
            )
            self._client_loop = loop
            logger.info(f"[LLM] Client initialized: {self.base_url}")
        return self._client

    async def close(self) -> None:
        """Close the cached client. Call from the loop that used it."""
        if self._client is not None and self._client_loop is asyncio.get_running_loop():
            await self._client.close()
        self._client = None
        self._client_loop = None

    async def complete(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float = 0.2,
        max_tokens: int = 180,
        json_mode: bool = False,
        timeout: Optional[float] = None,
    ) -> str:
        """Send one chat completion request and return the reply text.

        Raises:
            LLMServiceError: when the request fails or the reply is malformed.
        """
        if not self.configured:
            raise LLMNotConfiguredError("GROQ_API_KEY is not set", model=model)

        options: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "timeout": timeout or self.timeout,
        }
        if json_mode:
            options["response_format"] = {"type": "json_object"}

        try:
            resp = await self.client.chat.completions.create(**options)
        except openai.APITimeoutError:
            logger.warning(f"[LLM] Request to {model} timed out")
            raise LLMServiceError("Request timed out", model=model, transient=True)
        except openai.APIConnectionError as e:
            raise LLMServiceError(f"Connection error: {e}", model=model, transient=True)
        except openai.APIStatusError as e:
            raise LLMServiceError(_error_message(e), status_code=e.status_code, model=model)
        except Exception as e:
            logger.error(f"[LLM] Request to {model} failed: {e}")
            raise LLMServiceError(f"LLM service unavailable: {e}", model=model, transient=True)

        try:
            content = resp.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise LLMServiceError(f"Invalid API response format: {e}", model=model)
        return (content or "").strip()

    async def complete_json(
        self,
        system_prompt: str,
        user_content: str,
        max_tokens: int = 150,
        model: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Single temperature-0 JSON request for fallback heuristics.

        Returns None on any failure; a failed request and an unparseable
        reply both mean "no result" to the caller.
        """
        model = model or settings.llm.utility_model
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ]
        try:
            text = await self.complete(
                messages,
                model=model,
                temperature=0,
                max_tokens=max_tokens,
                json_mode=True,
                timeout=settings.llm.fallback_timeout_seconds,
            )
        except LLMServiceError as e:
            logger.warning(f"[LLM] JSON request failed: {e}")
            return None

        try:
            result = json.loads(strip_code_fences(text) or "{}")
        except json.JSONDecodeError as e:
            logger.warning(f"[LLM] Unparseable JSON reply: {e}")
            return None
        if not isinstance(result, dict):
            logger.warning("[LLM] JSON reply is not an object")
            return None
        return result

    async def complete_with_fallback(
        self,
        messages: List[Dict[str, str]],
        models: Optional[Sequence[str]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, str]:
        """Try candidate models in priority order until one answers.

        Moves to the next model on retryable errors and on empty replies, stops
        at the first non-retryable error and re-raises the last error when the
        candidates are exhausted.

        Returns:
            Dict with "model" and "content".
        """
        models = list(models or settings.llm.candidate_models)
        temperature = settings.llm.temperature if temperature is None else temperature
        max_tokens = max_tokens or settings.llm.max_tokens

        last_error: Optional[LLMServiceError] = None
        for model in models:
            try:
                content = await self.complete(
                    messages, model=model, temperature=temperature, max_tokens=max_tokens
                )
            except LLMNotConfiguredError:
                raise
            except LLMServiceError as e:
                last_error = e
                logger.error(f"[LLM] Error for model {model}: {e.status_code} {e.message}")
                if not e.retryable:
                    break
                continue

            if not content:
                logger.warning(f"[LLM] Empty response for model {model}")
                last_error = LLMServiceError("Empty response", model=model)
                continue
            return {"model": model, "content": content}

        raise last_error or LLMServiceError("No candidate models configured")

    async def ping(self, models: Optional[Sequence[str]] = None) -> Dict[str, str]:
        """Connectivity probe used by the CLI."""
        messages = [
            {"role": "system", "content": "You are a simple status probe confirming API connectivity."},
            {"role": "user", "content": "Reply with the word CONNECTED."},
        ]
        return await self.complete_with_fallback(messages, models=models, max_tokens=32)


llm_service = LLMService()
