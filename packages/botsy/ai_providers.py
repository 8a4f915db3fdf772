"""Generative AI providers with parallel race and sequential retry fallback.

Gemini is the primary provider and Groq the fallback. ``generate`` first
races one attempt of each provider and returns the first successful answer.
If both fail, each provider is retried in turn with exponential backoff.
"""

from __future__ import annotations

import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import requests
import structlog

from .settings import BotsySettings

__all__ = [
    "AIClient",
    "AIMessage",
    "AIResponse",
    "GeminiProvider",
    "GroqProvider",
    "ProviderError",
    "call_with_retry",
]

GEMINI_MODEL = "gemini-2.0-flash"
GEMINI_URL = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    f"{GEMINI_MODEL}:generateContent"
)
GROQ_MODEL = "llama-3.1-8b-instant"
GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"

MAX_RETRIES = 3
INITIAL_DELAY_SECONDS = 0.2

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AIMessage:
    role: str  # system | user | assistant
    content: str


@dataclass(frozen=True)
class AIResponse:
    success: bool
    response: str
    provider: Optional[str] = None


class ProviderError(RuntimeError):
    """A provider call failed; ``retryable`` is False for client errors."""

    def __init__(self, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


def _raise_for_status(name: str, response: requests.Response) -> None:
    if response.ok:
        return
    body = (response.text or "")[:200]
    status = response.status_code
    retryable = not (400 <= status < 500 and status != 429)
    raise ProviderError(f"{name} HTTP {status}: {body}", retryable=retryable)


class GeminiProvider:
    name = "gemini"

    def __init__(
        self,
        api_key: str | None,
        *,
        timeout: float = 30.0,
        http: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.http = http or requests.Session()

    def complete(
        self,
        system_prompt: str,
        messages: Sequence[AIMessage],
        max_tokens: int,
        temperature: float,
    ) -> str:
        if not self.api_key:
            raise ProviderError("GEMINI_API_KEY not configured", retryable=False)
        contents = [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in messages
            if m.role != "system"
        ]
        response = self.http.post(
            GEMINI_URL,
            params={"key": self.api_key},
            json={
                "systemInstruction": {"parts": [{"text": system_prompt}]},
                "contents": contents,
                "generationConfig": {
                    "maxOutputTokens": max_tokens,
                    "temperature": temperature,
                },
            },
            timeout=self.timeout,
        )
        _raise_for_status("Gemini", response)
        data = response.json()
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None
        if not text:
            raise ProviderError("Empty response from Gemini")
        return text


class GroqProvider:
    name = "groq"

    def __init__(
        self,
        api_key: str | None,
        *,
        timeout: float = 30.0,
        http: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.http = http or requests.Session()

    def complete(
        self,
        system_prompt: str,
        messages: Sequence[AIMessage],
        max_tokens: int,
        temperature: float,
    ) -> str:
        if not self.api_key:
            raise ProviderError("GROQ_API_KEY not configured", retryable=False)
        payload_messages = [{"role": "system", "content": system_prompt}]
        payload_messages.extend(
            {"role": m.role, "content": m.content} for m in messages if m.role != "system"
        )
        response = self.http.post(
            GROQ_URL,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "model": GROQ_MODEL,
                "messages": payload_messages,
                "max_tokens": max_tokens,
                "temperature": temperature,
            },
            timeout=self.timeout,
        )
        _raise_for_status("Groq", response)
        data = response.json()
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            text = None
        if not text:
            raise ProviderError("Empty response from Groq")
        return text


def call_with_retry(
    provider,
    system_prompt: str,
    messages: Sequence[AIMessage],
    max_tokens: int,
    temperature: float,
    max_retries: int,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> Optional[str]:
    """Call ``provider`` up to ``max_retries`` times; ``None`` when all fail."""

    last_error = ""
    for attempt in range(1, max_retries + 1):
        try:
            return provider.complete(system_prompt, messages, max_tokens, temperature)
        except ProviderError as exc:
            last_error = str(exc)
            if not exc.retryable:
                logger.info("ai_provider_not_retrying", provider=provider.name, error=last_error)
                return None
        except (requests.RequestException, ValueError) as exc:
            last_error = str(exc)
        if attempt < max_retries:
            delay = INITIAL_DELAY_SECONDS * (2 ** (attempt - 1))
            logger.info(
                "ai_provider_retry",
                provider=provider.name,
                attempt=attempt,
                delay_seconds=delay,
                error=last_error,
            )
            sleep(delay)

    if max_retries > 1:
        logger.warning(
            "ai_provider_exhausted",
            provider=provider.name,
            attempts=max_retries,
            error=last_error,
        )
    return None


class AIClient:
    """Primary/fallback provider pair."""

    def __init__(
        self,
        primary,
        fallback,
        *,
        max_retries: int = MAX_RETRIES,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.providers = (primary, fallback)
        self.max_retries = max_retries
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: BotsySettings) -> AIClient:
        return cls(
            GeminiProvider(settings.gemini_api_key),
            GroqProvider(settings.groq_api_key),
        )

    def _attempt(self, provider, system_prompt, messages, max_tokens, temperature, retries):
        return call_with_retry(
            provider,
            system_prompt,
            messages,
            max_tokens,
            temperature,
            retries,
            sleep=self._sleep,
        )

    def _race(self, system_prompt, messages, max_tokens, temperature) -> AIResponse | None:
        executor = ThreadPoolExecutor(max_workers=len(self.providers))
        try:
            pending = {
                executor.submit(
                    self._attempt, provider, system_prompt, messages, max_tokens, temperature, 1
                ): provider
                for provider in self.providers
            }
            while pending:
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    provider = pending.pop(future)
                    try:
                        text = future.result()
                    except Exception:  # noqa: BLE001 - a crashed attempt loses the race
                        logger.exception("ai_provider_crashed", provider=provider.name)
                        text = None
                    if text:
                        return AIResponse(success=True, response=text, provider=provider.name)
            return None
        finally:
            # The losing call keeps running in its worker thread; its result is ignored.
            executor.shutdown(wait=False, cancel_futures=True)

    def generate(
        self,
        system_prompt: str,
        messages: Sequence[AIMessage],
        *,
        max_tokens: int = 300,
        temperature: float = 0.7,
    ) -> AIResponse:
        winner = self._race(system_prompt, messages, max_tokens, temperature)
        if winner is not None:
            return winner

        logger.info("ai_race_failed_trying_sequential")
        for provider in self.providers:
            text = self._attempt(
                provider, system_prompt, messages, max_tokens, temperature, self.max_retries
            )
            if text:
                logger.info("ai_sequential_success", provider=provider.name)
                return AIResponse(success=True, response=text, provider=provider.name)

        logger.error("ai_all_providers_failed")
        return AIResponse(success=False, response="", provider=None)

    __call__ = generate

