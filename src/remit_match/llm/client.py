"""LLM transport for the company-name and summary fallbacks.

Features:
- Ollama chat integration (localhost, LAN, or remote)
- Optional auth header for proxied deployments
- Concurrency limiting via semaphore

The model is chosen per call; callers read it from configuration and pass
it in explicitly.

Privacy constraints:
- Never log prompts or raw payment notes at INFO level
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from ..config import LLMConfig

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """LLM request failed (transport, HTTP status, or empty slot)."""

    pass


class LLMClient(ABC):
    """Narrow completion interface used by the pipeline."""

    @abstractmethod
    def complete(
        self,
        prompt: str,
        model: str | None = None,
        system_prompt: str | None = None,
    ) -> str:
        """Return the model's text reply.

        Raises:
            LLMError: If the request fails.
        """
        pass


class LLMConcurrencyLimiter:
    """Semaphore-based concurrency limiter for LLM requests.

    Prevents overwhelming the Ollama server with too many concurrent requests.
    Thread-safe for synchronous usage.
    """

    def __init__(self, max_concurrent: int = 2) -> None:
        self._semaphore = threading.Semaphore(max_concurrent)
        self._active_count = 0
        self._lock = threading.Lock()

    def acquire(self, timeout: float | None = None) -> bool:
        """Acquire a slot for an LLM request.

        Args:
            timeout: Maximum time to wait (None = blocking)

        Returns:
            True if acquired, False if timeout
        """
        acquired = self._semaphore.acquire(blocking=True, timeout=timeout)
        if acquired:
            with self._lock:
                self._active_count += 1
        return acquired

    def release(self) -> None:
        """Release a slot after request completes."""
        with self._lock:
            self._active_count -= 1
        self._semaphore.release()

    @property
    def active_requests(self) -> int:
        """Current number of active LLM requests."""
        with self._lock:
            return self._active_count


class OllamaClient(LLMClient):
    """Ollama /api/chat client returning natural text (no JSON format)."""

    def __init__(self, config: LLMConfig) -> None:
        """Initialize the client.

        Args:
            config: LLM configuration section.
        """
        self.llm_config = config

        # Support formats: "Bearer token" or "Custom-Header: value"
        headers = {}
        if config.auth_header:
            if ":" in config.auth_header:
                key, value = config.auth_header.split(":", 1)
                headers[key.strip()] = value.strip()
            else:
                headers["Authorization"] = config.auth_header

        self._client = httpx.Client(
            timeout=httpx.Timeout(
                connect=10.0,
                read=float(config.timeout_seconds),
                write=30.0,
                pool=10.0,
            ),
            headers=headers,
        )
        self._limiter = LLMConcurrencyLimiter(max_concurrent=config.max_concurrent)

    @property
    def active_requests(self) -> int:
        """Current number of active LLM requests."""
        return self._limiter.active_requests

    def complete(
        self,
        prompt: str,
        model: str | None = None,
        system_prompt: str | None = None,
    ) -> str:
        """Call Ollama for a text completion.

        Args:
            prompt: User message.
            model: Model name; defaults to the configured model.
            system_prompt: Optional system message.

        Returns:
            Reply content (may be empty).

        Raises:
            LLMError: On timeout, HTTP error, or connection failure.
        """
        model = model or self.llm_config.model

        if not self._limiter.acquire(timeout=self.llm_config.timeout_seconds):
            raise LLMError(
                f"Timed out waiting for LLM slot "
                f"(max={self.llm_config.max_concurrent}, active={self._limiter.active_requests})"
            )

        try:
            url = f"{self.llm_config.ollama_url.rstrip('/')}/api/chat"
            messages = []
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
            messages.append({"role": "user", "content": prompt})
            payload = {
                "model": model,
                "messages": messages,
                "stream": False,
            }

            logger.debug("Calling Ollama model %s at %s", model, url)

            response = self._client.post(url, json=payload)
            response.raise_for_status()

            data = response.json()
            if not isinstance(data, dict):
                raise LLMError(f"Ollama returned unexpected {type(data).__name__} body")
            message = data.get("message") or {}
            if not isinstance(message, dict):
                raise LLMError(f"Ollama returned unexpected message {message!r}")
            content = message.get("content") or ""

            logger.debug("Ollama %s returned %d chars", model, len(content))
            return content

        except httpx.TimeoutException as e:
            raise LLMError(
                f"Ollama request timed out after {self.llm_config.timeout_seconds}s"
            ) from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"Ollama API error {e.response.status_code} for model '{model}'"
            ) from e
        except httpx.RequestError as e:
            raise LLMError(f"Ollama request failed: {e}") from e
        except ValueError as e:
            raise LLMError(f"Ollama returned invalid JSON: {e}") from e
        finally:
            # Always release the concurrency slot
            self._limiter.release()

    def close(self) -> None:
        """Close HTTP client."""
        self._client.close()

    def __enter__(self) -> OllamaClient:
        """Enter context manager."""
        return self

    def __exit__(self, *args) -> None:
        """Exit context manager."""
        self.close()
