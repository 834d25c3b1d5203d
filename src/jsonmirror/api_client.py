from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping, Optional

import httpx

from .models import HttpConfig

LOGGER = logging.getLogger("jsonmirror.api")


class ApiClientError(Exception):
    """Base exception for JSON source errors."""


class ResourceNotFoundError(ApiClientError):
    """Raised when a requested document does not exist."""


class JsonSourceClient:
    """HTTP client with retry and backoff logic for fetching JSON documents."""

    def __init__(
        self,
        config: Optional[HttpConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config or HttpConfig()
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.Client] = None
        self._headers = {"Accept": "application/json"}

    def __enter__(self) -> "JsonSourceClient":
        self._client = httpx.Client(
            timeout=self._config.timeout,
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def fetch(self, url: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Return the decoded JSON document at ``url``."""
        if self._client is None:
            raise ApiClientError("HTTP client is not ready; use it as a context manager")

        max_attempts = max(1, self._config.max_retries + 1)
        base_backoff = max(self._config.backoff_factor, 0.0) or 1.0
        backoff_ceiling = (
            self._config.backoff_max
            if self._config.backoff_max and self._config.backoff_max > 0
            else float("inf")
        )
        sleep_time = base_backoff

        attempt = 0
        while attempt < max_attempts:
            attempt += 1
            try:
                LOGGER.debug("Requesting %s (attempt %s/%s)", url, attempt, max_attempts)
                response = self._client.get(url, headers=self._headers, params=dict(params or {}))
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                if status_code == 404:
                    LOGGER.warning("Resource not found at %s", url)
                    raise ResourceNotFoundError(f"{url} returned 404") from exc

                retryable_status = status_code >= 500 or status_code in {408, 429}
                if not self._should_retry(attempt, max_attempts, retryable_status):
                    LOGGER.error(
                        "HTTP %s for %s; response preview: %s",
                        status_code,
                        url,
                        exc.response.text[:500],
                    )
                    raise ApiClientError(f"HTTP {status_code} for {url}") from exc
                wait_time = min(sleep_time, backoff_ceiling)
                LOGGER.warning(
                    "HTTP %s for %s (attempt %s/%s). Retrying in %.1fs",
                    status_code,
                    url,
                    attempt,
                    max_attempts,
                    wait_time,
                )
                self._sleep(wait_time)
                sleep_time = self._next_backoff(sleep_time, base_backoff, backoff_ceiling)
            except httpx.RequestError as exc:
                if not self._should_retry(attempt, max_attempts, True):
                    raise ApiClientError(f"Failed to fetch {url}: {exc}") from exc
                wait_time = min(sleep_time, backoff_ceiling)
                LOGGER.warning(
                    "Network error for %s (attempt %s/%s): %s. Retrying in %.1fs",
                    url,
                    attempt,
                    max_attempts,
                    exc,
                    wait_time,
                )
                self._sleep(wait_time)
                sleep_time = self._next_backoff(sleep_time, base_backoff, backoff_ceiling)
            except ValueError as exc:
                raise ApiClientError(f"{url} did not return valid JSON") from exc

        raise ApiClientError(f"Failed to fetch {url} after {max_attempts} attempts")

    @staticmethod
    def _should_retry(attempt: int, max_attempts: int, retryable: bool) -> bool:
        return retryable and attempt < max_attempts

    @staticmethod
    def _next_backoff(current: float, base: float, ceiling: float) -> float:
        next_value = max(current, base) * 2
        if ceiling > 0:
            next_value = min(next_value, ceiling)
        return max(next_value, base)
