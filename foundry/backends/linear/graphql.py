"""Blocking GraphQL client for the Linear API with retry and backoff."""

from __future__ import annotations

import logging
import random
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, Optional

import requests

from ... import __version__
from ...config import LinearConfig
from ...errors import InvalidInputError, RateLimitedError, UpstreamError

logger = logging.getLogger("foundry.backends.linear.graphql")

USER_AGENT = f"foundry-mcp-linear/{__version__}"


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Seconds to wait from a ``Retry-After`` header (delta-seconds or HTTP date)."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


class LinearGraphQLClient:
    """POSTs GraphQL documents to Linear.

    Transport failures, HTTP 5xx and HTTP 429 are retried with exponential
    backoff; 429 honours ``Retry-After``. GraphQL ``errors`` and other 4xx
    responses fail immediately.

    A transport failure or 5xx may hide a mutation that did land. Callers
    pass ``recover`` to look the result up before the request is re-sent; a
    non-None return is used as the response data.
    """

    def __init__(self, config: LinearConfig, session: Optional[requests.Session] = None) -> None:
        if not config.api_token:
            raise InvalidInputError(
                "LINEAR_API_TOKEN",
                "must be set to use the linear backend",
                "Linear API token is not configured",
            )
        self.config = config
        self.endpoint = config.endpoint
        self.session = session or requests.Session()
        self.headers = {
            "Authorization": f"Bearer {config.api_token}",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }

    def execute(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        recover: Optional[Callable[[], Optional[Dict[str, Any]]]] = None,
    ) -> Dict[str, Any]:
        """Run ``query`` and return its ``data`` object."""
        attempt = 0
        while True:
            try:
                response = self.session.post(
                    self.endpoint,
                    json={"query": query, "variables": variables or {}},
                    headers=self.headers,
                    timeout=self.config.timeout_secs,
                )
            except requests.RequestException as exc:
                if attempt >= self.config.max_retries:
                    raise UpstreamError(f"Linear API network error: {exc}") from exc
                logger.warning(f"Linear request failed ({exc}); retry {attempt + 1}/{self.config.max_retries}")
                self._sleep(self._backoff(attempt))
                attempt += 1
                recovered = recover() if recover is not None else None
                if recovered is not None:
                    return recovered
                continue

            status = response.status_code
            if status == 429:
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
                if attempt >= self.config.max_retries:
                    raise RateLimitedError(retry_after)
                delay = retry_after if retry_after is not None else self._backoff(attempt)
                logger.warning(f"Linear rate limit hit; waiting {delay:.2f}s")
                self._sleep(min(delay, self.config.max_backoff))
                attempt += 1
                continue
            if status >= 500:
                if attempt >= self.config.max_retries:
                    raise UpstreamError(f"Linear API error: HTTP {status}")
                logger.warning(f"Linear returned HTTP {status}; retry {attempt + 1}/{self.config.max_retries}")
                self._sleep(self._backoff(attempt))
                attempt += 1
                recovered = recover() if recover is not None else None
                if recovered is not None:
                    return recovered
                continue
            if status in (401, 403):
                raise UpstreamError(
                    f"Linear API rejected the credentials (HTTP {status})",
                    next_actions=["Check LINEAR_API_TOKEN and its workspace permissions"],
                )
            if status >= 400:
                raise UpstreamError(f"Linear API error: HTTP {status} {response.text}")

            try:
                payload = response.json()
            except ValueError as exc:
                raise UpstreamError(f"Linear API returned invalid JSON: {exc}") from exc
            errors = payload.get("errors")
            if errors:
                messages = "; ".join(str(err.get("message", err)) for err in errors)
                raise UpstreamError(f"Linear GraphQL error: {messages}", errors=errors)
            data = payload.get("data")
            if data is None:
                raise UpstreamError("Linear API response has no data")
            return data

    def _backoff(self, attempt: int) -> float:
        base = self.config.initial_backoff * (self.config.backoff_multiplier ** attempt)
        spread = base * self.config.jitter
        return min(self.config.max_backoff, max(0.0, base + random.uniform(-spread, spread)))

    def _sleep(self, delay: float) -> None:
        time.sleep(delay)
