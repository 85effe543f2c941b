"""Shared HTTP utilities for the phish.net and phish.in clients."""

import time

import requests

from phishstats.config import HTTP_MAX_RETRIES, HTTP_TIMEOUT, USER_AGENT
from phishstats.errors import NotFound, RateLimited, SourceUnavailable


def create_session(user_agent=USER_AGENT):
    """Create a requests.Session with a User-Agent header."""
    s = requests.Session()
    s.headers["User-Agent"] = user_agent
    return s


def api_get_with_retry(session, url, params=None, rate_limit=0.5,
                       max_retries=HTTP_MAX_RETRIES, timeout=HTTP_TIMEOUT,
                       source="api", sleep=time.sleep):
    """Make an API request with rate limiting and retry on 429/5xx.

    Every request carries a bounded timeout.  Failures are translated into
    the phishstats error taxonomy:
      - connection errors / timeouts → SourceUnavailable
      - 404 → NotFound
      - 429 on the final attempt → RateLimited
      - any other non-2xx → SourceUnavailable

    Args:
        session: requests.Session to use
        url: Request URL
        params: Optional query parameters
        rate_limit: Seconds to wait after each successful request
        max_retries: Number of retry attempts before a final raise
        timeout: Per-request timeout in seconds
        source: Name used in error messages ("phish.net", "phish.in")
    """
    for attempt in range(max_retries + 1):
        try:
            resp = session.get(url, params=params, timeout=timeout)
        except requests.RequestException as e:
            if attempt < max_retries:
                wait = 2 ** attempt
                print(f"    {source}: {type(e).__name__}, retrying in {wait}s "
                      f"(attempt {attempt + 1}/{max_retries})")
                sleep(wait)
                continue
            raise SourceUnavailable(source, f"request failed: {e}") from e

        status = resp.status_code
        if status == 404:
            raise NotFound(f"{source}: {url} not found")
        if status == 429 or status >= 500:
            retry_after = _retry_after(resp, attempt)
            if attempt < max_retries:
                print(f"    {source}: HTTP {status}, retrying in {retry_after}s "
                      f"(attempt {attempt + 1}/{max_retries})")
                sleep(retry_after)
                continue
            if status == 429:
                raise RateLimited(source, "rate limited", retry_after=retry_after)
            raise SourceUnavailable(source, f"HTTP {status}", status=status)
        if status >= 400:
            raise SourceUnavailable(source, f"HTTP {status}", status=status)

        try:
            data = resp.json()
        except ValueError as e:
            raise SourceUnavailable(source, f"invalid JSON from {url}") from e
        if rate_limit > 0:
            sleep(rate_limit)
        return data


def _retry_after(resp, attempt):
    try:
        return int(resp.headers.get("Retry-After", 2 ** attempt))
    except (TypeError, ValueError):
        return 2 ** attempt
