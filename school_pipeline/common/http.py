import logging
import random
import time
from typing import Callable, Optional

import requests

logger = logging.getLogger(__name__)

# Shared defaults
DEFAULT_UAS: list[str] = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
]
ACCEPT_LANGUAGES = [
    "de-DE,de;q=0.9,en;q=0.8",
    "de-DE,de;q=0.9",
]
ACCEPT_HEADERS = [
    "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
]
RETRY_STATUSES = (429, 502, 503, 504)


class HttpFetchError(RuntimeError):
    def __init__(self, url: str, attempts: int, cause: Exception | None = None):
        super().__init__(f"Failed to fetch {url} after {attempts} attempts: {cause}")
        self.url = url
        self.attempts = attempts
        self.cause = cause


def build_headers(
    user_agent: str, *, header_randomize: bool, accept_json: bool = False
) -> dict[str, str]:
    headers = {"User-Agent": user_agent}
    if accept_json:
        headers["Accept"] = "application/json, text/plain, */*"
    elif header_randomize:
        headers["Accept-Language"] = random.choice(ACCEPT_LANGUAGES)
        headers["Accept"] = random.choice(ACCEPT_HEADERS)
    return headers


def fetch_html(
    url: str,
    *,
    timeout: float,
    retries: int,
    backoff: float,
    user_agents: Optional[list[str]] = None,
    header_randomize: bool = True,
    session: Optional[requests.Session] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """GET ``url`` and return the body, retrying transient failures with backoff.

    Raises HttpFetchError once all attempts are used up.
    """
    session = session or requests.Session()
    ua_pool = user_agents or DEFAULT_UAS
    attempts = max(1, retries)
    last_err: Exception | None = None

    for attempt in range(1, attempts + 1):
        try:
            headers = build_headers(ua_pool[0], header_randomize=header_randomize)
            logger.debug("GET %s [attempt %d]", url, attempt)
            r = session.get(url, timeout=timeout, headers=headers)
            if r.status_code in RETRY_STATUSES:
                raise requests.HTTPError(f"HTTP {r.status_code}")
            r.raise_for_status()
            return r.text
        except requests.RequestException as e:
            last_err = e
            if attempt >= attempts:
                break
            sleep_s = (backoff ** (attempt - 1)) + random.uniform(0.2, 0.6)
            logger.warning(
                "Attempt %d failed for %s: %s -> sleep %.2fs", attempt, url, e, sleep_s
            )
            sleep(sleep_s)
    raise HttpFetchError(url, attempts, last_err)
