# fetcher.py  – URL → HTML through an ordered chain of retrieval strategies
#
#   normal hosts:    direct → CORS relay → reader proxy
#   JS-heavy hosts:  reader proxy → direct → CORS relay
#
# Each strategy is retried (backoff, constant pause) before the chain moves on.
# Only exhaustion of the whole chain raises.

import logging
import urllib.parse
from typing import Callable, List, Tuple

import backoff
import curl_cffi.requests

from config import Config
from errors import EmptyContent, FetchFailure, StrategyFailed
from helpers import HEADERS, host_matches, hostname_of

logger = logging.getLogger(__name__)

# --- Silence backoff library's own logging ---
logging.getLogger("backoff").addHandler(logging.NullHandler())
logging.getLogger("backoff").propagate = False

RETRYABLE = (StrategyFailed, curl_cffi.requests.RequestsError)


class HTMLFetcher:
    """Resilient page retrieval. One instance can serve concurrent requests."""

    def __init__(
        self,
        timeout: float = Config.FETCH_TIMEOUT,
        attempts: int = Config.FETCH_ATTEMPTS,
        pause: float = Config.FETCH_PAUSE,
        js_heavy_hosts=Config.JS_HEAVY_HOSTS,
        relay_url: str = Config.RELAY_URL,
        reader_url: str = Config.READER_URL,
        http_get: Callable = None,
    ):
        self.timeout = timeout
        self.attempts = max(1, attempts)
        self.pause = pause
        self.js_heavy_hosts = tuple(js_heavy_hosts)
        self.relay_url = relay_url
        self.reader_url = reader_url
        self._http_get = http_get

    # ── one HTTP round-trip ────────────────────────────────────────────────
    def _get(self, url: str, headers=None, label: str = "HTTP") -> str:
        http_get = self._http_get or curl_cffi.requests.get
        r = http_get(
            url,
            headers=headers or {},
            impersonate="chrome124",
            timeout=self.timeout,
        )
        if r.status_code >= 400:
            raise StrategyFailed(f"{label} {r.status_code}")
        text = r.text or ""
        if not text.strip():
            raise StrategyFailed(f"{label} empty body", empty=True)
        return text

    # ── strategies ─────────────────────────────────────────────────────────
    def direct(self, url: str) -> str:
        """Plain request with a desktop Chrome fingerprint."""
        return self._get(url, HEADERS, "HTTP")

    def relay(self, url: str) -> str:
        """Public CORS-unblocking relay; returns the raw upstream body."""
        return self._get(self.relay_url + urllib.parse.quote(url, safe=""), label="RELAY")

    def reader(self, url: str) -> str:
        """Read-optimized proxy. Cleaner text on JS pages, but may drop metadata."""
        bare = url.split("://", 1)[-1]
        return self._get(self.reader_url + bare, label="READER")

    def get_text(self, url: str) -> str:
        """Single unretried GET, used for the UPC database JSON answer."""
        return self._get(url, label="TEXT")

    # ── ordering ───────────────────────────────────────────────────────────
    def prefers_reader(self, url: str) -> bool:
        host = hostname_of(url)
        return any(host_matches(host, pattern) for pattern in self.js_heavy_hosts)

    def strategies_for(self, url: str, avoid_reader: bool = False) -> List[Tuple[str, Callable]]:
        if not avoid_reader and self.prefers_reader(url):
            return [("reader", self.reader), ("direct", self.direct), ("relay", self.relay)]
        chain = [("direct", self.direct), ("relay", self.relay)]
        if not avoid_reader:
            chain.append(("reader", self.reader))
        return chain

    def _with_retry(self, fn: Callable) -> Callable:
        return backoff.on_exception(
            backoff.constant,
            RETRYABLE,
            max_tries=self.attempts,
            interval=self.pause,
            jitter=None,
        )(fn)

    def fetch(self, url: str, avoid_reader: bool = False) -> str:
        """
        Return page HTML from the first strategy that succeeds.

        Raises:
            EmptyContent: if the last failure was an empty body
            FetchFailure: if every strategy failed
        """
        last_err = None
        for name, strategy in self.strategies_for(url, avoid_reader):
            try:
                html = self._with_retry(strategy)(url)
                logger.info(f"Fetched {url} via {name} ({len(html)} chars)")
                return html
            except Exception as e:
                logger.warning(f"Strategy {name} failed for {url}: {e}")
                last_err = e

        if last_err is None:
            raise FetchFailure(f"All fetch strategies failed for {url}")
        if getattr(last_err, "empty", False):
            raise EmptyContent(f"Empty response from target (or proxy): {url}", last_err)
        raise FetchFailure(f"All fetch strategies failed for {url}: {last_err}", last_err)
