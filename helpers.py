# helpers.py  – shared utilities (headers, hostname helpers, polite per-host gap)

import logging
import random
import re
import time
import urllib.parse
from threading import Lock
from typing import Dict, Optional

logger = logging.getLogger(__name__)

# ────────────────────────────────── HEADERS ──────────────────────────────────
UA_DESKTOP = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.%d.%d Safari/537.36"
)

HEADERS = {
    "User-Agent": UA_DESKTOP % (
        random.randint(4200, 4299),
        random.randint(60, 99)
    ),
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;"
        "q=0.9,image/avif,image/webp,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Sec-Fetch-Dest":  "document",
    "Sec-Fetch-Mode":  "navigate",
    "Sec-Fetch-Site":  "none",
    "Sec-Fetch-User":  "?1",
}

# ──────────────────────────────── URL helpers ────────────────────────────────
def hostname_of(url: str) -> str:
    """Lower-cased hostname with any leading "www." removed; "" when unparseable."""
    try:
        host = urllib.parse.urlparse(url).hostname or ""
    except ValueError:
        return ""
    host = host.lower()
    return host[4:] if host.startswith("www.") else host


def host_matches(host: str, domain: str) -> bool:
    """
    Exact domain or any subdomain of it.  A trailing ".*" on ``domain``
    stands for any TLD ("ebay.*" matches ebay.com and ebay.co.uk).
    """
    host, domain = host.lower(), domain.lower()
    if domain.endswith(".*"):
        pattern = r"(^|\.)" + re.escape(domain[:-2]) + r"\.[a-z.]+$"
        return re.search(pattern, host) is not None
    return host == domain or host.endswith("." + domain)


def abs_url(base: str, maybe_rel: Optional[str]) -> Optional[str]:
    """Resolve ``maybe_rel`` against the page URL; None stays None."""
    if not maybe_rel:
        return None
    maybe_rel = maybe_rel.strip()
    if not maybe_rel:
        return None
    try:
        return urllib.parse.urljoin(base, maybe_rel)
    except ValueError:
        return None

# ───────────────────────────── per-host rate limit ───────────────────────────
class HostRateLimiter:
    """Throttle outbound HTTP so we never hammer one host too fast."""

    def __init__(self, min_gap: float = 0.6, per_host: Dict[str, float] = None):
        self.min_gap = min_gap
        self.per_host = {h.lower(): s for h, s in (per_host or {}).items()}   # domain → seconds
        self._lock = Lock()
        self._last_hit = {}                      # host → last (reserved) hit

    def wait(self, host: str) -> float:
        """Block until ``host`` may be hit again. Returns the seconds slept."""
        host = host.lower()
        min_delay = self.gap_for(host)
        with self._lock:
            now = time.monotonic()
            last = self._last_hit.get(host)
            wait_for = 0.0 if last is None else max(0.0, min_delay - (now - last))
            self._last_hit[host] = now + wait_for

        if wait_for:
            logger.debug(f"Rate limit: sleeping {wait_for:.2f}s before {host}")
            time.sleep(wait_for)
        return wait_for

    def gap_for(self, host: str) -> float:
        """Per-domain gap (subdomains included), else the default."""
        for domain, seconds in self.per_host.items():
            if host_matches(host, domain):
                return seconds
        return self.min_gap

    def reset(self) -> None:
        with self._lock:
            self._last_hit.clear()
