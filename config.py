# config.py  – runtime settings (env vars, optional .env beside this file)

import os
from typing import Any, Dict

from dotenv import load_dotenv

script_dir = os.path.dirname(os.path.abspath(__file__))
load_dotenv(os.path.join(script_dir, ".env"))


def _csv(value: str):
    return tuple(part.strip().lower() for part in value.split(",") if part.strip())


def _gaps(value: str) -> Dict[str, float]:
    """``amazon.com=3,walmart.com=2`` → host → seconds map."""
    gaps = {}
    for host, _, seconds in (part.partition("=") for part in _csv(value)):
        if host and seconds:
            gaps[host.strip()] = float(seconds)
    return gaps


class Config:
    """Application configuration"""

    # Server
    HOST = os.getenv("HOST", "127.0.0.1")
    PORT = int(os.getenv("PORT", 5000))
    DEBUG = os.getenv("DEBUG", "False").lower() == "true"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # Fetching
    FETCH_TIMEOUT = float(os.getenv("FETCH_TIMEOUT", 15))
    FETCH_ATTEMPTS = int(os.getenv("FETCH_ATTEMPTS", 2))
    FETCH_PAUSE = float(os.getenv("FETCH_PAUSE", 0.4))
    RELAY_URL = os.getenv("RELAY_URL", "https://api.allorigins.win/raw?url=")
    READER_URL = os.getenv("READER_URL", "https://r.jina.ai/http/")
    SEARCH_URL = os.getenv("SEARCH_URL", "https://www.google.com/search?q=")
    UPC_DB_URL = os.getenv("UPC_DB_URL", "https://api.upcitemdb.com/prod/trial/lookup?upc=")
    NEWEGG_SEARCH_URL = os.getenv("NEWEGG_SEARCH_URL", "https://www.newegg.com/p/pl?d=")
    # hosts whose prices live in JS; the reader proxy goes first for these
    JS_HEAVY_HOSTS = _csv(os.getenv(
        "JS_HEAVY_HOSTS", "walmart.com,walmart.ca,indigo.ca,newegg.com,ebay.*"
    ))
    HOST_MIN_GAP = float(os.getenv("HOST_MIN_GAP", 0.6))
    # slower hosts get a longer gap (subdomains included)
    HOST_GAPS = _gaps(os.getenv("HOST_GAPS", "amazon.com=3,walmart.com=2,walmart.ca=2"))

    # Cache
    CACHE_TTL = float(os.getenv("CACHE_TTL", 600))
    CACHE_SIZE = int(os.getenv("CACHE_SIZE", 200))

    # Plausible price bound for free-text scans
    PRICE_MIN = float(os.getenv("PRICE_MIN", 0.5))
    PRICE_MAX = float(os.getenv("PRICE_MAX", 50000))

    @classmethod
    def to_dict(cls) -> Dict[str, Any]:
        """Export configuration as dictionary"""
        return {
            "host": cls.HOST,
            "port": cls.PORT,
            "debug": cls.DEBUG,
            "log_level": cls.LOG_LEVEL,
            "fetch_timeout": cls.FETCH_TIMEOUT,
            "fetch_attempts": cls.FETCH_ATTEMPTS,
            "fetch_pause": cls.FETCH_PAUSE,
            "relay_url": cls.RELAY_URL,
            "reader_url": cls.READER_URL,
            "search_url": cls.SEARCH_URL,
            "upc_db_url": cls.UPC_DB_URL,
            "newegg_search_url": cls.NEWEGG_SEARCH_URL,
            "js_heavy_hosts": list(cls.JS_HEAVY_HOSTS),
            "host_min_gap": cls.HOST_MIN_GAP,
            "host_gaps": dict(cls.HOST_GAPS),
            "cache_ttl": cls.CACHE_TTL,
            "cache_size": cls.CACHE_SIZE,
            "price_min": cls.PRICE_MIN,
            "price_max": cls.PRICE_MAX,
        }
