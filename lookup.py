# lookup.py  – barcode (UPC/EAN/ISBN) → market prices
#
#   lookup()          heuristic prices from public search pages (POST /upc)
#   lookup_product()  UPC database record + first Newegg search card (POST /lookup)

import json
import logging
import math
import re
import urllib.parse
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from config import Config
from errors import ValidationFailure
from fetcher import HTMLFetcher
from helpers import abs_url
from money import all_amounts, first_amount, plausible

logger = logging.getLogger(__name__)

CODE_RE = re.compile(r"^[0-9Xx\-]{8,14}$")

NOTE = "Heuristic prices from public pages; for reliable Amazon/eBay fees use official APIs."


def clean_code(code) -> str:
    """Strip whitespace and check the code looks like a UPC/EAN/ISBN."""
    cleaned = re.sub(r"\s+", "", str(code or ""))
    if not CODE_RE.match(cleaned):
        raise ValidationFailure("Invalid or missing barcode")
    return cleaned


class BarcodeLookup:
    def __init__(
        self,
        fetcher: HTMLFetcher = None,
        search_url: str = Config.SEARCH_URL,
        low: float = Config.PRICE_MIN,
        high: float = Config.PRICE_MAX,
        upc_db_url: str = Config.UPC_DB_URL,
        newegg_search_url: str = Config.NEWEGG_SEARCH_URL,
    ):
        self.fetcher = fetcher or HTMLFetcher()
        self.search_url = search_url
        self.low = low
        self.high = high
        self.upc_db_url = upc_db_url
        self.newegg_search_url = newegg_search_url

    # ── search-page price scan ─────────────────────────────────────────────
    def source_urls(self, code: str) -> Dict[str, str]:
        quoted = urllib.parse.quote_plus
        query = (
            "site:walmart.ca OR site:walmart.com OR site:indigo.ca "
            f'OR site:ebay.ca OR site:ebay.com "{code}"'
        )
        return {
            "search": self.search_url + quoted(query),
            "walmart": f"https://www.walmart.ca/search?q={quoted(code)}",
            "ebay": f"https://www.ebay.ca/sch/i.html?_nkw={quoted(code)}",
        }

    def _prices_from(self, name: str, url: str, code: str) -> List[float]:
        try:
            text = self.fetcher.reader(url)
        except Exception as e:
            logger.warning(f"Barcode source {name} failed for {code}: {e}")
            return []
        text = text.replace(code, " ")
        return plausible(all_amounts(text), self.low, self.high)

    def lookup(self, code) -> Dict[str, Any]:
        """
        Returns {code, bestPrice?, samplePrices, note}.  A source that fails
        contributes nothing; only a bad code raises (ValidationFailure).
        """
        code = clean_code(code)
        sources = self.source_urls(code)
        with ThreadPoolExecutor(max_workers=len(sources)) as pool:
            batches = list(pool.map(
                lambda item: self._prices_from(item[0], item[1], code), sources.items()
            ))

        prices = sorted(p for batch in batches for p in batch)
        out = {
            "code": code,
            "samplePrices": prices[:10],
            "note": NOTE,
        }
        if prices:
            out["bestPrice"] = prices[0]
        return out

    # ── product record ─────────────────────────────────────────────────────
    def _upc_record(self, upc: str) -> Optional[Dict[str, Any]]:
        """First item of the UPC database answer: title, brand, lowest recorded price."""
        try:
            data = json.loads(self.fetcher.get_text(self.upc_db_url + urllib.parse.quote(upc)))
        except Exception as e:
            logger.warning(f"UPC database lookup failed for {upc}: {e}")
            return None
        if not isinstance(data, dict) or data.get("code") != "OK":
            return None
        items = data.get("items")
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            return None

        item = items[0]
        lowest = item.get("lowest_recorded_price")
        if isinstance(lowest, bool) or not isinstance(lowest, (int, float)):
            lowest = None
        return {"title": item.get("title"), "brand": item.get("brand"), "lowestPrice": lowest}

    def _newegg_match(self, upc: str) -> Optional[Dict[str, Any]]:
        url = self.newegg_search_url + urllib.parse.quote(upc)
        try:
            # search cards are plain markup; the reader proxy would flatten them
            html = self.fetcher.fetch(url, avoid_reader=True)
        except Exception as e:
            logger.warning(f"Newegg search failed for {upc}: {e}")
            return None

        soup = BeautifulSoup(html, "lxml")
        link = soup.select_one("a.item-title")
        price_tag = soup.select_one(".price-current")
        price = first_amount(price_tag.get_text().strip()) if price_tag else math.nan

        match = {
            "source": "Newegg",
            "url": (abs_url(url, link.get("href")) if link else None) or url,
        }
        if math.isfinite(price):
            match["price"] = price
        return match

    def lookup_product(self, upc) -> Dict[str, Any]:
        """
        Returns {title?, brand?, lowestPrice?, matches}.  The database price wins;
        otherwise the Newegg card's price.  Only a missing code raises.
        """
        upc = re.sub(r"\s+", "", str(upc or ""))
        if not upc:
            raise ValidationFailure("Missing UPC/EAN")

        with ThreadPoolExecutor(max_workers=2) as pool:
            record_job = pool.submit(self._upc_record, upc)
            match_job = pool.submit(self._newegg_match, upc)
            record = record_job.result() or {}
            match = match_job.result()

        lowest = record.get("lowestPrice")
        if lowest is None and match:
            lowest = match.get("price")
        out = {
            "title": record.get("title"),
            "brand": record.get("brand"),
            "lowestPrice": lowest,
            "matches": [match] if match else [],
        }
        return {k: v for k, v in out.items() if v is not None}
