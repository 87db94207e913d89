# analyzer.py  – URL + costs → ProfitReport
#
#   validate → cache → per-host gap → fetch → scraper → identifier fallback
#   → manual override → profit math → cache
#
# Retries live in the fetcher only; nothing here retries.

import dataclasses
import logging
import urllib.parse
from typing import Optional

from cache import ResultCache
from config import Config
from errors import AnalysisFailure, EmptyContent, FetchFailure, ValidationFailure
from extractors import ScraperRegistry, default_registry
from fetcher import HTMLFetcher
from helpers import HostRateLimiter, hostname_of
from models import AnalyzeRequest, CostInputs, ProductExtraction, ProfitReport, validate_url
from money import all_amounts, plausible
from profit import compute, format_price

logger = logging.getLogger(__name__)


class IdentifierSearch:
    """
    Secondary price source for pages that hide their price: search-engine
    result text for the identifier, read through the reader proxy, smallest
    plausible amount wins.
    """

    def __init__(
        self,
        fetcher: HTMLFetcher,
        search_url: str = Config.SEARCH_URL,
        low: float = Config.PRICE_MIN,
        high: float = Config.PRICE_MAX,
    ):
        self.fetcher = fetcher
        self.search_url = search_url
        self.low = low
        self.high = high

    def query_url(self, identifier: str) -> str:
        return self.search_url + urllib.parse.quote_plus(f'"{identifier}" price')

    def lookup(self, identifier: str) -> Optional[float]:
        text = self.fetcher.reader(self.query_url(identifier))
        # the identifier's own digits would otherwise read as prices
        text = text.replace(identifier, " ")
        candidates = plausible(all_amounts(text), self.low, self.high)
        return candidates[0] if candidates else None


class Analyzer:
    """Composes fetcher, scraper registry, fallback lookup, profit math and cache."""

    def __init__(
        self,
        fetcher: HTMLFetcher = None,
        registry: ScraperRegistry = None,
        cache: ResultCache = None,
        limiter: HostRateLimiter = None,
        secondary: IdentifierSearch = None,
    ):
        self.fetcher = fetcher or HTMLFetcher()
        self.registry = registry or default_registry()
        self.cache = cache if cache is not None else ResultCache()
        self.limiter = limiter or HostRateLimiter(Config.HOST_MIN_GAP, Config.HOST_GAPS)
        self.secondary = secondary if secondary is not None else IdentifierSearch(self.fetcher)

    def analyze(self, url: str, costs=None, manual_price=None) -> ProfitReport:
        """``costs`` is a CostInputs or an /analyze-style dict; bad values raise AnalysisFailure."""
        try:
            if costs is None:
                costs = CostInputs()
            elif isinstance(costs, dict):
                costs = CostInputs.from_payload(costs)
            request = AnalyzeRequest(url=url, costs=costs, manual_price=manual_price)
        except ValidationFailure as e:
            raise AnalysisFailure(str(e), e)
        return self.analyze_request(request)

    def analyze_request(self, request: AnalyzeRequest) -> ProfitReport:
        """
        Raises:
            AnalysisFailure: bad URL, every fetch strategy failed, or empty page.
                ``cause`` holds the ValidationFailure / FetchFailure / EmptyContent.
        """
        url = request.url
        try:
            validate_url(url)
        except ValidationFailure as e:
            raise AnalysisFailure(str(e), e)

        key = request.cache_key()
        cached = self.cache.get(key, None)
        if cached is not None:
            logger.debug(f"Cache hit for {url}")
            return cached

        scraper = self.registry.find_scraper(url)

        self.limiter.wait(hostname_of(url))
        try:
            html = self.fetcher.fetch(url, avoid_reader=getattr(scraper, "avoid_reader", False))
        except FetchFailure as e:
            raise AnalysisFailure(str(e), e)
        if not html or not html.strip():
            err = EmptyContent(f"Empty response from target (or proxy): {url}")
            raise AnalysisFailure(str(err), err)

        extraction = scraper.scrape(html, url)
        logger.info(f"{url}: scraper={scraper.name} price={extraction.price_num} "
                    f"via {extraction.price_source}")

        if extraction.price_num is None and extraction.identifier and scraper.identifier_fallback:
            extraction = self._identifier_fallback(extraction)

        manual_used = False
        if extraction.price_num is None and request.manual_price is not None:
            extraction = dataclasses.replace(
                extraction, price_num=request.manual_price, price_source="manual"
            )
            manual_used = extraction.price_num is not None

        report = self._report(extraction, request.costs, hostname_of(url), manual_used)
        self.cache.set(key, report)
        return report

    def _identifier_fallback(self, extraction: ProductExtraction) -> ProductExtraction:
        if self.secondary is None:
            return extraction
        ident = extraction.identifier
        reader_host = hostname_of(self.fetcher.reader_url)
        if reader_host:
            self.limiter.wait(reader_host)
        try:
            price = self.secondary.lookup(ident)
        except Exception as e:
            logger.warning(f"Identifier lookup failed for {ident}: {e}")
            return extraction
        if price is None:
            logger.info(f"Identifier lookup found no price for {ident}")
            return extraction
        logger.info(f"Identifier lookup for {ident}: {price}")
        return dataclasses.replace(extraction, price_num=price, price_source="identifier-search")

    @staticmethod
    def _report(extraction: ProductExtraction, costs: CostInputs, site: str,
                manual_used: bool) -> ProfitReport:
        result = compute(extraction.price_num, costs)
        return ProfitReport(
            extraction=extraction,
            price_display=format_price(extraction.price_num),
            site=site or None,
            fees_dollar=result.fees_dollar,
            net_profit=result.net_profit,
            margin_pct=result.margin_pct,
            score=result.score,
            manual_price_used=manual_used,
        )
