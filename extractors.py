#  ── extractors.py  ── per-site scrapers + generic fallback ─────────────────
#
#  Every scraper answers two questions:
#     matches(url)       → is this my site?
#     scrape(html, url)  → ProductExtraction (missing fields stay None)
#
#  Each field is resolved by an ordered tuple of small "step" functions; the
#  first step that yields a value wins.  A step that blows up is skipped.
import json
import logging
import re
from typing import Callable, Iterable, Optional, Tuple

from bs4 import BeautifulSoup, Comment, Doctype

from config import Config
from helpers import abs_url, host_matches, hostname_of
from models import NO_TITLE, ProductExtraction
from money import all_amounts, as_price, plausible

logger = logging.getLogger(__name__)

PriceHit = Optional[Tuple[float, str]]          # (price, price_source)

ISBN13_RE = re.compile(r"\b97[89]\d{10}\b")
ISBN10_RE = re.compile(r"\b\d{9}[\dX]\b")
ISBN_LABEL_RE = re.compile(r"ISBN(?:-1[03])?\s*:?\s*([0-9][0-9Xx\- ]{8,20})", re.I)
CODE_RUN_RE = re.compile(r"\b\d(?:-?\d){9,}[Xx]?\b")


# ── DOM helpers ──────────────────────────────────────────────────────────────
def _find_first(node, key):
    """Depth-first search for the first occurrence of `key` in nested dict/list."""
    stack = [node]
    while stack:
        n = stack.pop()
        if isinstance(n, dict):
            if key in n:
                return n[key]
            stack.extend(n.values())
        elif isinstance(n, list):
            stack.extend(n)
    return None


def visible_text(soup: BeautifulSoup) -> str:
    """Page text without script/style payloads, whitespace collapsed."""
    parts = []
    for s in soup.find_all(string=True):
        if isinstance(s, (Comment, Doctype)):
            continue
        if s.parent is not None and s.parent.name in ("script", "style", "noscript", "template"):
            continue
        parts.append(s)
    return re.sub(r"\s+", " ", " ".join(parts)).strip()


def first_value(steps: Iterable[Callable], soup: BeautifulSoup):
    """Run ``steps`` in order; return the first truthy result."""
    for step in steps:
        try:
            value = step(soup)
        except Exception as e:
            logger.debug(f"Step {getattr(step, '__name__', step)} failed: {e}")
            continue
        if value:
            return value
    return None


def _named(fn, name):
    fn.__name__ = name
    return fn


def attr_of(selector: str, attr: str = "content"):
    def step(soup):
        tag = soup.select_one(selector)
        value = tag.get(attr) if tag else None
        return value.strip() if isinstance(value, str) and value.strip() else None
    return _named(step, f"attr_of({selector!r}, {attr!r})")


def text_of(selector: str):
    def step(soup):
        tag = soup.select_one(selector)
        return tag.get_text(strip=True) if tag else None
    return _named(step, f"text_of({selector!r})")


def own_text_of(selector: str):
    """Text directly inside the element, ignoring child tags."""
    def step(soup):
        tag = soup.select_one(selector)
        if not tag:
            return None
        return "".join(tag.find_all(string=True, recursive=False)).strip() or None
    return _named(step, f"own_text_of({selector!r})")


OG_TITLE      = attr_of('meta[property="og:title"]')
TWITTER_TITLE = attr_of('meta[name="twitter:title"]')
FIRST_H1      = text_of("h1")
DOC_TITLE     = text_of("title")

OG_IMAGE      = attr_of('meta[property="og:image"]')
TWITTER_IMAGE = attr_of('meta[name="twitter:image"]')
FIRST_IMG     = attr_of("img[src]", "src")


# ── price steps ──────────────────────────────────────────────────────────────
META_PRICE_SELECTORS = (
    'meta[property="product:price:amount"]',
    'meta[property="og:price:amount"]',
    'meta[itemprop="price"]',
    '[itemprop="price"]',
)


def price_from_meta(soup) -> PriceHit:
    """itemprop / product:price:amount / og:price:amount ``content`` attributes."""
    for selector in META_PRICE_SELECTORS:
        for tag in soup.select(selector):
            price = as_price(tag.get("content"))
            if price is not None:
                return price, "metadata"
    return None


def price_from_attr(selector: str, attr: str = "content"):
    def step(soup) -> PriceHit:
        tag = soup.select_one(selector)
        price = as_price(tag.get(attr)) if tag else None
        return (price, "metadata") if price is not None else None
    return _named(step, f"price_from_attr({selector!r})")


def _ld_nodes(soup):
    """Every dict inside every JSON-LD block (top level, lists and @graph)."""
    for tag in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(tag.string or "")
        except ValueError as e:
            logger.debug(f"Bad JSON-LD block: {e}")
            continue
        nodes = data if isinstance(data, list) else [data]
        for node in nodes:
            if not isinstance(node, dict):
                continue
            yield node
            graph = node.get("@graph")
            if isinstance(graph, list):
                yield from (g for g in graph if isinstance(g, dict))


def price_from_json_ld(soup) -> PriceHit:
    """schema.org Product/Offer: offers.price → offers.lowPrice → price."""
    for node in _ld_nodes(soup):
        offers = node.get("offers")
        if isinstance(offers, list):
            offers = offers[0] if offers else None
        if not isinstance(offers, dict):
            offers = {}
        raw = next(
            (v for v in (offers.get("price"), offers.get("lowPrice"), node.get("price")) if v is not None),
            None,
        )
        price = as_price(raw)
        if price is not None:
            return price, "structured-data"
    return None


def price_from_selectors(selectors: Tuple[str, ...]):
    """First element (in selector priority order) whose text holds a price."""
    def step(soup) -> PriceHit:
        for selector in selectors:
            for el in soup.select(selector)[:5]:
                price = as_price(el.get_text().strip())
                if price is not None:
                    return price, "selector"
        return None
    return _named(step, "price_from_selectors")


def price_from_labels(labels: Tuple[str, ...]):
    """Tightest <div> containing a label such as "Our Price"."""
    def step(soup) -> PriceHit:
        for label in labels:
            divs = soup.select(f'div:-soup-contains("{label}")')
            for el in sorted(divs, key=lambda d: len(d.get_text()))[:5]:
                price = as_price(el.get_text().strip())
                if price is not None:
                    return price, "selector"
        return None
    return _named(step, "price_from_labels")


def price_from_page_scan(low: float = Config.PRICE_MIN, high: float = Config.PRICE_MAX):
    """
    Last resort: smallest money token in the visible page text within [low, high].

    Known trade-off: avoids crossed-out MSRPs and shipping estimates that are
    larger than the price, but can pick a small unrelated number instead.
    Results are tagged "page-scan" so callers can treat them as low confidence.
    """
    def step(soup) -> PriceHit:
        # ISBN/UPC digit runs would otherwise leak fragments like "50" or "978"
        text = CODE_RUN_RE.sub(" ", visible_text(soup))
        candidates = plausible(all_amounts(text), low, high)
        return (candidates[0], "page-scan") if candidates else None
    return _named(step, "price_from_page_scan")


def find_isbn(text: str) -> Optional[str]:
    m = ISBN13_RE.search(text) or ISBN10_RE.search(text)
    return m.group(0) if m else None


# ── base capability ──────────────────────────────────────────────────────────
class Scraper:
    """Hostname predicate + HTML extractor. Subclasses mostly just swap steps."""

    name = "base"
    domains: Tuple[str, ...] = ()
    identifier_fallback = False
    avoid_reader = False         # the reader proxy strips the data we parse

    title_steps: Tuple[Callable, ...] = (OG_TITLE, TWITTER_TITLE, FIRST_H1, DOC_TITLE)
    image_steps: Tuple[Callable, ...] = (OG_IMAGE, TWITTER_IMAGE, FIRST_IMG)
    price_steps: Tuple[Callable, ...] = ()

    def matches(self, url: str) -> bool:
        host = hostname_of(url)
        return bool(host) and any(host_matches(host, d) for d in self.domains)

    def identifier(self, soup: BeautifulSoup) -> Optional[str]:
        return None

    def scrape(self, html: str, url: str) -> ProductExtraction:
        soup = BeautifulSoup(html or "", "lxml")

        title = first_value(self.title_steps, soup) or NO_TITLE
        image = abs_url(url, first_value(self.image_steps, soup))
        hit = first_value(self.price_steps, soup)
        price, price_source = hit if hit else (None, None)

        try:
            ident = self.identifier(soup)
        except Exception as e:
            logger.debug(f"{self.name}: identifier lookup failed: {e}")
            ident = None

        extraction = ProductExtraction(
            title=title,
            image=image,
            price_num=price,
            identifier=ident,
            source=self.name,
            price_source=price_source,
        )
        logger.debug(f"{self.name} extracted {extraction}")
        return extraction

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"


class IsbnMixin:
    def identifier(self, soup):
        text = visible_text(soup)
        m = ISBN_LABEL_RE.search(text)
        if m:
            digits = re.sub(r"[\s-]", "", m.group(1)).upper()
            if len(digits) in (10, 13):
                return digits
        return find_isbn(text)


# ── BOOKOUTLET ───────────────────────────────────────────────────────────────
class BookOutletScraper(IsbnMixin, Scraper):
    """
    Bookoutlet hides the price on a lot of pages, so:
      1) metadata → JSON-LD → price containers → "Our Price" labels
      2) whole-page scan capped at 1000 (books are cheap, bundles are not)
      3) ISBN for the search-snippet fallback
    """
    name = "bookoutlet"
    domains = ("bookoutlet.ca",)
    identifier_fallback = True

    title_steps = (FIRST_H1, OG_TITLE, DOC_TITLE)
    image_steps = (OG_IMAGE, FIRST_IMG)
    price_steps = (
        price_from_meta,
        price_from_json_ld,
        price_from_selectors((".product__price", ".current-price", ".sale-price", ".price", ".price_color")),
        price_from_labels(("Our Price", "Price")),
        price_from_page_scan(0.5, 1000),
    )


# ── NEWEGG ───────────────────────────────────────────────────────────────────
class NeweggScraper(Scraper):
    name = "newegg"
    domains = ("newegg.com",)

    title_steps = (OG_TITLE, FIRST_H1, DOC_TITLE)
    image_steps = (OG_IMAGE, attr_of(".product-view-img-original", "src"), FIRST_IMG)
    # "$<strong>299</strong><sup>.99</sup>" reads fine as joined text
    price_steps = (price_from_selectors((".price-current", ".price-current *")),)


# ── EBAY ─────────────────────────────────────────────────────────────────────
class EbayScraper(Scraper):
    name = "ebay"
    domains = (
        "ebay.com", "ebay.ca", "ebay.co.uk", "ebay.de",
        "ebay.fr", "ebay.it", "ebay.es", "ebay.com.au",
    )

    title_steps = (
        own_text_of("#itemTitle"),          # old layout prefixes "Details about"
        text_of("h1.x-item-title__mainTitle"),
        OG_TITLE,
        DOC_TITLE,
    )
    image_steps = (OG_IMAGE, attr_of("#icImg", "src"), FIRST_IMG)
    price_steps = (
        price_from_attr("#prcIsum"),
        price_from_selectors(("#prcIsum", "#mm-saleDscPrc", ".x-price-primary .ux-textspans")),
        price_from_attr("[itemprop=price]"),
        price_from_selectors((".display-price", ".mainPrice")),
    )


# ── WALMART ──────────────────────────────────────────────────────────────────
def _walmart_price(data) -> Optional[float]:
    """Pull priceInfo.currentPrice out of Walmart's __NEXT_DATA__ payload."""
    price_info = _find_first(data, "priceInfo")
    if not isinstance(price_info, dict):
        return None
    current = price_info.get("currentPrice") or {}
    if not isinstance(current, dict):
        return None
    for key in ("price", "priceString"):
        price = as_price(current.get(key))
        if price is not None:
            return price
    return None


def walmart_next_data(soup) -> PriceHit:
    blob = soup.find("script", id="__NEXT_DATA__")
    if not blob or not blob.string:
        return None
    price = _walmart_price(json.loads(blob.string))
    return (price, "embedded-json") if price is not None else None


class WalmartScraper(Scraper):
    name = "walmart"
    domains = ("walmart.com", "walmart.ca")

    title_steps = (OG_TITLE, FIRST_H1, DOC_TITLE)
    image_steps = (OG_IMAGE, FIRST_IMG)
    price_steps = (
        walmart_next_data,
        price_from_meta,
        price_from_selectors(("[data-automation-id*=price]",)),
        price_from_attr(".price-characteristic"),
    )


# ── INDIGO ───────────────────────────────────────────────────────────────────
class IndigoScraper(IsbnMixin, Scraper):
    name = "indigo"
    domains = ("indigo.ca",)
    identifier_fallback = True

    price_steps = (
        price_from_meta,
        price_from_selectors((
            ".price", ".product__price", ".price__value",
            ".product-price", ".price-current", "[data-testid*=price]",
        )),
        price_from_labels(("Price",)),
    )


# ── AMAZON ───────────────────────────────────────────────────────────────────
def amazon_hidden_input(soup) -> PriceHit:
    """hidden add-to-cart inputs (fastest)"""
    tag = soup.find("input", {"name": re.compile(r"customerVisiblePrice.*\[amount\]")})
    price = as_price(tag.get("value")) if tag else None
    return (price, "metadata") if price is not None else None


class AmazonScraper(Scraper):
    name = "amazon"
    domains = ("amazon.com", "amazon.ca", "amazon.co.uk")

    title_steps = (text_of("#productTitle"), OG_TITLE, DOC_TITLE)
    image_steps = (
        attr_of("#landingImage", "data-old-hires"),
        attr_of("#landingImage", "src"),
        OG_IMAGE,
    )
    price_steps = (
        amazon_hidden_input,
        price_from_selectors((
            "#corePriceDisplay_desktop_feature_div .a-offscreen",
            ".apexPriceToPay .a-offscreen",
            ".a-price .a-offscreen",
            "#priceblock_ourprice",
            "#priceblock_dealprice",
            "#price_inside_buybox",
        )),
        price_from_json_ld,
    )


# ── KOHL'S (productV2JsonData) ───────────────────────────────────────────────
KOHLS_BLOB_RE = re.compile(r"var\s+productV2JsonData\s*=\s*(\{.*?\});", re.DOTALL)
KOHLS_YOUR_PRICE_RE = re.compile(r'"yourPrice"\s*:\s*\{\s*"minPrice"\s*:\s*([\d.]+)')


def kohls_blob(soup) -> PriceHit:
    """
    yourPriceInfo.yourPrice.minPrice → salePrice → regularPrice.minPrice
    out of the productV2JsonData script, falling back to a bare regex.
    """
    for script in soup.find_all("script"):
        body = script.string or ""
        if "productV2JsonData" not in body:
            continue
        m = KOHLS_BLOB_RE.search(body)
        if m:
            try:
                block = json.loads(m.group(1)).get("price", {})
                price = (block.get("yourPriceInfo", {}).get("yourPrice", {}).get("minPrice")
                         or block.get("salePrice")
                         or block.get("regularPrice", {}).get("minPrice"))
                price = as_price(price)
                if price is not None:
                    return price, "embedded-json"
            except (ValueError, AttributeError) as e:
                logger.debug(f"kohls: productV2JsonData unreadable: {e}")
        m2 = KOHLS_YOUR_PRICE_RE.search(body)
        if m2:
            return float(m2.group(1)), "embedded-json"
    return None


class KohlsScraper(Scraper):
    name = "kohls"
    domains = ("kohls.com",)
    avoid_reader = True

    price_steps = (kohls_blob, price_from_json_ld)


# ── GENERIC (always last) ────────────────────────────────────────────────────
GENERIC_PRICE_SELECTORS = (
    ".price_color", ".price-current", ".product-price", ".current-price",
    ".sale-price", ".our-price", ".price",
)


class GenericScraper(IsbnMixin, Scraper):
    """Heuristics for arbitrary markup; matches every URL."""

    name = "generic"
    identifier_fallback = True

    price_steps = (
        price_from_meta,
        price_from_json_ld,
        price_from_selectors(GENERIC_PRICE_SELECTORS),
        price_from_labels(("List price", "Price")),
        price_from_page_scan(),
    )

    def matches(self, url: str) -> bool:
        return True


# ── registry ─────────────────────────────────────────────────────────────────
class ScraperRegistry:
    """
    Site scrapers in priority order.  The fallback is held apart from the
    list, so nothing registered later can ever be shadowed by it.
    """

    def __init__(self, scrapers: Iterable[Scraper] = (), fallback: Scraper = None):
        self._scrapers = list(scrapers)
        self.fallback = fallback or GenericScraper()

    def register(self, scraper: Scraper) -> None:
        self._scrapers.append(scraper)

    @property
    def scrapers(self) -> Tuple[Scraper, ...]:
        return tuple(self._scrapers) + (self.fallback,)

    def find_scraper(self, url: str) -> Scraper:
        for scraper in self._scrapers:
            if scraper.matches(url):
                return scraper
        return self.fallback


def default_registry() -> ScraperRegistry:
    return ScraperRegistry([
        BookOutletScraper(),
        NeweggScraper(),
        EbayScraper(),
        WalmartScraper(),
        IndigoScraper(),
        AmazonScraper(),
        KohlsScraper(),
    ])


REGISTRY = default_registry()


def find_scraper(url: str) -> Scraper:
    return REGISTRY.find_scraper(url)
