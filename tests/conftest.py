import pytest

from analyzer import Analyzer
from cache import ResultCache
from errors import FetchFailure
from extractors import default_registry
from helpers import HostRateLimiter


class FakeResponse:
    def __init__(self, status_code=200, text=""):
        self.status_code = status_code
        self.text = text


class FakeGet:
    """Stands in for curl_cffi.requests.get; routes by URL prefix."""

    def __init__(self, routes):
        self.routes = routes          # prefix → FakeResponse | Exception | callable
        self.calls = []

    def __call__(self, url, **kwargs):
        self.calls.append(url)
        for prefix, outcome in self.routes.items():
            if url.startswith(prefix):
                if isinstance(outcome, Exception):
                    raise outcome
                if callable(outcome):
                    return outcome(url)
                return outcome
        return FakeResponse(404, "")


class FakeFetcher:
    """Fetcher double for the analyzer: fixed HTML per URL, counts calls."""

    reader_url = "https://reader.test/"

    def __init__(self, pages=None, error=None, reader_text=""):
        self.pages = pages or {}
        self.error = error
        self.reader_text = reader_text
        self.fetch_calls = []
        self.reader_calls = []
        self.text_calls = []

    def fetch(self, url, avoid_reader=False):
        self.fetch_calls.append((url, avoid_reader))
        if self.error is not None:
            raise self.error
        if url not in self.pages:
            raise FetchFailure(f"All fetch strategies failed for {url}")
        return self.pages[url]

    def get_text(self, url):
        self.text_calls.append(url)
        if url not in self.pages:
            raise FetchFailure(f"TEXT 404 for {url}")
        return self.pages[url]

    def reader(self, url):
        self.reader_calls.append(url)
        if isinstance(self.reader_text, Exception):
            raise self.reader_text
        return self.reader_text


class FakeSecondary:
    def __init__(self, price=None):
        self.price = price
        self.calls = []

    def lookup(self, identifier):
        self.calls.append(identifier)
        return self.price


BOOK_URL = "https://books.toscrape.example/product/1"
BOOK_HTML = """
<html>
  <head><title>A Light in the Attic | Books to Scrape</title></head>
  <body>
    <h1>A Light in the Attic</h1>
    <img src="/media/cache/attic.jpg">
    <p class="price_color">£51.77</p>
    <p class="instock availability">In stock</p>
  </body>
</html>
"""


@pytest.fixture
def book_fetcher():
    return FakeFetcher({BOOK_URL: BOOK_HTML})


@pytest.fixture
def make_analyzer():
    def _make(fetcher, secondary=None, cache=None):
        return Analyzer(
            fetcher=fetcher,
            registry=default_registry(),
            cache=cache if cache is not None else ResultCache(max_size=10, ttl=60),
            limiter=HostRateLimiter(min_gap=0),
            secondary=secondary if secondary is not None else FakeSecondary(),
        )
    return _make
