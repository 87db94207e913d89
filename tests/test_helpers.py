import threading

import pytest

import helpers
from helpers import HostRateLimiter, abs_url, host_matches, hostname_of


@pytest.mark.parametrize("url, host", [
    ("https://www.Walmart.ca/ip/123", "walmart.ca"),
    ("http://m.ebay.com/itm/1", "m.ebay.com"),
    ("not a url", ""),
    ("", ""),
])
def test_hostname_of(url, host):
    assert hostname_of(url) == host


@pytest.mark.parametrize("host, domain, expected", [
    ("newegg.com", "newegg.com", True),
    ("shop.newegg.com", "newegg.com", True),
    ("notnewegg.com", "newegg.com", False),
    ("newegg.com.evil.example", "newegg.com", False),
    ("ebay.co.uk", "ebay.*", True),
    ("m.ebay.de", "ebay.*", True),
    ("myebay.com", "ebay.*", False),
])
def test_host_matches(host, domain, expected):
    assert host_matches(host, domain) is expected


def test_abs_url():
    page = "https://shop.example/p/item?id=1"
    assert abs_url(page, "/img/a.jpg") == "https://shop.example/img/a.jpg"
    assert abs_url(page, "b.jpg") == "https://shop.example/p/b.jpg"
    assert abs_url(page, "https://cdn.example/c.jpg") == "https://cdn.example/c.jpg"
    assert abs_url(page, "  ") is None
    assert abs_url(page, None) is None


class Clock:
    def __init__(self, now=100.0):
        self.now = now
        self.slept = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.slept.append(seconds)


@pytest.fixture
def clock(monkeypatch):
    c = Clock()
    monkeypatch.setattr(helpers.time, "monotonic", c.monotonic)
    monkeypatch.setattr(helpers.time, "sleep", c.sleep)
    return c


def test_rate_limiter_spaces_hits_per_host(clock):
    limiter = HostRateLimiter(min_gap=1.0)
    assert limiter.wait("shop.example") == 0.0
    assert limiter.wait("shop.example") == pytest.approx(1.0)
    # the second caller reserved t=101, so a third at t=100.5 waits until 102
    clock.now = 100.5
    assert limiter.wait("shop.example") == pytest.approx(1.5)
    assert limiter.wait("other.example") == 0.0
    assert clock.slept == [pytest.approx(1.0), pytest.approx(1.5)]


def test_rate_limiter_per_host_override_and_reset(clock):
    limiter = HostRateLimiter(min_gap=1.0, per_host={"Slow.example": 5})
    assert limiter.gap_for("api.slow.example") == 5
    assert limiter.gap_for("fast.example") == 1.0
    limiter.wait("slow.example")
    assert limiter.wait("SLOW.example") == pytest.approx(5.0)
    limiter.reset()
    assert limiter.wait("slow.example") == 0.0


def test_rate_limiter_gap_already_elapsed(clock):
    limiter = HostRateLimiter(min_gap=1.0)
    limiter.wait("shop.example")
    clock.now = 110.0
    assert limiter.wait("shop.example") == 0.0
    assert clock.slept == []


def test_concurrent_waits_on_one_host_are_spaced(monkeypatch):
    # frozen clock: every caller must queue behind the slot the previous one reserved
    monkeypatch.setattr(helpers.time, "monotonic", lambda: 500.0)
    monkeypatch.setattr(helpers.time, "sleep", lambda seconds: None)
    limiter = HostRateLimiter(min_gap=0.5)
    start = threading.Barrier(12)
    waits = []
    lock = threading.Lock()

    def worker():
        start.wait()
        waited = limiter.wait("shop.example")
        with lock:
            waits.append(waited)

    threads = [threading.Thread(target=worker) for _ in range(12)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    waits.sort()
    assert waits == [pytest.approx(0.5 * i) for i in range(12)]
    gaps = [b - a for a, b in zip(waits, waits[1:])]
    assert all(g >= 0.5 - 1e-9 for g in gaps)
