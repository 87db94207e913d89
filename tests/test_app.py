import json

import pytest

from app import create_app
from conftest import BOOK_URL, FakeFetcher
from lookup import BarcodeLookup


@pytest.fixture
def client_for(make_analyzer):
    def _client(fetcher, analyzer=None, barcode=None):
        app = create_app(analyzer or make_analyzer(fetcher), barcode)
        app.config["TESTING"] = True
        return app.test_client()
    return _client


def test_analyze_returns_report(client_for, book_fetcher):
    resp = client_for(book_fetcher).post("/analyze", json={"url": BOOK_URL, "cost": 5})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["title"] == "A Light in the Attic"
    assert body["priceNum"] == pytest.approx(51.77)
    assert body["price"] == "$51.77"
    assert body["priceDisplay"] == "$51.77"
    assert body["netProfit"] == pytest.approx(46.77)
    assert body["score"] == 90
    assert body["lowConfidence"] is False
    assert body["manualPriceUsed"] is False


def test_analyze_without_price_omits_profit_fields(client_for):
    url = "https://shop.example/mystery"
    resp = client_for(FakeFetcher({url: "<h1>Mystery box</h1>"})).post("/analyze", json={"url": url})
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["price"] == "N/A"
    assert body["score"] == 0
    assert "priceNum" not in body
    assert "netProfit" not in body


@pytest.mark.parametrize("payload, message", [
    ({}, "Missing URL"),
    ({"url": ""}, "Missing URL"),
    ({"url": BOOK_URL, "cost": "lots"}, "cost must be a number"),
    ({"url": BOOK_URL, "cost": True}, "cost must be a number"),
    ({"url": BOOK_URL, "feesPct": -3}, "feesPct must be a non-negative number"),
])
def test_analyze_rejects_bad_input(client_for, book_fetcher, payload, message):
    resp = client_for(book_fetcher).post("/analyze", json=payload)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == message
    assert book_fetcher.fetch_calls == []


def test_analyze_rejects_non_http_url(client_for, book_fetcher):
    resp = client_for(book_fetcher).post("/analyze", json={"url": "javascript:alert(1)"})
    assert resp.status_code == 400


def test_analyze_non_json_body(client_for, book_fetcher):
    resp = client_for(book_fetcher).post("/analyze", data="url=x", content_type="text/plain")
    assert resp.status_code == 400


@pytest.mark.parametrize("path", ["/analyze", "/upc", "/lookup"])
@pytest.mark.parametrize("method", ["GET", "OPTIONS", "PUT", "DELETE", "PATCH"])
def test_only_post_is_accepted(client_for, book_fetcher, path, method):
    resp = client_for(book_fetcher).open(path, method=method)
    assert resp.status_code == 405
    assert resp.get_json() == {"error": "Method not allowed"}
    assert book_fetcher.fetch_calls == []


def test_unreachable_target_is_502(client_for):
    resp = client_for(FakeFetcher()).post("/analyze", json={"url": "https://shop.example/gone"})
    assert resp.status_code == 502
    assert "error" in resp.get_json()


def test_empty_target_is_502(client_for):
    url = "https://shop.example/blank"
    resp = client_for(FakeFetcher({url: ""})).post("/analyze", json={"url": url})
    assert resp.status_code == 502


def test_unexpected_error_is_500(client_for, book_fetcher):
    class Exploding:
        fetcher = book_fetcher

        def analyze_request(self, request):
            raise RuntimeError("boom")

    resp = client_for(book_fetcher, analyzer=Exploding()).post("/analyze", json={"url": BOOK_URL})
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Parse failed", "detail": "boom"}


def test_upc_rejects_bad_code(client_for, book_fetcher):
    client = client_for(book_fetcher)
    assert client.post("/upc", json={"code": "abc"}).status_code == 400
    assert client.post("/upc", json={}).status_code == 400
    assert client.post("/upc", json=["0123456789012"]).status_code == 400


def test_upc_reports_best_price(client_for):
    fetcher = FakeFetcher(reader_text="Item 0123456789012 now $19.99, was $24.00")
    barcode = BarcodeLookup(fetcher, search_url="https://search.test/?q=")
    resp = client_for(fetcher, barcode=barcode).post("/upc", json={"code": "0123456789012"})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["code"] == "0123456789012"
    assert body["bestPrice"] == pytest.approx(19.99)
    assert body["samplePrices"][0] == pytest.approx(19.99)


def test_lookup_requires_upc(client_for, book_fetcher):
    client = client_for(book_fetcher)
    for body in ({}, {"upc": ""}, ["012345678905"]):
        resp = client.post("/lookup", json=body)
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Missing UPC/EAN"}


def test_lookup_returns_product_record(client_for):
    fetcher = FakeFetcher({
        "https://upc.test/?upc=012345678905": json.dumps({
            "code": "OK", "items": [{"title": "Desk Lamp", "brand": "Lumo"}],
        }),
        "https://newegg.test/?d=012345678905": (
            '<a class="item-title" href="https://newegg.test/p/1">Lamp</a>'
            '<li class="price-current">$24.50</li>'
        ),
    })
    barcode = BarcodeLookup(fetcher, upc_db_url="https://upc.test/?upc=",
                            newegg_search_url="https://newegg.test/?d=")
    resp = client_for(fetcher, barcode=barcode).post("/lookup", json={"upc": "012345678905"})
    assert resp.status_code == 200
    assert resp.get_json() == {
        "title": "Desk Lamp",
        "brand": "Lumo",
        "lowestPrice": 24.5,
        "matches": [{"source": "Newegg", "url": "https://newegg.test/p/1", "price": 24.5}],
    }


def test_lookup_unexpected_error_is_500(client_for, book_fetcher):
    class Broken:
        def lookup_product(self, upc):
            raise RuntimeError("boom")

    resp = client_for(book_fetcher, barcode=Broken()).post("/lookup", json={"upc": "1"})
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Lookup failed"}
