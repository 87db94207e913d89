# models.py  – request / extraction / report records

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from errors import ValidationFailure
from money import parse_amount

NO_TITLE = "No title found"

# where a price came from; the last two are free-text guesses
PRICE_SOURCES = (
    "metadata", "structured-data", "embedded-json", "selector",
    "page-scan", "identifier-search", "manual",
)
LOW_CONFIDENCE_SOURCES = {"page-scan", "identifier-search"}

COST_KEYS = (("cost", "cost"), ("fees_pct", "feesPct"),
             ("shipping", "shipping"), ("other", "other"))


@dataclass(frozen=True)
class ProductExtraction:
    title: str = NO_TITLE
    image: Optional[str] = None
    price_num: Optional[float] = None
    identifier: Optional[str] = None
    source: str = "generic"
    price_source: Optional[str] = None

    def __post_init__(self):
        if self.price_source is not None and self.price_source not in PRICE_SOURCES:
            raise ValueError(f"Unknown price source: {self.price_source!r}")
        if not self.title:
            object.__setattr__(self, "title", NO_TITLE)
        if self.price_num is not None:
            if not math.isfinite(self.price_num) or self.price_num < 0:
                object.__setattr__(self, "price_num", None)
                object.__setattr__(self, "price_source", None)

    @property
    def low_confidence(self) -> bool:
        return self.price_source in LOW_CONFIDENCE_SOURCES


@dataclass(frozen=True)
class CostInputs:
    cost: float = 0.0
    fees_pct: float = 0.0
    shipping: float = 0.0
    other: float = 0.0

    def __post_init__(self):
        for attr, _ in COST_KEYS:
            value = getattr(self, attr)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationFailure(f"{attr} must be a number")
            if not math.isfinite(value) or value < 0:
                raise ValidationFailure(f"{attr} must be a non-negative number")

    @classmethod
    def from_payload(cls, body: Dict[str, Any]) -> "CostInputs":
        """Coerce ``cost``/``feesPct``/``shipping``/``other`` from a JSON body."""
        values = {}
        for attr, key in COST_KEYS:
            raw = body.get(key)
            if raw is None or raw == "":
                values[attr] = 0.0
                continue
            if isinstance(raw, bool):
                raise ValidationFailure(f"{key} must be a number")
            try:
                num = float(raw)
            except (TypeError, ValueError):
                raise ValidationFailure(f"{key} must be a number")
            if not math.isfinite(num) or num < 0:
                raise ValidationFailure(f"{key} must be a non-negative number")
            values[attr] = num
        return cls(**values)

    def key(self):
        return (self.cost, self.fees_pct, self.shipping, self.other)


@dataclass
class AnalyzeRequest:
    url: str
    costs: CostInputs = field(default_factory=CostInputs)
    manual_price: Optional[float] = None

    def __post_init__(self):
        if not isinstance(self.costs, CostInputs):
            raise ValidationFailure("costs must be CostInputs")
        self.manual_price = parse_manual_price(self.manual_price)

    @classmethod
    def from_payload(cls, body) -> "AnalyzeRequest":
        """Validate a ``POST /analyze`` body before it reaches the pipeline."""
        if not isinstance(body, dict):
            raise ValidationFailure("Request body must be a JSON object")
        url = body.get("url")
        if not url or not isinstance(url, str):
            raise ValidationFailure("Missing URL")
        return cls(
            url=url.strip(),
            costs=CostInputs.from_payload(body),
            manual_price=body.get("manualPrice"),
        )

    def cache_key(self):
        return (self.url, self.costs.key(), self.manual_price)




def parse_manual_price(raw) -> Optional[float]:
    """Number or price text → positive float. Blank or unusable input means no override."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        value = parse_amount(str(raw))
    if math.isfinite(value) and value > 0:
        return value
    return None


def validate_url(url: str) -> str:
    """Return the hostname of an http(s) URL or raise ValidationFailure."""
    try:
        parts = urlparse(url)
    except ValueError:
        raise ValidationFailure(f"Malformed URL: {url}")
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise ValidationFailure(f"URL must be http(s): {url}")
    return parts.hostname.lower()


@dataclass(frozen=True)
class ProfitReport:
    extraction: ProductExtraction
    price_display: str = "N/A"
    site: Optional[str] = None
    fees_dollar: Optional[float] = None
    net_profit: Optional[float] = None
    margin_pct: Optional[float] = None
    score: int = 0
    manual_price_used: bool = False

    @property
    def price_num(self) -> Optional[float]:
        return self.extraction.price_num

    def to_dict(self) -> Dict[str, Any]:
        """camelCase JSON body; unset optional fields are left out."""
        ex = self.extraction
        out = {
            "title": ex.title,
            "image": ex.image,
            "identifier": ex.identifier,
            "source": ex.source,
            "site": self.site,
            "price": self.price_display,
            "priceDisplay": self.price_display,
            "priceNum": ex.price_num,
            "priceSource": ex.price_source,
            "lowConfidence": ex.low_confidence,
            "feesDollar": self.fees_dollar,
            "netProfit": self.net_profit,
            "marginPct": self.margin_pct,
            "score": self.score,
            "manualPriceUsed": self.manual_price_used,
        }
        return {k: v for k, v in out.items() if v is not None}
