# profit.py  – resale arithmetic: fees, net profit, margin, 0–100 score

import math
from dataclasses import dataclass
from typing import Optional

from models import CostInputs


@dataclass(frozen=True)
class ProfitResult:
    fees_dollar: Optional[float] = None
    net_profit: Optional[float] = None
    margin_pct: Optional[float] = None
    score: int = 0


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def compute(price, costs: CostInputs) -> ProfitResult:
    """
    Profit for selling at ``price`` given ``costs``.

    Only a finite price > 0 produces numbers; anything else returns an empty
    result with score 0.  The score is the margin rounded and clamped to
    [0, 100], so every loss scores 0; ``margin_pct`` itself is not clamped.
    """
    if price is None or isinstance(price, bool):
        return ProfitResult()
    try:
        price = float(price)
    except (TypeError, ValueError):
        return ProfitResult()
    if not math.isfinite(price) or price <= 0:
        return ProfitResult()

    fees_dollar = (costs.fees_pct / 100) * price
    net_profit = price - (costs.cost + fees_dollar + costs.shipping + costs.other)
    margin_pct = (net_profit / price) * 100
    score = max(0, min(100, _round_half_up(margin_pct)))
    return ProfitResult(
        fees_dollar=fees_dollar,
        net_profit=net_profit,
        margin_pct=margin_pct,
        score=score,
    )


def format_price(price) -> str:
    """Display form: "$X.XX" or "N/A"."""
    if price is None or isinstance(price, bool):
        return "N/A"
    try:
        price = float(price)
    except (TypeError, ValueError):
        return "N/A"
    if not math.isfinite(price):
        return "N/A"
    return f"${price:.2f}"
