# run_batch.py  – analyze every URL in a CSV and print one line per row
import argparse
import csv
import logging
import sys

from analyzer import Analyzer
from config import Config
from errors import AnalysisFailure, ValidationFailure
from models import AnalyzeRequest

logger = logging.getLogger(__name__)


def normalise_header(row):
    """
    Return a copy where keys are stripped + lower-cased,
    e.g. ' Fees_Pct '  →  'fees_pct'
    """
    return {
        k.strip().lower(): (v.strip() if isinstance(v, str) else v)
        for k, v in row.items()
        if k is not None
    }


def row_payload(row, defaults):
    """CSV row → /analyze style body; blank cells fall back to the CLI defaults."""
    def pick(*names, default=None):
        for name in names:
            if row.get(name) not in (None, ""):
                return row[name]
        return default

    return {
        "url": pick("url", "link"),
        "cost": pick("cost", default=defaults.cost),
        "feesPct": pick("fees_pct", "feespct", "fees", default=defaults.fees_pct),
        "shipping": pick("shipping", default=defaults.shipping),
        "other": pick("other", default=defaults.other),
        "manualPrice": pick("manual_price", "manualprice"),
    }


def format_line(report) -> str:
    ex = report.extraction
    out = f"{ex.title[:50]:<50} | {report.price_display:>10} | score {report.score:>3}"
    if report.net_profit is not None:
        out += f" | profit {report.net_profit:.2f} ({report.margin_pct:.1f}%)"
    if ex.low_confidence:
        out += " | low confidence"
    return out


def run(csv_path, defaults, analyzer=None, out=None) -> int:
    """Returns the number of rows that failed."""
    analyzer = analyzer or Analyzer()
    out = out or sys.stdout
    failures = 0
    with open(csv_path, newline="", encoding="utf-8-sig") as f:
        for raw in csv.DictReader(f):
            row = normalise_header(raw)
            try:
                req = AnalyzeRequest.from_payload(row_payload(row, defaults))
                report = analyzer.analyze_request(req)
            except (ValidationFailure, AnalysisFailure) as e:
                failures += 1
                print(f"[FAIL] {row.get('url') or row.get('link') or row}: {e}", file=out)
                continue
            except Exception as e:
                failures += 1
                logger.exception(f"Unexpected error for row {row}")
                print(f"[FAIL] {row.get('url') or row.get('link') or row}: {e}", file=out)
                continue
            print(f"{req.url}\n    {format_line(report)}", file=out)
    return failures


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Score resale profit for a CSV of product URLs.")
    parser.add_argument("csv_path", help="CSV with a url (or link) column")
    parser.add_argument("--cost", type=float, default=0.0)
    parser.add_argument("--fees-pct", type=float, default=0.0)
    parser.add_argument("--shipping", type=float, default=0.0)
    parser.add_argument("--other", type=float, default=0.0)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=Config.LOG_LEVEL,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    failures = run(args.csv_path, args)
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
