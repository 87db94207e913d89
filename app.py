# app.py  – HTTP surface: POST /analyze, POST /upc, POST /lookup

import logging

from flask import Flask, jsonify, request

from analyzer import Analyzer
from config import Config
from errors import AnalysisFailure, FetchFailure, ValidationFailure
from lookup import BarcodeLookup
from models import AnalyzeRequest

logger = logging.getLogger(__name__)


def create_app(analyzer: Analyzer = None, barcode: BarcodeLookup = None) -> Flask:
    app = Flask(__name__)
    app.config["ANALYZER"] = analyzer or Analyzer()
    app.config["BARCODE"] = barcode or BarcodeLookup(app.config["ANALYZER"].fetcher)

    @app.errorhandler(405)
    def method_not_allowed(_err):
        return jsonify({"error": "Method not allowed"}), 405

    @app.route("/analyze", methods=["POST"], provide_automatic_options=False)
    def analyze():
        body = request.get_json(silent=True) or {}
        try:
            req = AnalyzeRequest.from_payload(body)
            report = app.config["ANALYZER"].analyze_request(req)
        except ValidationFailure as e:
            return jsonify({"error": str(e)}), 400
        except AnalysisFailure as e:
            if isinstance(e.cause, ValidationFailure):
                return jsonify({"error": e.reason}), 400
            if isinstance(e.cause, FetchFailure):
                logger.warning(f"Fetch failed: {e.reason}")
                return jsonify({"error": e.reason}), 502
            logger.exception("Analysis failed")
            return jsonify({"error": "Parse failed", "detail": e.reason}), 500
        except Exception as e:
            logger.exception("API error")
            return jsonify({"error": "Parse failed", "detail": str(e) or type(e).__name__}), 500
        return jsonify(report.to_dict()), 200

    @app.route("/upc", methods=["POST"], provide_automatic_options=False)
    def upc():
        body = request.get_json(silent=True)
        code = body.get("code") if isinstance(body, dict) else None
        try:
            result = app.config["BARCODE"].lookup(code)
        except ValidationFailure as e:
            return jsonify({"error": str(e)}), 400
        except Exception as e:
            logger.exception("Lookup failed")
            return jsonify({"error": "Lookup failed", "detail": str(e) or type(e).__name__}), 500
        return jsonify(result), 200

    @app.route("/lookup", methods=["POST"], provide_automatic_options=False)
    def lookup():
        body = request.get_json(silent=True)
        upc = body.get("upc") if isinstance(body, dict) else None
        try:
            result = app.config["BARCODE"].lookup_product(upc)
        except ValidationFailure as e:
            return jsonify({"error": str(e)}), 400
        except Exception:
            logger.exception("Product lookup failed")
            return jsonify({"error": "Lookup failed"}), 500
        return jsonify(result), 200

    return app


def main():
    logging.basicConfig(
        level=Config.LOG_LEVEL,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    logger.info(f"Starting with config: {Config.to_dict()}")
    app = create_app()
    app.run(host=Config.HOST, port=Config.PORT, debug=Config.DEBUG, threaded=True)


if __name__ == "__main__":
    main()
