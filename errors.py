# errors.py  – failure kinds surfaced by the pipeline


class PriceScoutError(Exception):
    """Base class for every error raised on purpose by this project."""


class ValidationFailure(PriceScoutError):
    """Malformed or missing request input. Raised before any network call."""


class StrategyFailed(PriceScoutError):
    """One fetch strategy failed (HTTP >= 400, empty body). Never escapes the fetcher."""

    def __init__(self, message: str, empty: bool = False):
        super().__init__(message)
        self.empty = empty


class FetchFailure(PriceScoutError):
    """Every fetch strategy was exhausted."""

    def __init__(self, message: str, last_error: Exception = None):
        super().__init__(message)
        self.last_error = last_error


class EmptyContent(FetchFailure):
    """A strategy answered, but with nothing to parse."""


class AnalysisFailure(PriceScoutError):
    """Raised by ``Analyzer.analyze``; ``cause`` keeps the underlying error."""

    def __init__(self, reason: str, cause: Exception = None):
        super().__init__(reason)
        self.reason = reason
        self.cause = cause
