"""devdigest: tech and startup content aggregator."""

__version__ = "0.1.0"
