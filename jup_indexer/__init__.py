"""Jupiter v6 swap trade indexer."""

__version__ = "0.1.0"
