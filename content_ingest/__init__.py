"""Content ingestion pipeline: import, dedup, tag and validate third-party media."""

__version__ = "0.1.0"
