"""Concurrent archive download, dedup and ingest pipeline."""

__version__ = "0.1.0"
