"""Incremental synchronization of registration tickets to a local cache."""

__version__ = "0.3.0"
