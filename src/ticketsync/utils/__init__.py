"""Shared utilities for configuration, logging, and retries"""

from ticketsync.utils.retry import exponential_backoff_retry

__all__ = ["exponential_backoff_retry"]
