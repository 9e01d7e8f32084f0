"""Shared service helpers."""

from .retry import async_retry_with_backoff, is_transient_error

__all__ = ["async_retry_with_backoff", "is_transient_error"]
