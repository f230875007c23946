"""Idempotent macOS development machine setup."""

__version__ = "0.1.0"
