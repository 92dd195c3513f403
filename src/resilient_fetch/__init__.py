"""Conditional HTTP fetches with TLS trust pinning and exponential backoff."""

__version__ = "0.1.0"
