"""
Shared utilities for DigiBridge.

This package provides:
- Secrets management
"""
from .secrets import get_secret, get_database_url, mask_secret

__all__ = ["get_secret", "get_database_url", "mask_secret"]
