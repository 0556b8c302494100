"""
Persistence for DigiBridge.

This package provides the user store used by the enrollment flow.
"""
from .user_store import InMemoryUserStore, SQLUserStore, UserStore, get_user_store

__all__ = ["InMemoryUserStore", "SQLUserStore", "UserStore", "get_user_store"]
