"""
DigiBridge REST API.

FastAPI-based REST API for onboarding and 2FA enrollment.
"""
from .main import app, create_app

__all__ = ["app", "create_app"]
