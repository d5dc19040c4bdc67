"""
HTTP API for the CRM notification service.

This package provides a single FastAPI application that exposes:
- Notification queries, read/archive/delete and statistics
- Manual test and welcome email sends
"""

from api.main import app

__all__ = ["app"]
