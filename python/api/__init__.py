"""
FastAPI Backend for Statement Import

Provides REST API endpoints for previewing imports and managing learned rules.
"""

from .main import app

__all__ = ["app"]
