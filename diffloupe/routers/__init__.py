"""Routers module - FastAPI route handlers"""

from . import analyze, config

__all__ = ["analyze", "config"]
