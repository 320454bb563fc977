"""Routers module - FastAPI route handlers"""

from . import config, files, generation

__all__ = ["config", "files", "generation"]
