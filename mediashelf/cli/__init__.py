"""Command line interface for cache and storage maintenance."""

from .main import main

__all__ = ["main"]
