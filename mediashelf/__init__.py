"""Media cache and storage gateway package for the mediashelf library service."""

from .environment import load_environment

load_environment()

__all__ = ["load_environment"]
