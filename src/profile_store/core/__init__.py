"""Profile store core package."""

from .store import RangeStore

__all__ = ["RangeStore"]
