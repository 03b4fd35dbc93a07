"""API route handlers."""
from . import returns, snapshots

__all__ = ["returns", "snapshots"]
