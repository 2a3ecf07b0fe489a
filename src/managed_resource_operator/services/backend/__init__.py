"""Backend adapter contract."""

from .base import BackendAdapter

__all__ = ["BackendAdapter"]
