"""Handlers driving managed objects.

Nothing registers itself at import time; ``ReconcileDispatcher.register``
wires the handlers onto an explicit kopf registry.
"""

from .base import BaseHandler
from .dispatch import ReconcileDispatcher
from .reconciler import Reconciler

__all__ = ["BaseHandler", "ReconcileDispatcher", "Reconciler"]
