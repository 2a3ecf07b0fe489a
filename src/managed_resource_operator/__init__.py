"""Managed Resource Operator.

A generic reconciliation engine that keeps externally managed resources
converged with the custom resources describing them.
"""

__version__ = "0.1.0"
