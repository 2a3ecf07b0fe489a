"""Collaborators the reconciliation engine talks to."""
