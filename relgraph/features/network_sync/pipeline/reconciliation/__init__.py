"""
Reconciliation package for network sync.

Upserts companies and contacts and replaces each contact's recent meetings.
"""

from .service import GraphReconciler

__all__ = ["GraphReconciler"]
