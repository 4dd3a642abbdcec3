"""
Pipeline components for network sync.

Contains the stages of a sync pass after events are fetched: aggregation
(pure, in memory), reconciliation (store writes) and scoring (relationship
strength, triggered by approvals).
"""

__all__ = ["aggregation", "classification", "reconciliation", "scoring"]
