"""
Aggregation package for network sync.

Folds calendar events into per-contact meeting statistics.
"""

from .service import ContactAggregator

__all__ = ["ContactAggregator"]
