"""
Scoring package for network sync.

Computes relationship strength per (user, company) from approved contacts.
"""

from .service import RelationshipScorer, compute_strength_score, relationship_scorer

__all__ = ["RelationshipScorer", "compute_strength_score", "relationship_scorer"]
