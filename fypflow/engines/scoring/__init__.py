"""
Scoring Engine - weighted FinalResult per project.
"""

from fypflow.engines.scoring.engine import (
    ScoringEngine,
    quantize_score,
    total_score,
    weighted_contribution,
)

__all__ = ["ScoringEngine", "quantize_score", "total_score", "weighted_contribution"]
