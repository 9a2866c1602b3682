"""
Evaluation Engine - committee marks and completion.

Completion policies:
- recorded_marks: every evaluator who marked has finalized
- committee_roster: additionally, the whole active evaluation committee
"""

from fypflow.engines.evaluation.aggregator import (
    COMMITTEE_ROSTER,
    RECORDED_MARKS,
    EvaluationAggregator,
    finalized_average,
    is_complete,
)

__all__ = [
    "COMMITTEE_ROSTER",
    "RECORDED_MARKS",
    "EvaluationAggregator",
    "finalized_average",
    "is_complete",
]
