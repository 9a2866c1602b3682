"""
FYP submission workflow: versioned document submissions, supervisor review,
deadline-driven locking, committee evaluation and weighted final scoring.
"""

__version__ = "1.0.0"
