"""
Submission Engine - versioned uploads, supervisor review and locking.
"""

from fypflow.engines.submission.service import SubmissionService, lock_submission
from fypflow.engines.submission.version_allocator import next_version, serialized

__all__ = ["SubmissionService", "lock_submission", "next_version", "serialized"]
