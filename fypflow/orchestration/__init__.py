"""
Workflow orchestration: transition tables, transactions and post-commit delivery.
"""

from fypflow.orchestration.dispatcher import NotificationDispatcher, Outbox
from fypflow.orchestration.state_machine import (
    ResultAction,
    StateMachine,
    SubmissionAction,
    Transition,
    decide,
    decide_result,
    decide_review,
)
from fypflow.orchestration.unit_of_work import UnitOfWork, run_in_transaction, run_read

__all__ = [
    "NotificationDispatcher",
    "Outbox",
    "ResultAction",
    "StateMachine",
    "SubmissionAction",
    "Transition",
    "UnitOfWork",
    "decide",
    "decide_result",
    "decide_review",
    "run_in_transaction",
    "run_read",
]
