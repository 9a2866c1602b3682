"""
State machines for the Submission and FinalResult lifecycles.

Submission.status is authoritative for review and evaluation. The tables
below define every valid (state, action) pair, the resulting state and the
notifications the transition wants sent. Decision functions are pure; the
StateMachine service applies a decision to a row, writes the audit event and
queues the notifications on the unit of work.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from fypflow.errors import BusinessRuleViolation, ValidationError
from fypflow.kernel.events.event_types import (
    EmailTemplate,
    NotificationIntent,
    NotificationType,
    RecipientRole,
    intent,
)
from fypflow.kernel.models.event_log import EventType
from fypflow.kernel.models.final_result import ResultState
from fypflow.kernel.models.project import Project
from fypflow.kernel.models.submission import Submission, SubmissionStatus

if TYPE_CHECKING:
    from fypflow.orchestration.unit_of_work import UnitOfWork


class SubmissionAction(str, Enum):
    """Actions that move a submission through its lifecycle."""

    CREATE = "create"
    APPROVE = "approve"
    REQUEST_REVISION = "request_revision"
    APPROVE_AND_LOCK = "approve_and_lock"
    MARK_FINAL = "mark_final"
    LOCK = "lock"
    START_EVALUATION = "start_evaluation"
    FINALIZE_EVALUATION = "finalize_evaluation"


class ResultAction(str, Enum):
    COMPUTE = "compute"
    RELEASE = "release"


@dataclass(frozen=True)
class Transition:
    """Outcome of a decision: where the submission goes and who hears about it."""

    from_status: Optional[SubmissionStatus]
    action: SubmissionAction
    to_status: SubmissionStatus
    intents: Tuple[NotificationIntent, ...] = ()
    forces_final: bool = False

    @property
    def changes_status(self) -> bool:
        return self.from_status is not self.to_status


_S = SubmissionStatus
_A = SubmissionAction

_UPLOADED = (
    intent(
        NotificationType.SUBMISSION_UPLOADED,
        RecipientRole.SUPERVISOR,
        email=EmailTemplate.SUBMISSION_UPLOADED,
    ),
)
_APPROVED = (intent(NotificationType.SUBMISSION_APPROVED, RecipientRole.GROUP_LEADER),)
_REVISION = (
    intent(
        NotificationType.SUBMISSION_REVISION_REQUESTED,
        RecipientRole.GROUP_LEADER,
        email=EmailTemplate.REVISION_REQUESTED,
        email_to=(RecipientRole.GROUP_MEMBERS,),
    ),
)
_LOCKED = (
    intent(NotificationType.SUBMISSION_LOCKED, RecipientRole.GROUP_LEADER),
    intent(
        NotificationType.SUBMISSION_LOCKED,
        RecipientRole.EVALUATION_COMMITTEE,
        email=EmailTemplate.DOCUMENT_LOCKED,
    ),
)
_STARTED = (intent(NotificationType.EVALUATION_STARTED, RecipientRole.GROUP_LEADER),)
_FINALIZED = (
    intent(
        NotificationType.EVALUATION_FINALIZED,
        RecipientRole.FYP_COMMITTEE,
        RecipientRole.GROUP_LEADER,
    ),
)

# (from_status, action) -> (to_status, intents, forces_final)
_TRANSITIONS: Dict[
    Tuple[Optional[SubmissionStatus], SubmissionAction],
    Tuple[SubmissionStatus, Tuple[NotificationIntent, ...], bool],
] = {
    (None, _A.CREATE): (_S.PENDING_SUPERVISOR, _UPLOADED, False),
    # Supervisor review before the deadline
    (_S.PENDING_SUPERVISOR, _A.APPROVE): (_S.APPROVED_BY_SUPERVISOR, _APPROVED, False),
    (_S.APPROVED_BY_SUPERVISOR, _A.APPROVE): (_S.APPROVED_BY_SUPERVISOR, _APPROVED, False),
    (_S.PENDING_SUPERVISOR, _A.REQUEST_REVISION): (_S.REVISION_REQUESTED, _REVISION, False),
    (_S.APPROVED_BY_SUPERVISOR, _A.REQUEST_REVISION): (_S.REVISION_REQUESTED, _REVISION, False),
    # Supervisor approval at or after the deadline
    (_S.PENDING_SUPERVISOR, _A.APPROVE_AND_LOCK): (_S.LOCKED_FOR_EVAL, _LOCKED, True),
    (_S.APPROVED_BY_SUPERVISOR, _A.APPROVE_AND_LOCK): (_S.LOCKED_FOR_EVAL, _LOCKED, True),
    (_S.REVISION_REQUESTED, _A.APPROVE_AND_LOCK): (_S.LOCKED_FOR_EVAL, _LOCKED, True),
    # Group leader freezes the current version
    (_S.PENDING_SUPERVISOR, _A.MARK_FINAL): (_S.PENDING_SUPERVISOR, (), True),
    (_S.REVISION_REQUESTED, _A.MARK_FINAL): (_S.REVISION_REQUESTED, (), True),
    (_S.APPROVED_BY_SUPERVISOR, _A.MARK_FINAL): (_S.APPROVED_BY_SUPERVISOR, (), True),
    # Explicit or deadline-driven lock
    (_S.PENDING_SUPERVISOR, _A.LOCK): (_S.LOCKED_FOR_EVAL, _LOCKED, True),
    (_S.APPROVED_BY_SUPERVISOR, _A.LOCK): (_S.LOCKED_FOR_EVAL, _LOCKED, True),
    (_S.REVISION_REQUESTED, _A.LOCK): (_S.LOCKED_FOR_EVAL, _LOCKED, True),
    # Committee evaluation
    (_S.LOCKED_FOR_EVAL, _A.START_EVALUATION): (_S.EVAL_IN_PROGRESS, _STARTED, False),
    (_S.EVAL_IN_PROGRESS, _A.FINALIZE_EVALUATION): (_S.EVAL_FINALIZED, _FINALIZED, False),
}

_STATUS_DISPLAY = {
    _S.PENDING_SUPERVISOR: "Pending Supervisor Review",
    _S.REVISION_REQUESTED: "Revision Requested",
    _S.APPROVED_BY_SUPERVISOR: "Approved by Supervisor",
    _S.LOCKED_FOR_EVAL: "Locked for Evaluation",
    _S.EVAL_IN_PROGRESS: "Evaluation in Progress",
    _S.EVAL_FINALIZED: "Evaluation Finalized",
}

AUTO_LOCK_REVISION_NOTE = (
    "[AUTO-LOCKED] Deadline passed while awaiting revision. "
    "Previous submission marked as final."
)
AUTO_LOCK_PENDING_NOTE = "[AUTO-LOCKED] Deadline passed while pending supervisor review."
LATE_SUBMISSION_PREFIX = "[LATE SUBMISSION]"


def decide(status: Optional[SubmissionStatus], action: SubmissionAction) -> Transition:
    """
    Look up a transition. Raises BusinessRuleViolation naming the state and
    action when the pair is not in the table.
    """
    entry = _TRANSITIONS.get((status, action))
    if entry is None:
        state_name = status.value if status is not None else "NEW"
        code = "INVALID_TRANSITION"
        if action is _A.LOCK and status is not None and status.is_locked:
            code = "ALREADY_LOCKED"
        raise BusinessRuleViolation(
            f"Cannot {action.value} a submission in state {state_name}",
            code=code,
            details={"state": state_name, "action": action.value},
        )
    to_status, intents, forces_final = entry
    return Transition(
        from_status=status,
        action=action,
        to_status=to_status,
        intents=intents,
        forces_final=forces_final,
    )


def valid_actions(status: Optional[SubmissionStatus]) -> list:
    """Actions accepted from a given state."""
    return sorted({a.value for (s, a) in _TRANSITIONS if s == status})


def decide_review(
    status: SubmissionStatus,
    *,
    approve: bool,
    feedback: Optional[str],
    has_marks: bool,
    past_deadline: bool,
    is_final: bool = False,
) -> Transition:
    """
    Supervisor review decision.

    Before the deadline the supervisor approves (marks optional) or requests a
    revision with non-empty feedback. At or after the deadline revision is
    forbidden and approval requires marks; it locks the submission and makes
    it final.

    A final submission cannot be sent back for revision.
    """
    if status.is_locked:
        raise BusinessRuleViolation(
            f"Cannot review a submission in state {status.value}",
            code="SUBMISSION_LOCKED",
            details={"state": status.value, "action": "review"},
        )
    if past_deadline:
        if not approve:
            raise BusinessRuleViolation(
                "Cannot request revision after the deadline has passed; approve with marks instead",
                code="CANNOT_REQUEST_REVISION",
                details={"state": status.value, "action": _A.REQUEST_REVISION.value},
            )
        if not has_marks:
            raise BusinessRuleViolation(
                "Marks are required when approving after the deadline has passed",
                code="MARKS_REQUIRED",
                details={"state": status.value, "action": _A.APPROVE_AND_LOCK.value},
            )
        return decide(status, _A.APPROVE_AND_LOCK)
    if approve:
        return decide(status, _A.APPROVE)
    if is_final:
        raise BusinessRuleViolation(
            "Cannot request revision of a final submission",
            code="CANNOT_REQUEST_REVISION",
            details={"state": status.value, "action": _A.REQUEST_REVISION.value, "is_final": True},
        )
    if not feedback or not feedback.strip():
        raise ValidationError(
            "Feedback is required when requesting revision",
            code="FEEDBACK_REQUIRED",
        )
    return decide(status, _A.REQUEST_REVISION)


def auto_lock_note(status: SubmissionStatus) -> Optional[str]:
    """Comment appended when the deadline sweep locks a submission."""
    if status is _S.REVISION_REQUESTED:
        return AUTO_LOCK_REVISION_NOTE
    if status is _S.PENDING_SUPERVISOR:
        return AUTO_LOCK_PENDING_NOTE
    return None


def can_edit(status: SubmissionStatus, deadline_passed: bool = False, is_final: bool = False) -> bool:
    return status in (_S.PENDING_SUPERVISOR, _S.REVISION_REQUESTED) and not deadline_passed and not is_final


def can_mark_final(status: SubmissionStatus, is_final: bool) -> bool:
    return not is_final and (status, _A.MARK_FINAL) in _TRANSITIONS


def status_display(status: SubmissionStatus, is_late: bool = False) -> str:
    text = _STATUS_DISPLAY[status]
    return f"{text} (Late)" if is_late else text


# FinalResult lifecycle: (from_state, action) -> to_state
_RESULT_TRANSITIONS: Dict[Tuple[ResultState, ResultAction], ResultState] = {
    (ResultState.UNCOMPUTED, ResultAction.COMPUTE): ResultState.COMPUTED,
    (ResultState.COMPUTED, ResultAction.COMPUTE): ResultState.COMPUTED,
    (ResultState.COMPUTED, ResultAction.RELEASE): ResultState.RELEASED,
}

_RESULT_ERRORS = {
    (ResultState.RELEASED, ResultAction.COMPUTE): (
        "RESULT_RELEASED",
        "Final result has been released and can no longer be recomputed",
    ),
    (ResultState.UNCOMPUTED, ResultAction.RELEASE): (
        "RESULT_NOT_COMPUTED",
        "Final result has not been computed yet",
    ),
    (ResultState.RELEASED, ResultAction.RELEASE): (
        "RESULT_ALREADY_RELEASED",
        "Final result has already been released",
    ),
}


def decide_result(state: ResultState, action: ResultAction) -> ResultState:
    to_state = _RESULT_TRANSITIONS.get((state, action))
    if to_state is None:
        code, message = _RESULT_ERRORS[(state, action)]
        raise BusinessRuleViolation(
            message,
            code=code,
            details={"state": state.value, "action": action.value},
        )
    return to_state


class StateMachine:
    """Applies transitions to submissions with audit logging and notifications."""

    def __init__(self, uow: "UnitOfWork"):
        self.uow = uow

    async def apply(
        self,
        submission: Submission,
        transition: Transition,
        project: Project,
        actor_id: Optional[uuid.UUID],
        payload: Optional[Dict[str, Any]] = None,
    ) -> Submission:
        """Move the submission to transition.to_status and queue its intents."""
        now = self.uow.clock.now()
        from_status = transition.from_status

        submission.status = transition.to_status
        if transition.changes_status:
            submission.status_changed_at = now
        became_final = transition.forces_final and not submission.is_final
        if transition.forces_final:
            submission.is_final = True

        audit_payload = {
            "from_status": from_status,
            "to_status": transition.to_status,
            "action": transition.action,
            "project_id": project.id,
            "document_type_id": submission.document_type_id,
            "version": submission.version,
        }
        if transition.changes_status and from_status is not None:
            await self.uow.events.log(
                event_type=EventType.SUBMISSION_STATUS_CHANGED,
                entity_type="submission",
                entity_id=submission.id,
                user_id=actor_id,
                payload=audit_payload,
            )
        if became_final:
            await self.uow.events.log(
                event_type=EventType.SUBMISSION_MARKED_FINAL,
                entity_type="submission",
                entity_id=submission.id,
                user_id=actor_id,
                payload={"action": transition.action, "version": submission.version},
            )

        message = {
            "submission_id": submission.id,
            "project_id": project.id,
            "project_title": project.title,
            "document_type_id": submission.document_type_id,
            "version": submission.version,
            "status": transition.to_status,
        }
        message.update(payload or {})
        for item in transition.intents:
            await self.uow.emit(item, project, message)
        return submission
