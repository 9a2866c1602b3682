"""Integration tests for upload, supervisor review, final marking and locking."""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
import pytest_asyncio

from fypflow.errors import BusinessRuleViolation, NotFound, ValidationError
from fypflow.kernel import repositories
from fypflow.kernel.events.event_types import EmailTemplate, NotificationType
from fypflow.kernel.models import CommitteeKind, EventType, ProjectStatus, SubmissionStatus
from fypflow.orchestration.state_machine import LATE_SUBMISSION_PREFIX
from fypflow.orchestration.unit_of_work import run_read


@pytest_asyncio.fixture
async def open_pair(seed, clock):
    """Approved project in a batch whose deadline is a week away."""
    doc_type = await seed.document_type()
    batch = await seed.batch()
    await seed.deadline(batch, doc_type, clock.now() + timedelta(days=7))
    project = await seed.project(batch)
    return project, doc_type


@pytest_asyncio.fixture
async def closed_pair(seed, clock):
    """Approved project whose deadline passed yesterday."""
    doc_type = await seed.document_type()
    batch = await seed.batch()
    await seed.deadline(batch, doc_type, clock.now() - timedelta(days=1))
    project = await seed.project(batch)
    return project, doc_type


class TestCreate:
    """Uploading new versions."""

    @pytest.mark.asyncio
    async def test_upload_notifies_supervisor(self, open_pair, submissions, runtime, notifications, email, audit):
        project, doc_type = open_pair

        submission = await submissions.create(
            project.id, doc_type.id, file_id="srs-v1.pdf", uploaded_by=project.leader_id, comments="first draft"
        )
        await runtime.dispatcher.drain()

        assert submission.status is SubmissionStatus.PENDING_SUPERVISOR
        assert submission.version == 1
        assert submission.is_final is False
        assert submission.comments == "first draft"
        assert notifications.to(project.supervisor_id) == [NotificationType.SUBMISSION_UPLOADED]
        (_, _, payload), = notifications.of_type(NotificationType.SUBMISSION_UPLOADED)
        assert payload["submission_id"] == str(submission.id)
        assert payload["document_type_code"] == "SRS"
        assert email.of_template(EmailTemplate.SUBMISSION_UPLOADED)[0][0] == [project.supervisor_id]
        assert await audit(EventType.SUBMISSION_CREATED, submission.id) == 1
        assert await audit(EventType.SUBMISSION_STATUS_CHANGED, submission.id) == 0

    @pytest.mark.asyncio
    async def test_project_must_be_approved(self, seed, submissions):
        doc_type = await seed.document_type()
        project = await seed.project(status=ProjectStatus.REGISTERED)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)
        assert exc_info.value.code == "PROJECT_NOT_APPROVED"

    @pytest.mark.asyncio
    async def test_inactive_document_type(self, seed, submissions):
        doc_type = await seed.document_type(is_active=False)
        project = await seed.project()

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)
        assert exc_info.value.code == "DOCUMENT_TYPE_INACTIVE"

    @pytest.mark.asyncio
    async def test_only_group_members_upload(self, open_pair, submissions):
        project, doc_type = open_pair

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await submissions.create(project.id, doc_type.id, uploaded_by=uuid.uuid4())
        assert exc_info.value.code == "PERMISSION_DENIED"

        member_upload = await submissions.create(project.id, doc_type.id, uploaded_by=project.member_ids[0])
        assert member_upload.version == 1

    @pytest.mark.asyncio
    async def test_unknown_project(self, seed, submissions):
        doc_type = await seed.document_type()
        with pytest.raises(NotFound):
            await submissions.create(uuid.uuid4(), doc_type.id)

    @pytest.mark.asyncio
    async def test_late_upload_is_accepted_and_flagged(self, closed_pair, submissions):
        project, doc_type = closed_pair

        submission = await submissions.create(
            project.id, doc_type.id, uploaded_by=project.leader_id, comments="sorry"
        )
        view = await submissions.get_submission(submission.id)

        assert submission.comments == f"{LATE_SUBMISSION_PREFIX} sorry"
        assert view.is_late is True
        assert view.deadline_passed is True
        assert view.can_edit is False
        assert view.status_display == "Pending Supervisor Review (Late)"

    @pytest.mark.asyncio
    async def test_upload_at_due_time_is_late(self, seed, submissions, clock):
        doc_type = await seed.document_type()
        batch = await seed.batch()
        await seed.deadline(batch, doc_type, clock.now())
        project = await seed.project(batch)

        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)
        view = await submissions.get_submission(submission.id)

        assert submission.comments == LATE_SUBMISSION_PREFIX
        assert view.is_late is True

    @pytest.mark.asyncio
    async def test_no_upload_after_final(self, open_pair, submissions):
        project, doc_type = open_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)
        await submissions.mark_final(submission.id, project.leader_id)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)
        assert exc_info.value.code == "FINAL_EXISTS"


class TestReviewBeforeDeadline:
    """Supervisor review while the deadline is open."""

    @pytest.mark.asyncio
    async def test_approve(self, open_pair, submissions, runtime, notifications):
        project, doc_type = open_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)

        reviewed = await submissions.review(submission.id, project.supervisor_id, approve=True)
        await runtime.dispatcher.drain()

        assert reviewed.status is SubmissionStatus.APPROVED_BY_SUPERVISOR
        assert reviewed.is_final is False
        assert reviewed.supervisor_reviewed_at is not None
        assert notifications.to(project.leader_id) == [NotificationType.SUBMISSION_APPROVED]

    @pytest.mark.asyncio
    async def test_approve_with_marks_saves_supervisor_mark(self, open_pair, submissions, runtime, audit):
        project, doc_type = open_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)

        await submissions.review(submission.id, project.supervisor_id, approve=True, marks=Decimal("85"))
        await submissions.review(submission.id, project.supervisor_id, approve=True, marks=Decimal("88.5"))

        async def load(session):
            return await repositories.supervisor_mark(session, submission.id)

        mark = await run_read(runtime, load)
        assert mark.score == Decimal("88.5")
        assert await audit(EventType.SUPERVISOR_MARKS_SAVED, submission.id) == 2

    @pytest.mark.asyncio
    async def test_request_revision(self, open_pair, submissions, runtime, notifications, email):
        project, doc_type = open_pair
        submission = await submissions.create(
            project.id, doc_type.id, uploaded_by=project.leader_id, comments="v1"
        )

        reviewed = await submissions.review(
            submission.id, project.supervisor_id, approve=False, feedback="  Add a glossary  "
        )
        await runtime.dispatcher.drain()

        assert reviewed.status is SubmissionStatus.REVISION_REQUESTED
        assert reviewed.comments == "v1\n\nAdd a glossary"
        assert NotificationType.SUBMISSION_REVISION_REQUESTED in notifications.to(project.leader_id)
        (recipients, _, data), = email.of_template(EmailTemplate.REVISION_REQUESTED)
        assert sorted(recipients) == sorted(project.group)
        assert data["feedback"] == "  Add a glossary  "

    @pytest.mark.asyncio
    async def test_revision_needs_feedback(self, open_pair, submissions):
        project, doc_type = open_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)

        with pytest.raises(ValidationError) as exc_info:
            await submissions.review(submission.id, project.supervisor_id, approve=False, feedback="")
        assert exc_info.value.code == "FEEDBACK_REQUIRED"

        unchanged = await submissions.get_submission(submission.id)
        assert unchanged.status is SubmissionStatus.PENDING_SUPERVISOR

    @pytest.mark.asyncio
    async def test_only_assigned_supervisor(self, open_pair, submissions):
        project, doc_type = open_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await submissions.review(submission.id, uuid.uuid4(), approve=True)
        assert exc_info.value.code == "PERMISSION_DENIED"

    @pytest.mark.asyncio
    async def test_superseded_version_cannot_be_reviewed(self, open_pair, submissions):
        project, doc_type = open_pair
        first = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)
        await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await submissions.review(first.id, project.supervisor_id, approve=True)
        assert exc_info.value.code == "NOT_LATEST_VERSION"

    @pytest.mark.asyncio
    async def test_out_of_range_marks(self, open_pair, submissions):
        project, doc_type = open_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)

        with pytest.raises(ValidationError):
            await submissions.review(submission.id, project.supervisor_id, approve=True, marks=Decimal("120"))


class TestReviewAfterDeadline:
    """At or after the deadline only approval with marks is possible."""

    @pytest.mark.asyncio
    async def test_revision_refused(self, closed_pair, submissions):
        project, doc_type = closed_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await submissions.review(submission.id, project.supervisor_id, approve=False, feedback="more")
        assert exc_info.value.code == "CANNOT_REQUEST_REVISION"

    @pytest.mark.asyncio
    async def test_marks_required(self, closed_pair, submissions):
        project, doc_type = closed_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await submissions.review(submission.id, project.supervisor_id, approve=True)
        assert exc_info.value.code == "MARKS_REQUIRED"

    @pytest.mark.asyncio
    async def test_approval_locks_and_finalizes(self, closed_pair, seed, submissions, runtime, notifications, audit):
        project, doc_type = closed_pair
        evaluators = await seed.committee(CommitteeKind.EVALUATION, 2)
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)

        reviewed = await submissions.review(
            submission.id, project.supervisor_id, approve=True, marks=Decimal("72")
        )
        await runtime.dispatcher.drain()

        assert reviewed.status is SubmissionStatus.LOCKED_FOR_EVAL
        assert reviewed.is_final is True
        assert notifications.to(project.leader_id) == [NotificationType.SUBMISSION_LOCKED]
        for evaluator_id in evaluators:
            assert notifications.to(evaluator_id) == [NotificationType.SUBMISSION_LOCKED]
        assert await audit(EventType.SUBMISSION_MARKED_FINAL, submission.id) == 1

    @pytest.mark.asyncio
    async def test_locked_submission_cannot_be_reviewed(self, closed_pair, submissions):
        project, doc_type = closed_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)
        await submissions.review(submission.id, project.supervisor_id, approve=True, marks=Decimal("72"))

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await submissions.review(submission.id, project.supervisor_id, approve=True, marks=Decimal("90"))
        assert exc_info.value.code == "SUBMISSION_LOCKED"


class TestMarkFinal:
    """The group leader freezes the latest version."""

    @pytest.mark.asyncio
    async def test_leader_marks_final(self, open_pair, submissions, audit):
        project, doc_type = open_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)

        marked = await submissions.mark_final(submission.id, project.leader_id)

        assert marked.is_final is True
        assert marked.status is SubmissionStatus.PENDING_SUPERVISOR
        assert await audit(EventType.SUBMISSION_MARKED_FINAL, submission.id) == 1

    @pytest.mark.asyncio
    async def test_members_cannot_mark_final(self, open_pair, submissions):
        project, doc_type = open_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await submissions.mark_final(submission.id, project.member_ids[0])
        assert exc_info.value.code == "PERMISSION_DENIED"

    @pytest.mark.asyncio
    async def test_twice_is_rejected(self, open_pair, submissions):
        project, doc_type = open_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)
        await submissions.mark_final(submission.id, project.leader_id)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await submissions.mark_final(submission.id, project.leader_id)
        assert exc_info.value.code == "CANNOT_MARK_FINAL"

    @pytest.mark.asyncio
    async def test_view_flags(self, open_pair, submissions):
        project, doc_type = open_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)

        before = await submissions.get_submission(submission.id)
        await submissions.mark_final(submission.id, project.leader_id)
        after = await submissions.get_submission(submission.id)

        assert before.can_mark_final is True
        assert before.can_edit is True
        assert after.can_mark_final is False
        assert after.can_edit is False

    @pytest.mark.asyncio
    async def test_final_submission_cannot_be_sent_back(self, open_pair, submissions):
        project, doc_type = open_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)
        await submissions.mark_final(submission.id, project.leader_id)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await submissions.review(submission.id, project.supervisor_id, approve=False, feedback="redo")
        assert exc_info.value.code == "CANNOT_REQUEST_REVISION"
        assert exc_info.value.details["action"] == "request_revision"

        view = await submissions.get_submission(submission.id)
        assert view.status is SubmissionStatus.PENDING_SUPERVISOR
        assert view.is_final is True

    @pytest.mark.asyncio
    async def test_final_submission_can_still_be_approved(self, open_pair, submissions):
        project, doc_type = open_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)
        await submissions.mark_final(submission.id, project.leader_id)

        reviewed = await submissions.review(submission.id, project.supervisor_id, approve=True)

        assert reviewed.status is SubmissionStatus.APPROVED_BY_SUPERVISOR
        assert reviewed.is_final is True


class TestLockForEvaluation:
    """Explicit FYP committee lock."""

    @pytest.mark.asyncio
    async def test_committee_member_locks(self, open_pair, seed, submissions, runtime, notifications, email):
        project, doc_type = open_pair
        (fyp_member,) = await seed.committee(CommitteeKind.FYP, 1)
        evaluators = await seed.committee(CommitteeKind.EVALUATION, 3)
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)
        await submissions.review(submission.id, project.supervisor_id, approve=True)

        locked = await submissions.lock_for_evaluation(submission.id, fyp_member)
        await runtime.dispatcher.drain()

        assert locked.status is SubmissionStatus.LOCKED_FOR_EVAL
        assert locked.is_final is True
        committee_notices = [
            n for n in notifications.of_type(NotificationType.SUBMISSION_LOCKED) if n[0] in evaluators
        ]
        assert sorted(n[0] for n in committee_notices) == sorted(evaluators)
        (recipients, _, _), = email.of_template(EmailTemplate.DOCUMENT_LOCKED)
        assert sorted(recipients) == sorted(evaluators)

    @pytest.mark.asyncio
    async def test_outsider_cannot_lock(self, open_pair, submissions):
        project, doc_type = open_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await submissions.lock_for_evaluation(submission.id, project.supervisor_id)
        assert exc_info.value.code == "PERMISSION_DENIED"

    @pytest.mark.asyncio
    async def test_relock_never_regresses(self, open_pair, submissions, evaluations):
        project, doc_type = open_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)
        await submissions.lock_for_evaluation(submission.id)
        await evaluations.record_mark(submission.id, uuid.uuid4(), Decimal("70"))

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await submissions.lock_for_evaluation(submission.id)
        assert exc_info.value.code == "ALREADY_LOCKED"

        view = await submissions.get_submission(submission.id)
        assert view.status is SubmissionStatus.EVAL_IN_PROGRESS


class TestReadViews:
    """Listing and lookup views."""

    @pytest.mark.asyncio
    async def test_list_and_latest(self, open_pair, submissions):
        project, doc_type = open_pair
        await submissions.create(project.id, doc_type.id, file_id="a.pdf", uploaded_by=project.leader_id)
        await submissions.create(project.id, doc_type.id, file_id="b.pdf", uploaded_by=project.leader_id)

        views = await submissions.list_for_project(project.id)
        latest = await submissions.latest(project.id, doc_type.id)

        assert [v.version for v in views] == [1, 2]
        assert latest.version == 2
        assert latest.file.url == "https://files.test/b.pdf"
        assert latest.document_type_code == "SRS"
        assert latest.is_late is False

    @pytest.mark.asyncio
    async def test_latest_without_uploads(self, open_pair, submissions):
        project, doc_type = open_pair
        with pytest.raises(NotFound):
            await submissions.latest(project.id, doc_type.id)

    @pytest.mark.asyncio
    async def test_pending_and_awaiting(self, open_pair, submissions):
        project, doc_type = open_pair
        submission = await submissions.create(project.id, doc_type.id, uploaded_by=project.leader_id)

        pending = await submissions.pending_for_supervisor(project.supervisor_id)
        assert [v.id for v in pending] == [submission.id]
        assert await submissions.awaiting_evaluation() == []

        await submissions.lock_for_evaluation(submission.id)

        assert await submissions.pending_for_supervisor(project.supervisor_id) == []
        awaiting = await submissions.awaiting_evaluation()
        assert [v.id for v in awaiting] == [submission.id]
        assert awaiting[0].is_locked is True
