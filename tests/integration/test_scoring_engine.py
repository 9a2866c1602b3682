"""Integration tests for computing and releasing final results."""

import asyncio
import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from fypflow.errors import BusinessRuleViolation, NotFound
from fypflow.kernel.events.event_types import EmailTemplate, NotificationType
from fypflow.kernel.models import EventType, ResultState


class TestCompute:
    """Weighted totals over every required document type."""

    @pytest.mark.asyncio
    async def test_single_document_twenty_eighty(self, seed, scoring, evaluate_document):
        doc_type = await seed.document_type("SRS", 20, 80)
        project = await seed.project()
        submission = await evaluate_document(project, doc_type, "80", ("75", "85"))

        result = await scoring.compute_final_result(project.id, project.supervisor_id)

        assert result.total_score == Decimal("80.0")
        assert result.state is ResultState.COMPUTED
        assert result.released is False
        (entry,) = result.breakdown
        assert entry["document_type_code"] == "SRS"
        assert entry["submission_id"] == str(submission.id)
        assert Decimal(entry["committee_avg_score"]) == Decimal("80")
        assert Decimal(entry["weighted_score"]) == Decimal("80")
        assert entry["supervisor_weight"] == 20
        assert entry["committee_weight"] == 80

    @pytest.mark.asyncio
    async def test_mean_over_document_types(self, seed, scoring, evaluate_document):
        srs = await seed.document_type("SRS", 20, 80, display_order=1)
        sds = await seed.document_type("SDS", 30, 70, display_order=2)
        project = await seed.project()
        await evaluate_document(project, srs, "90", ("70", "80"))
        await evaluate_document(project, sds, "60", ("90",))

        result = await scoring.compute_final_result(project.id)

        # SRS: 90*0.2 + 75*0.8 = 78; SDS: 60*0.3 + 90*0.7 = 81
        assert result.total_score == Decimal("79.5")
        assert [e["document_type_code"] for e in result.breakdown] == ["SRS", "SDS"]

    @pytest.mark.asyncio
    async def test_quantized_to_four_places(self, seed, scoring, evaluate_document):
        doc_type = await seed.document_type("SRS", 20, 80)
        project = await seed.project()
        await evaluate_document(project, doc_type, "80", ("70", "70", "71"))

        result = await scoring.compute_final_result(project.id)

        # committee mean 70.3333..., 16 + 56.2666... = 72.2666...
        assert result.total_score == Decimal("72.2667")

    @pytest.mark.asyncio
    async def test_incomplete_evaluations(self, seed, scoring, submissions, evaluate_document):
        srs = await seed.document_type("SRS")
        sds = await seed.document_type("SDS", display_order=1)
        project = await seed.project()
        await evaluate_document(project, srs)
        await submissions.create(project.id, sds.id, uploaded_by=project.leader_id)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await scoring.compute_final_result(project.id)
        assert exc_info.value.code == "INCOMPLETE_EVALUATIONS"
        assert exc_info.value.details["document_types"] == ["SDS"]

    @pytest.mark.asyncio
    async def test_no_document_types(self, seed, scoring):
        project = await seed.project()

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await scoring.compute_final_result(project.id)
        assert exc_info.value.code == "NO_DOCUMENT_TYPES"

    @pytest.mark.asyncio
    async def test_batch_limits_required_types(self, seed, scoring, clock, evaluate_document):
        srs = await seed.document_type("SRS")
        await seed.document_type("SDS", display_order=1)
        batch = await seed.batch()
        await seed.deadline(batch, srs, clock.now() + timedelta(days=10))
        project = await seed.project(batch)
        await evaluate_document(project, srs, "70", ("70",))

        result = await scoring.compute_final_result(project.id)

        assert result.total_score == Decimal("70")
        assert len(result.breakdown) == 1

    @pytest.mark.asyncio
    async def test_recompute_is_deterministic(self, seed, scoring, clock, evaluate_document, audit):
        doc_type = await seed.document_type()
        project = await seed.project()
        await evaluate_document(project, doc_type, "66", ("77", "88"))

        first = await scoring.compute_final_result(project.id)
        clock.advance(hours=1)
        second = await scoring.compute_final_result(project.id)

        assert second.id == first.id
        assert second.total_score == first.total_score
        assert second.breakdown == first.breakdown
        assert second.computed_at > first.computed_at
        assert await audit(EventType.RESULT_COMPUTED, first.id) == 2

    @pytest.mark.asyncio
    async def test_unknown_project(self, scoring):
        with pytest.raises(NotFound):
            await scoring.compute_final_result(uuid.uuid4())


class TestRelease:
    """Release is one-way and freezes the result."""

    @pytest.mark.asyncio
    async def test_release_notifies_group(self, seed, scoring, evaluate_document, runtime, notifications, email):
        doc_type = await seed.document_type()
        project = await seed.project()
        await evaluate_document(project, doc_type)
        await scoring.compute_final_result(project.id)
        await runtime.dispatcher.drain()
        notifications.sent.clear()
        email.sent.clear()

        released = await scoring.release_final_result(project.id, project.supervisor_id)
        await runtime.dispatcher.drain()

        assert released.released is True
        assert released.state is ResultState.RELEASED
        assert released.released_by == project.supervisor_id
        assert released.released_at is not None
        assert sorted(n[0] for n in notifications.of_type(NotificationType.RESULT_RELEASED)) == sorted(
            project.group
        )
        (recipients, _, data), = email.of_template(EmailTemplate.RESULT_RELEASED)
        assert sorted(recipients) == sorted(project.group)
        assert Decimal(data["total_score"]) == Decimal("80")

    @pytest.mark.asyncio
    async def test_released_result_is_frozen(self, seed, scoring, evaluate_document):
        doc_type = await seed.document_type()
        project = await seed.project()
        await evaluate_document(project, doc_type)
        await scoring.compute_final_result(project.id)
        await scoring.release_final_result(project.id)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await scoring.compute_final_result(project.id)
        assert exc_info.value.code == "RESULT_RELEASED"

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await scoring.release_final_result(project.id)
        assert exc_info.value.code == "RESULT_ALREADY_RELEASED"

    @pytest.mark.asyncio
    async def test_concurrent_release_has_one_winner(self, seed, scoring, evaluate_document, runtime, notifications):
        doc_type = await seed.document_type()
        project = await seed.project()
        await evaluate_document(project, doc_type)
        await scoring.compute_final_result(project.id)
        await runtime.dispatcher.drain()
        notifications.sent.clear()

        outcomes = await asyncio.gather(
            scoring.release_final_result(project.id),
            scoring.release_final_result(project.id),
            return_exceptions=True,
        )
        await runtime.dispatcher.drain()

        errors = [o for o in outcomes if isinstance(o, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], BusinessRuleViolation)
        assert errors[0].code == "RESULT_ALREADY_RELEASED"
        assert len(notifications.of_type(NotificationType.RESULT_RELEASED)) == len(project.group)

    @pytest.mark.asyncio
    async def test_release_requires_compute(self, seed, scoring):
        project = await seed.project()

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await scoring.release_final_result(project.id)
        assert exc_info.value.code == "RESULT_NOT_COMPUTED"


class TestReadResults:
    """Committee and student views."""

    @pytest.mark.asyncio
    async def test_student_view_waits_for_release(self, seed, scoring, evaluate_document):
        doc_type = await seed.document_type()
        project = await seed.project()

        with pytest.raises(NotFound):
            await scoring.get_final_result(project.id)

        await evaluate_document(project, doc_type)
        await scoring.compute_final_result(project.id)

        assert (await scoring.get_final_result(project.id)).state is ResultState.COMPUTED
        with pytest.raises(NotFound):
            await scoring.get_released_result(project.id)

        await scoring.release_final_result(project.id)
        released = await scoring.get_released_result(project.id)
        assert released.total_score == Decimal("80")
