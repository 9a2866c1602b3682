"""Unit tests for score arithmetic and evaluation completion."""

from decimal import Decimal

import pytest

from fypflow.engines.evaluation.aggregator import (
    COMMITTEE_ROSTER,
    RECORDED_MARKS,
    finalized_average,
    is_complete,
)
from fypflow.engines.marks import validate_score
from fypflow.engines.scoring.engine import quantize_score, total_score, weighted_contribution
from fypflow.errors import ValidationError
from fypflow.kernel.models import EvaluationMark


def _mark(score: str, is_final: bool) -> EvaluationMark:
    return EvaluationMark(score=Decimal(score), is_final=is_final)


class TestWeightedContribution:
    """Tests for the per-document weighting."""

    def test_twenty_eighty_split(self):
        # 80 * 0.2 + 80 * 0.8
        assert weighted_contribution(Decimal("80"), 20, Decimal("80"), 80) == Decimal("80")

    def test_mixed_scores(self):
        result = weighted_contribution(Decimal("90"), 20, Decimal("75"), 80)
        assert result == Decimal("78")

    def test_total_is_mean(self):
        assert total_score([Decimal("80"), Decimal("70")]) == Decimal("75")

    def test_total_needs_contributions(self):
        with pytest.raises(ValueError):
            total_score([])

    def test_quantize_half_up(self):
        assert quantize_score(Decimal("78.12345")) == Decimal("78.1235")
        assert quantize_score(Decimal("1") / Decimal("3")) == Decimal("0.3333")

    def test_exact_thirds(self):
        contributions = [Decimal("1") / Decimal("3")] * 3
        assert quantize_score(total_score(contributions)) == Decimal("0.3333")


class TestFinalizedAverage:
    """Drafts never count toward the committee average."""

    def test_drafts_excluded(self):
        marks = [_mark("80", False), _mark("90", True)]
        assert finalized_average(marks) == Decimal("90")

    def test_mean_of_finals(self):
        marks = [_mark("70", True), _mark("85", True)]
        assert finalized_average(marks) == Decimal("77.5")

    def test_no_finals(self):
        assert finalized_average([_mark("80", False)]) is None
        assert finalized_average([]) is None


class TestIsComplete:
    """Completion policies."""

    def test_no_marks_never_complete(self):
        assert is_complete(0, 0, RECORDED_MARKS) is False

    def test_recorded_marks(self):
        assert is_complete(2, 2, RECORDED_MARKS) is True
        assert is_complete(2, 1, RECORDED_MARKS) is False

    def test_committee_roster(self):
        assert is_complete(2, 2, COMMITTEE_ROSTER, roster_size=3) is False
        assert is_complete(3, 3, COMMITTEE_ROSTER, roster_size=3) is True


class TestValidateScore:
    """Score bounds shared by supervisor and committee marks."""

    @pytest.mark.parametrize("value", ["0", "100", "55.5", 72, Decimal("99.99")])
    def test_accepts_range(self, value):
        assert validate_score(value) == Decimal(str(value))

    @pytest.mark.parametrize("value", ["-1", "100.01", "abc", "NaN"])
    def test_rejects_out_of_range(self, value):
        with pytest.raises(ValidationError):
            validate_score(value)

    def test_field_name_in_details(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_score("101", "marks")
        assert exc_info.value.details["field"] == "marks"
