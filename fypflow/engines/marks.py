"""
Score validation shared by supervisor and committee marking.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from fypflow.errors import ValidationError

MIN_SCORE = Decimal("0")
MAX_SCORE = Decimal("100")


def validate_score(value: Any, field: str = "score") -> Decimal:
    """Coerce a score to Decimal and check it lies in [0, 100]."""
    try:
        score = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{field} must be a number", details={"field": field}) from exc
    if not score.is_finite() or score < MIN_SCORE or score > MAX_SCORE:
        raise ValidationError(
            f"{field} must be between {MIN_SCORE} and {MAX_SCORE}",
            details={"field": field, "value": str(value)},
        )
    return score
