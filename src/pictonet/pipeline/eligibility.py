"""Eligibility gate for vector structuring.

A pure predicate over the row's current payloads. It is evaluated on
demand every time and never cached.
"""

from dataclasses import dataclass
from typing import Optional

from pictonet.schemas.row import Row

__all__ = ['Eligibility', 'check_eligibility', 'MIN_AVERAGE_SCORE']

MIN_AVERAGE_SCORE = 4.0


@dataclass(frozen=True)
class Eligibility:
    eligible: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.eligible


def check_eligibility(row: Row) -> Eligibility:
    """Decide whether vector structuring may run for ``row``.

    Checks, in order, returning the first that fails:

    1. rendered image present
    2. analysis present and parsed (raw text does not count)
    3. element tree non-empty
    4. evaluation present
    5. evaluation average >= 4.0
    """
    if not row.bitmap:
        return Eligibility(False, "rendered image required")

    if row.parsed_analysis is None:
        return Eligibility(False, "analysis required")

    if row.elements is None or row.elements.is_empty():
        return Eligibility(False, "composition elements required")

    if row.evaluation is None:
        return Eligibility(False, "evaluation required")

    average = row.evaluation.average
    if average < MIN_AVERAGE_SCORE:
        return Eligibility(
            False,
            f"evaluation average ({average:.2f}) must be >= {MIN_AVERAGE_SCORE:.1f}",
        )

    return Eligibility(True)
