"""Manual quality evaluation of a rendered pictogram."""

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, model_validator

AXES = ("semantics", "syntactics", "pragmatics", "clarity", "universality", "aesthetics")

NEUTRAL_SCORE = 3

# Validation context for scores a user submits: every axis must be present.
SUBMITTED = {"submitted": True}


class Evaluation(BaseModel):
    """Six Likert (1-5) axes plus a free-text rationale.

    ``Evaluation()`` is the neutral form shown before scoring, with every axis
    at the midpoint. Submitted scores are validated with the ``SUBMITTED``
    context (see :meth:`submitted`) and must name all six axes. The
    aggregate score is the arithmetic mean of the six axes.
    """

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    semantics: int = Field(NEUTRAL_SCORE, ge=1, le=5)
    syntactics: int = Field(NEUTRAL_SCORE, ge=1, le=5)
    pragmatics: int = Field(NEUTRAL_SCORE, ge=1, le=5)
    clarity: int = Field(NEUTRAL_SCORE, ge=1, le=5)
    universality: int = Field(NEUTRAL_SCORE, ge=1, le=5)
    aesthetics: int = Field(NEUTRAL_SCORE, ge=1, le=5)
    reasoning: str = ""

    @model_validator(mode="before")
    @classmethod
    def _require_all_axes(cls, data, info: ValidationInfo):
        if info.context and info.context.get("submitted") and isinstance(data, dict):
            missing = [axis for axis in AXES if data.get(axis) is None]
            if missing:
                raise ValueError(f"Missing scores for: {', '.join(missing)}")
        return data

    @classmethod
    def submitted(cls, data) -> "Evaluation":
        """Validate user-submitted scores; no axis may be omitted."""
        if isinstance(data, cls):
            return data
        return cls.model_validate(data, context=SUBMITTED)

    @classmethod
    def from_scores(cls, scores, reasoning: str = "") -> "Evaluation":
        """Build from six scores given in axis order."""
        scores = list(scores)
        if len(scores) != len(AXES):
            raise ValueError(f"Expected {len(AXES)} scores ({', '.join(AXES)}), got {len(scores)}")
        return cls(reasoning=reasoning, **dict(zip(AXES, scores)))

    def scores(self) -> dict[str, int]:
        return {axis: getattr(self, axis) for axis in AXES}

    @property
    def total(self) -> int:
        return sum(self.scores().values())

    @property
    def average(self) -> float:
        return self.total / len(AXES)
