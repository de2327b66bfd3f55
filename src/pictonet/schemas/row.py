"""Row: the unit of pipeline work, one per source utterance.

A row carries the payload of every stage together with an explicit status
per stage. Status is never inferred from payload presence: a stage may
hold a payload while ``outdated``, and ``idle`` means the stage never ran
(or its result was discarded).

Input accepts the legacy document keys (``UTTERANCE``, ``NLU``, ``prompt``,
``nluStatus`` ...) as aliases; ``to_document()`` writes them back so an
exported project stays readable by older clients.
"""

from enum import Enum
from typing import Any, Optional
from pydantic import Field, computed_field, field_serializer, field_validator

from pictonet.schemas.base import PictonetBaseModel
from pictonet.schemas.analysis import Analysis, ParsedAnalysis, analysis_payload, coerce_analysis
from pictonet.schemas.elements import ElementTree
from pictonet.schemas.evaluation import Evaluation


class Stage(str, Enum):
    ANALYSIS = "analysis"
    COMPOSITION = "composition"
    RENDERING = "rendering"
    EVALUATION = "evaluation"


class StepStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    OUTDATED = "outdated"


# Dependency order of the generation stages
GENERATION_STAGES = (Stage.ANALYSIS, Stage.COMPOSITION, Stage.RENDERING)

STATUS_FIELD = {
    Stage.ANALYSIS: "analysis_status",
    Stage.COMPOSITION: "composition_status",
    Stage.RENDERING: "rendering_status",
    Stage.EVALUATION: "evaluation_status",
}

DURATION_FIELD = {
    Stage.ANALYSIS: "analysis_duration",
    Stage.COMPOSITION: "composition_duration",
    Stage.RENDERING: "rendering_duration",
    Stage.EVALUATION: "evaluation_duration",
}

PAYLOAD_FIELDS = {
    Stage.ANALYSIS: ("analysis",),
    Stage.COMPOSITION: ("elements", "spatial_prompt"),
    Stage.RENDERING: ("bitmap",),
    Stage.EVALUATION: ("evaluation",),
}

PLACEHOLDER_UTTERANCE = "Nueva frase..."


class Row(PictonetBaseModel):
    """One utterance and everything the pipeline derived from it."""

    model_config = PictonetBaseModel.model_config.copy()
    # Legacy keys on input, unknown keys from older documents dropped
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    id: str = Field(min_length=1)
    utterance: str = Field(alias="UTTERANCE")

    analysis: Optional[Analysis] = Field(None, alias="NLU")
    elements: Optional[ElementTree] = None
    spatial_prompt: Optional[str] = Field(None, alias="prompt")
    bitmap: Optional[str] = None
    evaluation: Optional[Evaluation] = None
    raw_svg: Optional[str] = Field(None, alias="rawSvg")

    analysis_status: StepStatus = Field(StepStatus.IDLE, alias="nluStatus")
    composition_status: StepStatus = Field(StepStatus.IDLE, alias="visualStatus")
    rendering_status: StepStatus = Field(StepStatus.IDLE, alias="bitmapStatus")
    evaluation_status: StepStatus = Field(StepStatus.IDLE, alias="evalStatus")

    analysis_duration: Optional[float] = Field(None, alias="nluDuration")
    composition_duration: Optional[float] = Field(None, alias="visualDuration")
    rendering_duration: Optional[float] = Field(None, alias="bitmapDuration")
    evaluation_duration: Optional[float] = Field(None, alias="evalDuration")

    @field_validator("analysis", mode="before")
    @classmethod
    def tag_analysis(cls, v):
        return coerce_analysis(v)

    @field_validator(
        "analysis_status", "composition_status", "rendering_status", "evaluation_status",
        mode="before",
    )
    @classmethod
    def default_status(cls, v):
        if v is None or v == "":
            return StepStatus.IDLE
        return v

    @field_serializer("analysis")
    def serialize_analysis(self, value) -> Any:
        return analysis_payload(value)

    @computed_field
    @property
    def status(self) -> str:
        """Aggregate of the three generation stages."""
        statuses = [self.status_of(stage) for stage in GENERATION_STAGES]
        if StepStatus.PROCESSING in statuses:
            return StepStatus.PROCESSING.value
        if StepStatus.ERROR in statuses:
            return StepStatus.ERROR.value
        if all(s == StepStatus.COMPLETED for s in statuses):
            return StepStatus.COMPLETED.value
        return StepStatus.IDLE.value

    def status_of(self, stage: Stage) -> StepStatus:
        return StepStatus(getattr(self, STATUS_FIELD[Stage(stage)]))

    def has_payload(self, stage: Stage) -> bool:
        """True when every payload field of ``stage`` holds something usable."""
        for name in PAYLOAD_FIELDS[Stage(stage)]:
            value = getattr(self, name)
            if value is None or value == "":
                return False
            if isinstance(value, ElementTree) and value.is_empty():
                return False
        return True

    @property
    def parsed_analysis(self) -> Optional[ParsedAnalysis]:
        if isinstance(self.analysis, ParsedAnalysis):
            return self.analysis
        return None

    def to_document(self) -> dict:
        """Serialize with legacy document keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
