"""Semantic-analysis payload.

The analysis stage yields a structured record, but a row may also hold
the raw text a collaborator returned (or a user pasted) that has not been
parsed yet. Both forms are modelled as a tagged variant so callers never
have to guess which one they hold.
"""

import re
from typing import Annotated, Any, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class AnalysisRecord(BaseModel):
    """Structured semantic analysis of one utterance.

    Only the fields the pipeline reads are declared; everything else a
    generator returns is kept verbatim.
    """

    model_config = ConfigDict(extra="allow")

    utterance: Optional[str] = None
    lang: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    frames: list[dict[str, Any]] = Field(default_factory=list)
    nsm_explications: dict[str, Any] = Field(default_factory=dict)
    logical_form: dict[str, Any] = Field(default_factory=dict)
    pragmatics: dict[str, Any] = Field(default_factory=dict)
    visual_guidelines: dict[str, Any] = Field(default_factory=dict)

    @property
    def intent(self) -> Optional[str]:
        return self.metadata.get("intent")

    def to_payload(self) -> dict:
        return self.model_dump(exclude_none=True)


class RawAnalysis(BaseModel):
    """Unparsed analysis text awaiting normalization."""
    kind: Literal["raw"] = "raw"
    text: str


class ParsedAnalysis(BaseModel):
    """Analysis that has been validated into an AnalysisRecord."""
    kind: Literal["parsed"] = "parsed"
    record: AnalysisRecord


Analysis = Annotated[Union[RawAnalysis, ParsedAnalysis], Field(discriminator="kind")]


def coerce_analysis(value: Any) -> Any:
    """Map plain payloads onto the tagged variant.

    Strings become ``RawAnalysis`` and mappings become ``ParsedAnalysis``.
    Values that are already tagged pass through unchanged.
    """
    if value is None or isinstance(value, (RawAnalysis, ParsedAnalysis)):
        return value
    if isinstance(value, AnalysisRecord):
        return ParsedAnalysis(record=value)
    if isinstance(value, str):
        return RawAnalysis(text=value)
    if isinstance(value, dict):
        kind = value.get("kind")
        if kind == "raw" and set(value) <= {"kind", "text"}:
            return value
        if kind == "parsed" and set(value) <= {"kind", "record"}:
            return value
        return ParsedAnalysis(record=AnalysisRecord.model_validate(value))
    return value


def analysis_payload(value: Union[RawAnalysis, ParsedAnalysis, None]) -> Union[str, dict, None]:
    """Plain form of an analysis for documents: text or a mapping."""
    if value is None:
        return None
    if isinstance(value, RawAnalysis):
        return value.text
    return value.record.to_payload()


def extract_json_text(text: str) -> str:
    """Strip code fences and surrounding chatter from a JSON reply.

    Returns the outermost ``{...}`` or ``[...]`` span, whichever starts
    first, or the stripped text when neither is found.
    """
    if not text:
        return "{}"
    cleaned = re.sub(r"^```(?:json|svg|xml)?\s*", "", text.strip(), flags=re.IGNORECASE)
    cleaned = re.sub(r"\s*```$", "", cleaned).strip()

    first_brace, last_brace = cleaned.find("{"), cleaned.rfind("}")
    first_bracket, last_bracket = cleaned.find("["), cleaned.rfind("]")
    if first_brace != -1 and (first_bracket == -1 or first_brace < first_bracket):
        start, end = first_brace, last_brace
    elif first_bracket != -1:
        start, end = first_bracket, last_bracket
    else:
        return cleaned
    if end > start:
        return cleaned[start:end + 1]
    return cleaned
