"""Helpers for structured SVG output.

Structured pictograms carry their presentation in an embedded stylesheet
with two classes (``f`` foreground, ``k`` key) and their meaning in a JSON
metadata block. These helpers build both and clean up model replies.
"""

import re
from datetime import datetime, timezone
from typing import Optional

from pictonet.schemas.analysis import AnalysisRecord
from pictonet.schemas.config import GlobalConfig, SvgStyle
from pictonet.schemas.elements import ElementTree
from pictonet.schemas.evaluation import Evaluation

__all__ = [
    'ROOT_ELEMENT',
    'MAX_PRIMES',
    'generate_stylesheet',
    'sanitize_svg',
    'clean_svg_response',
    'extract_nsm_primes',
    'build_concepts',
    'build_metadata',
]

ROOT_ELEMENT = "pictograma"
MAX_PRIMES = 5

_PRESENTATION_ATTR = re.compile(
    r"""(<(?:path|rect|circle|ellipse|line|polyline|polygon|g)[^>]*?)\s+"""
    r"""(?:fill|stroke|stroke-width|style|opacity)=["'][^"']*["']""",
    re.IGNORECASE,
)

_CAPS_WORD = re.compile(r"\b[A-Z]+\b")


def _class_rule(name: str, style: SvgStyle) -> str:
    opacity = 1 if style.opacity is None else style.opacity
    stroke_width = int(style.stroke_width) if float(style.stroke_width).is_integer() else style.stroke_width
    return (
        f".{name} {{\n"
        f"  fill: {style.fill};\n"
        f"  fill-opacity: {opacity};\n"
        f"  stroke: {style.stroke};\n"
        f"  stroke-width: {stroke_width};\n"
        f"  stroke-opacity: {opacity};\n"
        f"  stroke-linecap: {style.stroke_linecap or 'round'};\n"
        f"  stroke-linejoin: {style.stroke_linejoin or 'round'};\n"
        f"}}\n"
    )


def generate_stylesheet(config: GlobalConfig) -> str:
    """CSS for the ``f`` and ``k`` classes, honoring ``config.svg_styles``."""
    styles = config.svg_styles
    f = styles.get("f") or SvgStyle(fill="#000")
    k = styles.get("k") or SvgStyle(fill="#fff")
    rules = [_class_rule("f", f), _class_rule("k", k)]
    # Extra user classes come after the two standard ones
    for name in sorted(set(styles) - {"f", "k"}):
        rules.append(_class_rule(name, styles[name]))
    rules.append(
        'g[role="group"]:focus {\n'
        "  outline: 2px solid #0066cc;\n"
        "  outline-offset: 2px;\n"
        "}\n"
    )
    return "\n".join(rules)


def sanitize_svg(svg: str) -> str:
    """Strip inline presentation attributes from shape elements.

    Each pass removes at most one attribute per tag; repeat until a pass
    changes nothing.
    """
    if not svg:
        return ""
    clean, removed = _PRESENTATION_ATTR.subn(r"\1", svg)
    while removed:
        clean, removed = _PRESENTATION_ATTR.subn(r"\1", clean)
    return clean


def clean_svg_response(text: str) -> str:
    """Drop code fences and anything outside the ``<svg>...</svg>`` span."""
    if not text:
        return ""
    cleaned = text.strip()
    cleaned = re.sub(r"^```(?:svg|xml|html)?\s*", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"\s*```$", "", cleaned).strip()

    start = cleaned.find("<svg")
    end = cleaned.rfind("</svg>")
    if start != -1 and end != -1:
        return cleaned[start:end + len("</svg>")]
    return cleaned


def extract_nsm_primes(record: AnalysisRecord) -> list[str]:
    """Upper-case NSM primes named in the explications, at most five.

    Falls back to SOMEONE / DO / SOMETHING derived from the visual
    guidelines when the explications name none.
    """
    primes: list[str] = []

    def add(word: str) -> None:
        if word not in primes:
            primes.append(word)

    for key, value in record.nsm_explications.items():
        if key == key.upper():
            add(key)
        for word in _CAPS_WORD.findall(str(value)):
            add(word)

    if not primes:
        guidelines = record.visual_guidelines
        if guidelines.get("focus_actor"):
            add("SOMEONE")
        if guidelines.get("action_core"):
            add("DO")
        if guidelines.get("object_core"):
            add("SOMETHING")

    return primes[:MAX_PRIMES]


def _concept_id(label: str) -> str:
    return "g-" + re.sub(r"[^a-z0-9]", "-", label.lower())


def build_concepts(elements: ElementTree, record: AnalysisRecord) -> list[dict]:
    """Semantic role of every element, plus the implicit action.

    An element whose label contains the focus actor is the ``Agent``, one
    containing the core object is the ``Patient``, anything else is a
    ``Theme``. The root ``pictograma`` node is skipped.
    """
    guidelines = record.visual_guidelines
    actor = str(guidelines.get("focus_actor") or "").lower()
    obj = str(guidelines.get("object_core") or "").lower()

    concepts = []
    for index, _depth in elements.walk():
        label = elements.nodes[index].label
        if label == ROOT_ELEMENT:
            continue
        role, prime = "Theme", "SOMETHING"
        if actor and actor in label.lower():
            role, prime = "Agent", "SOMEONE"
        elif obj and obj in label.lower():
            role, prime = "Patient", "SOMETHING"
        concepts.append({
            "id": _concept_id(label),
            "role": role,
            "label": label.replace("_", " "),
            "nsmPrime": prime,
        })

    action = guidelines.get("action_core")
    if action:
        agent = next((c for c in concepts if c["role"] == "Agent"), None)
        concepts.append({
            "role": "Action",
            "label": f"{action} (implicit action)",
            "nsmPrime": "DO",
            "implicit": True,
            "performedBy": agent["id"] if agent else None,
            "note": "Action is implicit, performed by the Agent through posture or gesture",
        })
    return concepts


def build_metadata(record: AnalysisRecord, elements: ElementTree, evaluation: Evaluation,
                   utterance: str, config: GlobalConfig,
                   generated_at: Optional[datetime] = None) -> dict:
    """JSON block embedded in the ``<metadata>`` of a structured SVG."""
    primes = extract_nsm_primes(record)
    timestamp = (generated_at or datetime.now(timezone.utc)).isoformat()
    guidelines = record.visual_guidelines

    if guidelines:
        visual_description = " ".join([
            str(guidelines.get("focus_actor") or "Element"),
            str(guidelines.get("action_core") or "interacts with"),
            str(guidelines.get("object_core") or "object"),
        ])
    else:
        visual_description = utterance

    return {
        "version": "1.0.0",
        "utterance": utterance,
        "nsm": {
            "primes": primes,
            "gloss": " ".join(primes) + " (derived from NLU analysis)",
        },
        "concepts": build_concepts(elements, record),
        "accessibility": {
            "cognitiveDescription": utterance,
            "visualDescription": visual_description,
        },
        "provenance": {
            "generator": "PictoNet",
            "generatedAt": timestamp,
            "licence": config.license or "CC BY 4.0",
        },
        "vcsci": {
            "validated": True,
            "validatedAt": timestamp,
            "validator": config.author or "PictoNet",
            "clarityScore": evaluation.clarity,
            "comments": evaluation.reasoning or f"VCSCI average: {evaluation.average:.2f}",
        },
    }
