"""
Judging rubric definition.

One title question plus nine rated criteria, each with a rating and a
free-text note. The same list drives the review table columns, the per-page
rubric table, the admin viewer and the PDF export, always in this order.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class Criterion:
    key: str
    label: str
    description: str
    max_rating: int = 5

    @property
    def rating_field(self) -> str:
        return f"{self.key}_rating"

    @property
    def notes_field(self) -> str:
        return f"{self.key}_notes"


TITLE_FIELD = "title_response"

RUBRIC_CRITERIA: tuple[Criterion, ...] = (
    Criterion("plot", "Plot", "Events contain conflict, logic, and flow"),
    Criterion("characters", "Characters", "Authentic, unique characters with satisfying arcs"),
    Criterion("concept_originality", "Concept/Originality", "Fresh story with unexpected details"),
    Criterion("structure", "Structure", "Connective, logical story that builds emotionally"),
    Criterion("dialogue", "Dialogue", "Believable, unique character voices"),
    Criterion("format_pacing", "Format/Pacing", "Professional formatting and appropriate pacing"),
    Criterion("theme", "Theme/Tone", "Interesting perspective on human issues"),
    Criterion("catharsis", "Catharsis", "Satisfactory ending with emotional completion"),
    Criterion("production_budget", "Production Budget", "Budget considerations (1=High, 6=Low)", max_rating=6),
)

CRITERIA_BY_KEY = {c.key: c for c in RUBRIC_CRITERIA}

RATING_FIELDS = tuple(c.rating_field for c in RUBRIC_CRITERIA)
NOTES_FIELDS = tuple(c.notes_field for c in RUBRIC_CRITERIA)

# title first, then rating/notes pairs in criterion order
RUBRIC_FIELDS: tuple[str, ...] = (TITLE_FIELD,) + tuple(
    f for c in RUBRIC_CRITERIA for f in (c.rating_field, c.notes_field)
)

REQUIRED_FIELDS: tuple[str, ...] = (TITLE_FIELD, "plot_rating", "characters_rating")


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def empty_rubric() -> dict[str, Any]:
    return {field: None for field in RUBRIC_FIELDS}


def extract_rubric(source: Any) -> dict[str, Any]:
    """Pull the rubric fields out of an ORM row or a mapping."""
    if isinstance(source, Mapping):
        return {field: source.get(field) for field in RUBRIC_FIELDS}
    return {field: getattr(source, field, None) for field in RUBRIC_FIELDS}


def has_any_value(values: Mapping[str, Any]) -> bool:
    return any(not _is_empty(values.get(field)) for field in RUBRIC_FIELDS)


def missing_required(values: Mapping[str, Any]) -> list[str]:
    return [field for field in REQUIRED_FIELDS if _is_empty(values.get(field))]


def compile_feedback(values: Mapping[str, Any]) -> str:
    """Join the non-empty criterion notes, each prefixed with its label.

    >>> compile_feedback({"plot_notes": "Tight.", "dialogue_notes": "Stilted."})
    'Plot: Tight.\\n\\nDialogue: Stilted.'
    """
    blocks = []
    for criterion in RUBRIC_CRITERIA:
        note = values.get(criterion.notes_field)
        if _is_empty(note):
            continue
        blocks.append(f"{criterion.label}: {str(note).strip()}")
    return "\n\n".join(blocks)


def sections(values: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Ordered display sections: the title answer, then one entry per criterion."""
    out: list[dict[str, Any]] = [
        {"key": "title", "label": "Title", "response": values.get(TITLE_FIELD)},
    ]
    for criterion in RUBRIC_CRITERIA:
        out.append({
            "key": criterion.key,
            "label": criterion.label,
            "description": criterion.description,
            "rating": values.get(criterion.rating_field),
            "max_rating": criterion.max_rating,
            "notes": values.get(criterion.notes_field),
        })
    return out
