"""Data models for element-level UI change detection.

This module contains the enums and dataclasses shared by the diff engine,
classifier, matcher and pipeline: element snapshots, change records, match
results and the comprehensive analysis result.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .structural_analyzer import StructuralAnalysis


class Classification(str, Enum):
    """Severity tier assigned to a change record."""

    CRITICAL = "critical"  # Functionally significant
    COSMETIC = "cosmetic"  # Visible but non-functional
    NOISE = "noise"  # Below reporting threshold
    POTENTIAL = "potential"  # Element pairing itself was uncertain


class StyleCategory(str, Enum):
    """Buckets used to score style property changes."""

    DIMENSION = "dimension"
    TYPOGRAPHY = "typography"
    COLOR = "color"
    VISIBILITY = "visibility"
    OTHER = "other"


class ChangeType:
    """Values of ``ChangeRecord.change_type``."""

    TEXT = "text"
    ATTRIBUTE = "attribute"
    LAYOUT = "layout"
    STRUCTURAL = "structural"
    ELEMENT_ADDED = "element_added"
    ELEMENT_REMOVED = "element_removed"
    STYLE_PREFIX = "style_"

    @classmethod
    def style(cls, category: StyleCategory | str) -> str:
        value = category.value if isinstance(category, StyleCategory) else category
        return f"{cls.STYLE_PREFIX}{value}"


@dataclass(eq=False)
class ElementSnapshot:
    """One captured element of a rendered page.

    Compared by identity so snapshots can key dictionaries during matching.
    """

    selector: str
    tag_name: str
    text: str | None = None
    attributes: dict[str, str] = field(default_factory=dict)
    styles: dict[str, str] = field(default_factory=dict)
    position: dict[str, Any] = field(default_factory=dict)  # x, y, width, height
    fingerprint: str | None = None
    in_viewport: bool = True

    @property
    def element_id(self) -> str | None:
        return (self.attributes.get("id") or "").strip() or None

    @property
    def first_class(self) -> str | None:
        classes = (self.attributes.get("class") or "").split()
        return classes[0] if classes else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the crawler JSON shape."""
        return {
            "selector": self.selector,
            "tagName": self.tag_name,
            "text": self.text,
            "attributes": dict(self.attributes),
            "styles": dict(self.styles),
            "position": dict(self.position),
            "fingerprint": self.fingerprint,
            "inViewport": self.in_viewport,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ElementSnapshot":
        """Create instance from crawler JSON (camelCase) or snake_case keys."""
        return cls(
            selector=data.get("selector") or "",
            tag_name=(data.get("tagName") or data.get("tag_name") or "").lower(),
            text=data.get("text"),
            attributes={k: str(v) for k, v in (data.get("attributes") or {}).items() if v is not None},
            styles={k: str(v) for k, v in (data.get("styles") or {}).items() if v is not None},
            position=dict(data.get("position") or {}),
            fingerprint=data.get("fingerprint"),
            in_viewport=data.get("inViewport", data.get("in_viewport", True)),
        )


@dataclass
class ChangeRecord:
    """A single detected difference between a baseline and current element."""

    element: str
    property: str
    old_value: str | None
    new_value: str | None
    change_type: str
    magnitude: float
    classification: Classification | None = None
    match_confidence: float | None = None
    structural_context: str | None = None

    @property
    def is_structural(self) -> bool:
        return self.change_type == ChangeType.STRUCTURAL

    def to_dict(self) -> dict[str, Any]:
        """Convert to the report-facing representation."""
        return {
            "element": self.element,
            "property": self.property,
            "oldValue": self.old_value,
            "newValue": self.new_value,
            "changeType": self.change_type,
            "magnitude": self.magnitude,
            "classification": self.classification.value if self.classification else None,
            "matchConfidence": self.match_confidence,
            "structuralContext": self.structural_context,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChangeRecord":
        """Create instance from dictionary."""
        classification = data.get("classification")
        return cls(
            element=data["element"],
            property=data["property"],
            old_value=data.get("oldValue"),
            new_value=data.get("newValue"),
            change_type=data["changeType"],
            magnitude=float(data.get("magnitude", 0.0)),
            classification=Classification(classification) if classification else None,
            match_confidence=data.get("matchConfidence"),
            structural_context=data.get("structuralContext"),
        )


@dataclass
class MatchedPair:
    """A baseline element paired with its current counterpart."""

    baseline: ElementSnapshot
    current: ElementSnapshot
    confidence: float


@dataclass
class MatchResult:
    """Output of an element matcher."""

    matched_pairs: list[MatchedPair] = field(default_factory=list)
    removed: list[ElementSnapshot] = field(default_factory=list)
    added: list[ElementSnapshot] = field(default_factory=list)

    def confidence_for(self, baseline: ElementSnapshot) -> float | None:
        for pair in self.matched_pairs:
            if pair.baseline is baseline:
                return pair.confidence
        return None

    def get_summary(self) -> str:
        return (
            f"{len(self.matched_pairs)} matched, "
            f"{len(self.removed)} removed, {len(self.added)} added"
        )


@dataclass
class ComprehensiveAnalysisResult:
    """Result of the structurally-enriched detection mode."""

    changes: list[ChangeRecord]
    old_structural_analysis: "StructuralAnalysis"
    new_structural_analysis: "StructuralAnalysis"
    processing_time_ms: float
    elements_analyzed: int
    changes_per_second: float

    def count_by_classification(self) -> dict[str, int]:
        counts = {c.value: 0 for c in Classification}
        for change in self.changes:
            if change.classification is not None:
                counts[change.classification.value] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "changes": [c.to_dict() for c in self.changes],
            "oldStructuralAnalysis": self.old_structural_analysis.to_dict(),
            "newStructuralAnalysis": self.new_structural_analysis.to_dict(),
            "processingTimeMs": self.processing_time_ms,
            "elementsAnalyzed": self.elements_analyzed,
            "changesPerSecond": self.changes_per_second,
            "summary": self.count_by_classification(),
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)
