"""Per-element diffing.

Compares one baseline element with its current counterpart across text,
attributes, styles and position, producing one classified ChangeRecord per
changed facet.

Magnitudes are always in [0, 1]:
- text: normalized Levenshtein distance
- attributes: 0.5 when both sides exist, 1.0 when one side is missing
- styles: fixed importance for colors, relative numeric change for
  dimensions, the attribute rule otherwise
- position: relative numeric change per axis
"""

import re
from typing import Any, Optional

import structlog
from rapidfuzz.distance import Levenshtein

from src.config import DetectionConfig

from .classifier import ChangeClassifier
from .models import ChangeRecord, ChangeType, ElementSnapshot, StyleCategory

logger = structlog.get_logger()

_NUMBER_RE = re.compile(r"[0-9.]+")

POSITION_AXES = ("x", "y")

# Ordered: the first matching group wins.
_STYLE_HEURISTICS: list[tuple[StyleCategory, tuple[str, ...]]] = [
    (
        StyleCategory.DIMENSION,
        ("width", "height", "margin", "padding", "border", "top", "left", "bottom", "right"),
    ),
    (StyleCategory.TYPOGRAPHY, ("font", "text", "line-height", "letter-spacing")),
    (StyleCategory.COLOR, ("color", "background")),
    (StyleCategory.VISIBILITY, ("opacity", "display", "visibility", "z-index")),
]


def calculate_text_similarity(old: Optional[str], new: Optional[str]) -> float:
    """Similarity in [0, 1] as 1 minus the length-normalized edit distance.

    ``None`` is treated as the empty string. Two empty strings are identical;
    exactly one empty string gives 0.0.
    """
    old = old or ""
    new = new or ""
    if old == new:
        return 1.0
    if not old or not new:
        return 0.0
    distance = Levenshtein.distance(old, new)
    return 1.0 - distance / max(len(old), len(new))


def _first_number(value: Any) -> Optional[float]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    match = _NUMBER_RE.search(str(value))
    if not match:
        return None
    try:
        return float(match.group())
    except ValueError:
        # e.g. "1.2.3" or a lone "."
        return None


def calculate_numeric_change(old: Any, new: Any) -> Optional[float]:
    """Relative change ``|new - old| / old`` (``|new|`` when old is 0), clamped to 1.

    Reads the first numeric token of each side; a missing side counts as "0".
    Returns None when either side has no parseable number.
    """
    old_num = _first_number("0" if old is None else old)
    new_num = _first_number("0" if new is None else new)
    if old_num is None or new_num is None:
        return None
    if old_num == 0:
        change = abs(new_num)
    else:
        change = abs(new_num - old_num) / abs(old_num)
    return min(change, 1.0)


def _presence_magnitude(old: Optional[str], new: Optional[str]) -> float:
    return 0.5 if old is not None and new is not None else 1.0


class ElementDiffEngine:
    """Detect and score the changes between two versions of one element."""

    def __init__(
        self,
        config: Optional[DetectionConfig] = None,
        classifier: Optional[ChangeClassifier] = None,
    ):
        self.config = config or DetectionConfig()
        self.classifier = classifier or ChangeClassifier(self.config)
        self.comparison = self.config.comparison_settings
        self.capture = self.config.capture_settings
        self._category_overrides = {
            prop: category
            for category, props in self.comparison.style_categories.items()
            for prop in props
        }
        self.log = logger.bind(component="diff_engine")

    def get_style_category(self, prop: str) -> str:
        """Category for a style property: configured mapping first, then heuristics."""
        if prop in self._category_overrides:
            return self._category_overrides[prop]
        for category, needles in _STYLE_HEURISTICS:
            if any(needle in prop for needle in needles):
                return category.value
        return StyleCategory.OTHER.value

    def should_ignore_attribute(self, old: Optional[str], new: Optional[str]) -> bool:
        """Check the attribute values against the configured ignore patterns."""
        values = [v for v in (old, new) if v is not None]
        for pattern in self.capture.ignore_attribute_patterns:
            try:
                if any(re.fullmatch(pattern, v) for v in values):
                    return True
            except re.error:
                self.log.debug("Invalid ignore pattern, using literal match", pattern=pattern)
            literal = pattern.replace("*", "")
            if literal and any(literal in v for v in values):
                return True
        return False

    def detect_element_changes(
        self,
        old: ElementSnapshot,
        new: ElementSnapshot,
    ) -> list[ChangeRecord]:
        """Compare two versions of an element.

        Args:
            old: Baseline element
            new: Current element

        Returns:
            Classified change records, text first, then attributes, styles and
            position
        """
        selector = old.selector or new.selector
        changes: list[ChangeRecord] = []

        changes.extend(self._text_changes(selector, old, new))
        changes.extend(self._attribute_changes(selector, old, new))
        changes.extend(self._style_changes(selector, old, new))
        if "position" in self.capture.styles_to_capture:
            changes.extend(self._position_changes(selector, old, new))

        for change in changes:
            change.classification = self.classifier.classify(change)
        return changes

    def _text_changes(self, selector, old, new) -> list[ChangeRecord]:
        old_text = old.text or ""
        new_text = new.text or ""
        if old_text == new_text:
            return []

        similarity = calculate_text_similarity(old_text, new_text)
        if similarity >= self.comparison.text_similarity_threshold:
            return []

        return [
            ChangeRecord(
                element=selector,
                property="text",
                old_value=old.text,
                new_value=new.text,
                change_type=ChangeType.TEXT,
                magnitude=min(max(1.0 - similarity, 0.0), 1.0),
            )
        ]

    def _attribute_changes(self, selector, old, new) -> list[ChangeRecord]:
        changes = []
        for key in sorted(set(old.attributes) | set(new.attributes)):
            old_value = old.attributes.get(key)
            new_value = new.attributes.get(key)
            if old_value == new_value:
                continue
            if self.should_ignore_attribute(old_value, new_value):
                continue
            changes.append(
                ChangeRecord(
                    element=selector,
                    property=f"attr_{key}",
                    old_value=old_value,
                    new_value=new_value,
                    change_type=ChangeType.ATTRIBUTE,
                    magnitude=_presence_magnitude(old_value, new_value),
                )
            )
        return changes

    def _style_magnitude(self, category: str, old: Optional[str], new: Optional[str]) -> float:
        if category == StyleCategory.COLOR.value:
            return self.comparison.color_importance
        if category == StyleCategory.DIMENSION.value:
            change = calculate_numeric_change(old, new)
            if change is None:
                return 0.0 if old == new else 1.0
            return change
        return _presence_magnitude(old, new)

    def _style_changes(self, selector, old, new) -> list[ChangeRecord]:
        ignored = set(self.comparison.ignore_style_changes)
        changes = []
        for prop in sorted(set(old.styles) | set(new.styles)):
            if prop in ignored:
                continue
            old_value = old.styles.get(prop)
            new_value = new.styles.get(prop)
            if old_value == new_value:
                continue

            category = self.get_style_category(prop)
            magnitude = self._style_magnitude(category, old_value, new_value)

            if magnitude <= 0.0:
                continue
            if category == StyleCategory.DIMENSION.value and magnitude < self.comparison.numeric_change_threshold:
                continue
            if category == StyleCategory.COLOR.value and magnitude < self.comparison.color_change_threshold:
                continue

            changes.append(
                ChangeRecord(
                    element=selector,
                    property=prop,
                    old_value=old_value,
                    new_value=new_value,
                    change_type=ChangeType.style(category),
                    magnitude=min(magnitude, 1.0),
                )
            )
        return changes

    def _position_changes(self, selector, old, new) -> list[ChangeRecord]:
        ignored = set(self.comparison.ignore_style_changes)
        if "position" in ignored:
            return []

        changes = []
        for axis in POSITION_AXES:
            prop = f"position_{axis}"
            if prop in ignored:
                continue
            old_value = old.position.get(axis)
            new_value = new.position.get(axis)
            if old_value == new_value:
                continue

            magnitude = calculate_numeric_change(old_value, new_value)
            if magnitude is None:
                magnitude = self.comparison.position_change_base
            if magnitude <= 0.0:
                continue

            changes.append(
                ChangeRecord(
                    element=selector,
                    property=prop,
                    old_value=None if old_value is None else str(old_value),
                    new_value=None if new_value is None else str(new_value),
                    change_type=ChangeType.LAYOUT,
                    magnitude=min(magnitude, 1.0),
                )
            )
        return changes
