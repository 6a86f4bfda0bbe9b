"""Rule cascade that assigns a severity tier to each change record.

Rules are evaluated in a fixed order and the first one that fires wins:

1. Selector contains an interactive keyword -> critical
2. Structural change or ``element_*`` property -> critical
3. Property contains an accessibility keyword -> critical
4. Text changes (``text`` property or change type), by magnitude -> critical / cosmetic / noise
5. Layout and ``position_*`` changes, by magnitude -> cosmetic / noise
6. ``color``, ``background-color``, ``font-family`` -> cosmetic / noise
7. Other ``style_*`` changes, by magnitude -> critical / cosmetic / noise
8. Custom rules, when advanced classification is enabled
9. Otherwise noise

Because the order is fixed, a ``style_color`` change on a button is always
critical via rule 1 and never reaches rule 7.
"""

from typing import Iterable, Optional

import structlog

from src.config import DetectionConfig

from .models import ChangeRecord, ChangeType, Classification

logger = structlog.get_logger()

_COLOR_PROPERTIES = frozenset({"color", "background-color"})


class ChangeClassifier:
    """Classify change records using configured keywords and thresholds."""

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()
        settings = self.config.classification_settings
        self.interactive_keywords = [k.lower() for k in settings.interactive_keywords]
        self.accessibility_keywords = list(settings.accessibility_keywords)
        self.thresholds = settings.magnitude_thresholds
        self.rules = list(settings.rules) if self.config.flags.enable_advanced_classification else []
        self.log = logger.bind(component="classifier")

    def classify(self, change: ChangeRecord) -> Classification:
        """Return the tier for ``change`` without modifying it."""
        selector = (change.element or "").lower()
        prop = change.property or ""
        change_type = change.change_type or ""
        magnitude = change.magnitude
        t = self.thresholds

        if any(keyword in selector for keyword in self.interactive_keywords):
            return Classification.CRITICAL

        if change_type == ChangeType.STRUCTURAL or prop.startswith("element_"):
            return Classification.CRITICAL

        if any(keyword in prop for keyword in self.accessibility_keywords):
            return Classification.CRITICAL

        if prop == "text" or change_type == ChangeType.TEXT:
            if magnitude >= t.text_critical:
                return Classification.CRITICAL
            if magnitude >= t.text_critical / 2:
                return Classification.COSMETIC
            return Classification.NOISE

        if change_type == ChangeType.LAYOUT or prop.startswith("position_"):
            return Classification.COSMETIC if magnitude >= t.position_base else Classification.NOISE

        if prop in _COLOR_PROPERTIES or "font-family" in prop:
            return Classification.COSMETIC if magnitude >= t.color_cosmetic else Classification.NOISE

        if change_type.startswith(ChangeType.STYLE_PREFIX):
            if magnitude >= t.style_critical:
                return Classification.CRITICAL
            if magnitude >= t.style_cosmetic:
                return Classification.COSMETIC
            return Classification.NOISE

        for rule in self.rules:
            if rule.matches(change):
                return Classification(rule.classification)

        return Classification.NOISE

    def classify_all(self, changes: Iterable[ChangeRecord]) -> None:
        """Assign a tier to every record in place."""
        for change in changes:
            change.classification = self.classify(change)
