"""Change detection pipeline.

Drives the diff engine over two snapshots in one of three modes:

- ``detect_changes``: pairs elements by a stable identity key
  (selector plus id or first class)
- ``detect_changes_with_matching``: pairs elements through an element matcher
  and prunes ancestor duplicates from the result
- ``detect_changes_comprehensive``: matching plus structural analysis of both
  snapshots and context-aware reclassification

Every call builds and returns its own list, so one pipeline instance can be
reused across runs and threads.
"""

import time
import uuid
from typing import Optional, Protocol

import structlog

from src.config import DetectionConfig
from src.utils.logging import LogContext, log_operation

from .classifier import ChangeClassifier
from .diff_engine import ElementDiffEngine
from .exceptions import InvalidSnapshotError
from .matcher import FingerprintElementMatcher
from .models import (
    ChangeRecord,
    ChangeType,
    Classification,
    ComprehensiveAnalysisResult,
    ElementSnapshot,
    MatchResult,
)
from .pruning import prune_ancestor_duplicates
from .structural_analyzer import StructuralAnalysis, StructuralAnalyzer

logger = structlog.get_logger()


class ElementMatcher(Protocol):
    """Pairs baseline elements with their current counterparts."""

    def match_elements(
        self,
        baseline_elements: list[ElementSnapshot],
        current_elements: list[ElementSnapshot],
    ) -> MatchResult:
        ...


class StructureAnalyzer(Protocol):
    """Analyzes snapshot structure and enriches changes with its context."""

    def analyze_structure(self, elements: list[ElementSnapshot]) -> StructuralAnalysis:
        ...

    def analyze_structural_changes(
        self,
        changes: list[ChangeRecord],
        old_analysis: StructuralAnalysis,
        new_analysis: StructuralAnalysis,
    ) -> list[ChangeRecord]:
        ...


def identity_key(element: ElementSnapshot) -> str:
    """Key used by identity pairing. Never includes text or position.

    The selector is suffixed with the trimmed id, or with the first class when
    the id is missing or blank. When several elements of one snapshot share a
    key, the last one is paired.
    """
    key = element.selector or ""
    if element.element_id:
        return f"{key}::id={element.element_id}"
    if element.first_class:
        return f"{key}::class={element.first_class}"
    return key


def _validate(old_elements, new_elements) -> None:
    for name, elements in (("Baseline", old_elements), ("Current", new_elements)):
        if elements is None:
            raise InvalidSnapshotError(f"{name} snapshot is required")
        if any(element is None for element in elements):
            raise InvalidSnapshotError(f"{name} snapshot contains a null element")


class ChangeDetectionPipeline:
    """Detect, score and classify changes between two snapshots."""

    def __init__(
        self,
        config: Optional[DetectionConfig] = None,
        matcher: Optional[ElementMatcher] = None,
        structural_analyzer: Optional[StructureAnalyzer] = None,
    ):
        """Initialize the pipeline.

        Args:
            config: Detection config; defaults apply when omitted
            matcher: Element matcher for the matching modes
            structural_analyzer: Structure analyzer for the comprehensive mode
        """
        self.config = config or DetectionConfig()
        self.classifier = ChangeClassifier(self.config)
        self.diff_engine = ElementDiffEngine(self.config, self.classifier)
        self.matcher = matcher or FingerprintElementMatcher(self.config)
        self.structural_analyzer = structural_analyzer or StructuralAnalyzer(self.config)
        self.log = logger.bind(component="change_pipeline")

    @property
    def structural_detection_enabled(self) -> bool:
        return self.config.flags.enable_structural_analysis

    def _resolve_cap(self, max_changes: Optional[int]) -> Optional[int]:
        if max_changes is not None:
            return max_changes
        return self.config.performance_settings.max_changes

    @staticmethod
    def _cap_reached(changes: list[ChangeRecord], cap: Optional[int]) -> bool:
        return cap is not None and len(changes) >= cap

    def _diff_pair(self, old: ElementSnapshot, new: ElementSnapshot) -> list[ChangeRecord]:
        try:
            return self.diff_engine.detect_element_changes(old, new)
        except Exception as e:
            self.log.exception(
                "Failed to diff element pair, skipping",
                selector=old.selector,
                error=str(e),
            )
            return []

    def detect_changes(
        self,
        old_elements: list[ElementSnapshot],
        new_elements: list[ElementSnapshot],
        max_changes: Optional[int] = None,
    ) -> list[ChangeRecord]:
        """Diff elements paired by identity key.

        Elements present on one side only produce an ``element_existence``
        record when structural detection is enabled.

        Args:
            old_elements: Baseline snapshot
            new_elements: Current snapshot
            max_changes: Cap on returned records; defaults to the configured cap

        Returns:
            Classified change records

        Raises:
            InvalidSnapshotError: If either snapshot is None
        """
        _validate(old_elements, new_elements)
        cap = self._resolve_cap(max_changes)

        with LogContext(run_id=uuid.uuid4().hex[:8], mode="identity"):
            old_by_key = self._index(old_elements)
            new_by_key = self._index(new_elements)
            changes: list[ChangeRecord] = []

            for key in sorted(old_by_key.keys() | new_by_key.keys()):
                if self._cap_reached(changes, cap):
                    self.log.warning("Change cap reached, stopping", max_changes=cap)
                    break

                old = old_by_key.get(key)
                new = new_by_key.get(key)
                if old is not None and new is not None:
                    changes.extend(self._diff_pair(old, new))
                elif self.structural_detection_enabled:
                    changes.append(self._existence_change(old, new))

            if cap is not None:
                changes = changes[:cap]
            self.classifier.classify_all(changes)

            self.log.info(
                "Identity detection complete",
                baseline=len(old_elements),
                current=len(new_elements),
                changes=len(changes),
            )
            return changes

    def detect_changes_with_matching(
        self,
        old_elements: list[ElementSnapshot],
        new_elements: list[ElementSnapshot],
        max_changes: Optional[int] = None,
    ) -> list[ChangeRecord]:
        """Diff elements paired by the element matcher.

        Records from pairs below the low-confidence threshold are classified
        ``potential``. Unmatched elements yield ``element_removed`` and
        ``element_added`` records when structural detection is enabled.
        Ancestor duplicates among text changes are pruned.

        Raises:
            InvalidSnapshotError: If either snapshot is None
        """
        _validate(old_elements, new_elements)
        cap = self._resolve_cap(max_changes)
        low_confidence = self.config.matching_settings.low_confidence_threshold

        with LogContext(run_id=uuid.uuid4().hex[:8], mode="matching"):
            match_result = self.matcher.match_elements(old_elements, new_elements)
            changes: list[ChangeRecord] = []

            for pair in match_result.matched_pairs:
                if self._cap_reached(changes, cap):
                    self.log.warning("Change cap reached, stopping", max_changes=cap)
                    break
                for change in self._diff_pair(pair.baseline, pair.current):
                    change.match_confidence = pair.confidence
                    if pair.confidence < low_confidence:
                        change.classification = Classification.POTENTIAL
                    changes.append(change)

            if self.structural_detection_enabled:
                for element in match_result.removed:
                    if self._cap_reached(changes, cap):
                        break
                    changes.append(self._membership_change(element, ChangeType.ELEMENT_REMOVED))
                for element in match_result.added:
                    if self._cap_reached(changes, cap):
                        break
                    changes.append(self._membership_change(element, ChangeType.ELEMENT_ADDED))

            if cap is not None:
                changes = changes[:cap]
            changes = prune_ancestor_duplicates(changes)

            self.log.info(
                "Matched detection complete",
                match_summary=match_result.get_summary(),
                changes=len(changes),
            )
            return changes

    def detect_changes_comprehensive(
        self,
        old_elements: list[ElementSnapshot],
        new_elements: list[ElementSnapshot],
        max_changes: Optional[int] = None,
    ) -> ComprehensiveAnalysisResult:
        """Matched detection enriched with the structure of both snapshots.

        Raises:
            InvalidSnapshotError: If either snapshot is None
        """
        _validate(old_elements, new_elements)
        elements_analyzed = len(old_elements) + len(new_elements)

        with log_operation("comprehensive_analysis", self.log, elements=elements_analyzed) as op:
            start = time.perf_counter()

            old_analysis = self.structural_analyzer.analyze_structure(old_elements)
            new_analysis = self.structural_analyzer.analyze_structure(new_elements)
            raw_changes = self.detect_changes_with_matching(old_elements, new_elements, max_changes)
            changes = self.structural_analyzer.analyze_structural_changes(
                raw_changes, old_analysis, new_analysis
            )

            elapsed_ms = (time.perf_counter() - start) * 1000
            throughput = len(changes) * 1000 / elapsed_ms if elapsed_ms > 0 else 0.0
            op["changes"] = len(changes)
            op["processing_time_ms"] = round(elapsed_ms, 2)

        return ComprehensiveAnalysisResult(
            changes=changes,
            old_structural_analysis=old_analysis,
            new_structural_analysis=new_analysis,
            processing_time_ms=elapsed_ms,
            elements_analyzed=elements_analyzed,
            changes_per_second=throughput,
        )

    def _index(self, elements: list[ElementSnapshot]) -> dict[str, ElementSnapshot]:
        indexed: dict[str, ElementSnapshot] = {}
        for element in elements:
            key = identity_key(element)
            if key in indexed:
                self.log.debug("Duplicate identity key, keeping last element", key=key)
            indexed[key] = element
        return indexed

    @staticmethod
    def _existence_change(
        old: Optional[ElementSnapshot],
        new: Optional[ElementSnapshot],
    ) -> ChangeRecord:
        removed = new is None
        element = old if removed else new
        return ChangeRecord(
            element=element.selector,
            property="element_existence",
            old_value="present" if removed else "absent",
            new_value="removed" if removed else "added",
            change_type=ChangeType.STRUCTURAL,
            magnitude=1.0,
            classification=Classification.CRITICAL,
        )

    @staticmethod
    def _membership_change(element: ElementSnapshot, kind: str) -> ChangeRecord:
        removed = kind == ChangeType.ELEMENT_REMOVED
        return ChangeRecord(
            element=element.selector,
            property=kind,
            old_value=element.tag_name if removed else None,
            new_value=None if removed else element.tag_name,
            change_type=ChangeType.STRUCTURAL,
            magnitude=1.0,
            classification=Classification.CRITICAL,
        )
