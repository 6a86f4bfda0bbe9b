"""Element-level UI change detection.

Compares a baseline and a current snapshot of a page's elements, scores each
difference and classifies it as critical, cosmetic, noise or potential.

Main Components:
- ElementDiffEngine: Per-element text, attribute, style and position diffing
- ChangeClassifier: Ordered rule cascade assigning severity tiers
- ChangeDetectionPipeline: Identity, matching and comprehensive detection modes
- FingerprintElementMatcher: Pairs elements when selectors are unstable
- StructuralAnalyzer: Hierarchy, patterns and context-aware reclassification
- prune_ancestor_duplicates: Removes aggregate ancestor text changes

Example usage:
    from src.visual_diff import ChangeDetectionPipeline, load_snapshot

    pipeline = ChangeDetectionPipeline()
    changes = pipeline.detect_changes_with_matching(
        load_snapshot("baseline.json"),
        load_snapshot("current.json"),
    )
    critical = [c for c in changes if c.classification == Classification.CRITICAL]
"""

from .classifier import ChangeClassifier
from .diff_engine import (
    ElementDiffEngine,
    calculate_numeric_change,
    calculate_text_similarity,
)
from .exceptions import ChangeDetectionError, InvalidSnapshotError
from .matcher import FingerprintElementMatcher
from .models import (
    ChangeRecord,
    ChangeType,
    Classification,
    ComprehensiveAnalysisResult,
    ElementSnapshot,
    MatchedPair,
    MatchResult,
    StyleCategory,
)
from .pipeline import (
    ChangeDetectionPipeline,
    ElementMatcher,
    StructureAnalyzer,
    identity_key,
)
from .pruning import is_selector_ancestor, normalize_selector, prune_ancestor_duplicates
from .snapshot_io import load_changes, load_snapshot, save_changes, save_snapshot
from .structural_analyzer import (
    PatternType,
    StructuralAnalysis,
    StructuralAnalyzer,
    StructuralMetrics,
    StructuralNode,
    StructuralPattern,
)

__all__ = [
    # Models
    "ChangeRecord",
    "ChangeType",
    "Classification",
    "ComprehensiveAnalysisResult",
    "ElementSnapshot",
    "MatchedPair",
    "MatchResult",
    "StyleCategory",
    # Errors
    "ChangeDetectionError",
    "InvalidSnapshotError",
    # Engines
    "ElementDiffEngine",
    "calculate_numeric_change",
    "calculate_text_similarity",
    "ChangeClassifier",
    # Pipeline
    "ChangeDetectionPipeline",
    "ElementMatcher",
    "StructureAnalyzer",
    "identity_key",
    # Matching
    "FingerprintElementMatcher",
    # Structure
    "PatternType",
    "StructuralAnalysis",
    "StructuralAnalyzer",
    "StructuralMetrics",
    "StructuralNode",
    "StructuralPattern",
    # Pruning
    "is_selector_ancestor",
    "normalize_selector",
    "prune_ancestor_duplicates",
    # I/O
    "load_changes",
    "load_snapshot",
    "save_changes",
    "save_snapshot",
]
