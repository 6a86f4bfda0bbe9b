"""Structural analysis of element snapshots.

Rebuilds an approximate element hierarchy from a flat snapshot and uses it to
put detected changes in context.

Key Features:
- Selector-based hierarchy reconstruction (no live DOM required)
- Tree metrics: node count, depth, leaves, branching factor, tag counts
- Pattern detection for navigation, lists, forms, tables and grid/flex layouts
- Context-aware escalation: cosmetic navigation changes and minor form
  changes are promoted to critical
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import structlog

from src.config import DetectionConfig

from .models import ChangeRecord, Classification, ElementSnapshot

logger = structlog.get_logger()

_COMBINATOR_RE = re.compile(r"\s*[>+~]\s*|\s+")

FORM_CONTROL_TAGS = frozenset({"input", "select", "textarea", "button"})


class PatternType(str, Enum):
    """Recognized structural patterns."""

    NAVIGATION = "navigation"
    LIST = "list"
    FORM = "form"
    TABLE = "table"
    CSS_GRID = "css-grid"


class StructuralContext(str, Enum):
    """Context assigned to a change when no pattern covers it."""

    NAVIGATION = "navigation"
    CONTENT = "content"
    FORM = "form"
    SIDEBAR = "sidebar"
    GENERAL = "general"


_TAG_CONTEXTS = {
    "nav": StructuralContext.NAVIGATION,
    "header": StructuralContext.NAVIGATION,
    "footer": StructuralContext.NAVIGATION,
    "main": StructuralContext.CONTENT,
    "article": StructuralContext.CONTENT,
    "section": StructuralContext.CONTENT,
    "form": StructuralContext.FORM,
    "input": StructuralContext.FORM,
    "button": StructuralContext.FORM,
    "aside": StructuralContext.SIDEBAR,
}


def selector_compounds(selector: Optional[str]) -> list[str]:
    """Split a selector into its compound parts, dropping combinators."""
    if not selector:
        return []
    return [part for part in _COMBINATOR_RE.split(selector.strip()) if part]


def selector_complexity(selector: Optional[str]) -> int:
    """Rough nesting estimate; simpler selectors sort first."""
    if not selector:
        return 0
    return (
        len(selector.split())
        + selector.count(">")
        + selector.count("+")
        + selector.count("~")
        + selector.count(":")
        + selector.count("[")
    )


@dataclass(eq=False)
class StructuralNode:
    """One element placed in the reconstructed hierarchy."""

    element: Optional[ElementSnapshot]
    parent: Optional["StructuralNode"] = None
    children: list["StructuralNode"] = field(default_factory=list)
    depth: int = 0
    path: str = "/"

    @property
    def tag(self) -> str:
        return self.element.tag_name if self.element else ""

    def add_child(self, child: "StructuralNode") -> None:
        child.parent = self
        child.depth = self.depth + 1
        self.children.append(child)

    def is_ancestor_of(self, other: "StructuralNode") -> bool:
        current = other.parent
        while current is not None:
            if current is self:
                return True
            current = current.parent
        return False

    def descendants(self) -> list["StructuralNode"]:
        result = []
        stack = list(reversed(self.children))
        while stack:
            node = stack.pop()
            result.append(node)
            stack.extend(reversed(node.children))
        return result


@dataclass
class StructuralPattern:
    """A recognized group of nodes such as a list or a form."""

    pattern_type: PatternType
    nodes: list[StructuralNode]
    description: str
    confidence: float

    def covers(self, node: StructuralNode) -> bool:
        return any(n is node or n.is_ancestor_of(node) for n in self.nodes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "patternType": self.pattern_type.value,
            "selectors": [n.element.selector for n in self.nodes if n.element],
            "description": self.description,
            "confidence": self.confidence,
        }


@dataclass
class StructuralMetrics:
    """Summary metrics of a reconstructed hierarchy."""

    total_nodes: int = 0
    max_depth: int = 0
    average_depth: float = 0.0
    leaf_nodes: int = 0
    branching_factor: float = 0.0
    tag_counts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalNodes": self.total_nodes,
            "maxDepth": self.max_depth,
            "averageDepth": self.average_depth,
            "leafNodes": self.leaf_nodes,
            "branchingFactor": self.branching_factor,
            "tagCounts": dict(self.tag_counts),
        }


@dataclass
class StructuralAnalysis:
    """Hierarchy, metrics and patterns of one snapshot."""

    root: StructuralNode
    nodes: list[StructuralNode] = field(default_factory=list)
    patterns: list[StructuralPattern] = field(default_factory=list)
    metrics: StructuralMetrics = field(default_factory=StructuralMetrics)
    _by_selector: dict[str, StructuralNode] = field(default_factory=dict, repr=False)

    @property
    def total_nodes(self) -> int:
        return self.metrics.total_nodes

    @property
    def max_depth(self) -> int:
        return self.metrics.max_depth

    def register(self, node: StructuralNode) -> None:
        self.nodes.append(node)
        if node.element is not None:
            self._by_selector.setdefault(node.element.selector, node)

    def node_for(self, selector: str) -> Optional[StructuralNode]:
        return self._by_selector.get(selector)

    def patterns_of_type(self, pattern_type: PatternType) -> list[StructuralPattern]:
        return [p for p in self.patterns if p.pattern_type == pattern_type]

    def to_dict(self) -> dict[str, Any]:
        return {
            "metrics": self.metrics.to_dict(),
            "patterns": [p.to_dict() for p in self.patterns],
        }


class StructuralAnalyzer:
    """Reconstruct snapshot structure and enrich changes with its context."""

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()
        self.settings = self.config.structural_analysis_settings
        self.log = logger.bind(component="structural_analyzer")

    def analyze_structure(self, elements: list[ElementSnapshot]) -> StructuralAnalysis:
        """Build the hierarchy, metrics and patterns for one snapshot."""
        analysis = StructuralAnalysis(root=StructuralNode(element=None))
        self._build_tree(elements, analysis)
        analysis.metrics = self._calculate_metrics(analysis)
        analysis.patterns = self._identify_patterns(analysis)

        self.log.info(
            "Structural analysis complete",
            nodes=analysis.metrics.total_nodes,
            max_depth=analysis.metrics.max_depth,
            patterns=len(analysis.patterns),
        )
        return analysis

    def analyze_structural_changes(
        self,
        changes: list[ChangeRecord],
        old_analysis: StructuralAnalysis,
        new_analysis: StructuralAnalysis,
    ) -> list[ChangeRecord]:
        """Annotate changes with structural context and adjust their tier.

        Baseline structure is consulted first; elements that only exist in the
        current snapshot are looked up there. Records classified as
        ``potential`` keep their tier.
        """
        escalated = 0
        for change in changes:
            analysis = old_analysis
            node = old_analysis.node_for(change.element)
            if node is None:
                analysis = new_analysis
                node = new_analysis.node_for(change.element)
            if node is None:
                continue

            context = self.determine_context(node, analysis)
            change.structural_context = context

            if change.classification == Classification.POTENTIAL:
                continue
            adjusted = self.adjust_classification(change.classification, context)
            if adjusted != change.classification:
                escalated += 1
                change.classification = adjusted

        self.log.info("Structural context applied", changes=len(changes), escalated=escalated)
        return list(changes)

    def determine_context(self, node: StructuralNode, analysis: StructuralAnalysis) -> str:
        """Pattern covering the node, else a context derived from its tag."""
        for pattern in analysis.patterns:
            if pattern.covers(node):
                return pattern.pattern_type.value
        return _TAG_CONTEXTS.get(node.tag.lower(), StructuralContext.GENERAL).value

    @staticmethod
    def adjust_classification(
        classification: Optional[Classification],
        context: str,
    ) -> Optional[Classification]:
        if context == StructuralContext.NAVIGATION.value and classification == Classification.COSMETIC:
            return Classification.CRITICAL
        if context == StructuralContext.FORM.value and classification in (
            Classification.NOISE,
            Classification.COSMETIC,
        ):
            return Classification.CRITICAL
        return classification

    def _build_tree(self, elements: list[ElementSnapshot], analysis: StructuralAnalysis) -> None:
        placed: list[tuple[list[str], StructuralNode]] = []

        for element in sorted(elements, key=lambda el: selector_complexity(el.selector)):
            parts = selector_compounds(element.selector)
            node = StructuralNode(element=element, path=self._structural_path(element))

            parent = analysis.root
            best_length = 0
            for candidate_parts, candidate in placed:
                length = len(candidate_parts)
                if (
                    best_length < length < len(parts)
                    and parts[:length] == candidate_parts
                    and candidate.depth < self.settings.max_parent_depth
                ):
                    parent = candidate
                    best_length = length

            parent.add_child(node)
            placed.append((parts, node))
            analysis.register(node)

    @staticmethod
    def _structural_path(element: ElementSnapshot) -> str:
        path = f"/{element.tag_name}"
        if element.first_class:
            path += f".{element.first_class}"
        if element.element_id:
            path += f"#{element.element_id}"
        return path

    def _calculate_metrics(self, analysis: StructuralAnalysis) -> StructuralMetrics:
        nodes = analysis.nodes
        metrics = StructuralMetrics(total_nodes=len(nodes))
        if not nodes:
            return metrics

        depths = [n.depth for n in nodes]
        metrics.max_depth = max(depths)
        metrics.average_depth = sum(depths) / len(nodes)
        metrics.leaf_nodes = sum(1 for n in nodes if not n.children)

        for node in nodes:
            tag = node.tag.lower()
            if tag:
                metrics.tag_counts[tag] = metrics.tag_counts.get(tag, 0) + 1

        parents = [n for n in nodes if n.children]
        if parents:
            metrics.branching_factor = sum(len(n.children) for n in parents) / len(parents)
        return metrics

    def _identify_patterns(self, analysis: StructuralAnalysis) -> list[StructuralPattern]:
        s = self.settings
        confidence = s.pattern_confidence
        patterns: list[StructuralPattern] = []

        nav_nodes = [n for n in analysis.nodes if self._is_navigation(n)]
        if nav_nodes:
            patterns.append(
                StructuralPattern(
                    PatternType.NAVIGATION,
                    nav_nodes,
                    f"Navigation elements detected with {len(nav_nodes)} components",
                    confidence.get(PatternType.NAVIGATION.value, 0.8),
                )
            )

        for node in analysis.nodes:
            tag = node.tag.lower()

            if tag in ("ul", "ol"):
                items = sum(1 for c in node.children if c.tag.lower() == "li")
                if items >= s.list_min_items:
                    patterns.append(
                        StructuralPattern(
                            PatternType.LIST,
                            [node],
                            f"{tag.upper()} with {items} items",
                            confidence.get(PatternType.LIST.value, 0.9),
                        )
                    )

            elif tag == "form":
                controls = sum(1 for d in node.descendants() if d.tag.lower() in FORM_CONTROL_TAGS)
                if controls >= s.form_min_controls:
                    patterns.append(
                        StructuralPattern(
                            PatternType.FORM,
                            [node],
                            f"Form with {controls} controls",
                            confidence.get(PatternType.FORM.value, 0.85),
                        )
                    )

            elif tag == "table":
                rows = sum(1 for d in node.descendants() if d.tag.lower() == "tr")
                if rows >= s.table_min_rows:
                    patterns.append(
                        StructuralPattern(
                            PatternType.TABLE,
                            [node],
                            f"Table with {rows} rows",
                            confidence.get(PatternType.TABLE.value, 0.9),
                        )
                    )

            display = node.element.styles.get("display") if node.element else None
            if display in ("grid", "flex") and len(node.children) >= s.grid_min_items:
                patterns.append(
                    StructuralPattern(
                        PatternType.CSS_GRID,
                        [node],
                        f"{display.upper()} layout with {len(node.children)} items",
                        confidence.get(PatternType.CSS_GRID.value, 0.7),
                    )
                )

        return patterns

    @staticmethod
    def _is_navigation(node: StructuralNode) -> bool:
        if node.element is None:
            return False
        if node.tag.lower() == "nav":
            return True
        css_class = node.element.attributes.get("class") or ""
        if "nav" in css_class or "menu" in css_class:
            return True
        return node.element.attributes.get("role") in ("navigation", "menubar")
