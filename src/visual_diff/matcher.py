"""Fingerprint-based element matching.

Pairs baseline and current elements when selectors are unstable, using a
staged strategy:
1. Exact fingerprint match (confidence 1.0)
2. Weighted fuzzy match on tag, text, structure and content
3. Semantic match of price elements inside the same ``#id`` container

Whatever is left over is reported as removed (baseline) or added (current).
All stages walk the inputs in order, so results are deterministic.
"""

import hashlib
import re
from typing import Optional

import structlog

from src.config import DetectionConfig

from .models import ElementSnapshot, MatchedPair, MatchResult

logger = structlog.get_logger()

_WHITESPACE_RE = re.compile(r"\s+")
_PRICE_TEXT_RE = re.compile(r"[$€£¥]\d+")
_PRICE_VALUE_RE = re.compile(r"[$€£¥]([0-9,]+\.?[0-9]*)")

# Score of two elements whose structural fingerprints differ.
STRUCTURAL_PARTIAL_SCORE = 0.5


def normalize_text(text: Optional[str]) -> str:
    return _WHITESPACE_RE.sub(" ", (text or "").strip().lower())


def _digest(*parts: str) -> str:
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()[:16]


def element_fingerprint(element: ElementSnapshot) -> str:
    """Identity signature: the captured fingerprint, else tag/id/class/text."""
    if element.fingerprint:
        return element.fingerprint
    return _digest(
        element.tag_name,
        element.element_id or "",
        element.first_class or "",
        normalize_text(element.text)[:50],
    )


def structural_fingerprint(element: ElementSnapshot) -> str:
    return _digest(element.tag_name, ",".join(sorted(element.attributes)))


def content_fingerprint(element: ElementSnapshot) -> Optional[str]:
    text = normalize_text(element.text)
    return _digest(text) if text else None


def word_similarity(text1: Optional[str], text2: Optional[str]) -> float:
    """Jaccard similarity of the normalized word sets."""
    normalized1 = normalize_text(text1)
    normalized2 = normalize_text(text2)
    if normalized1 == normalized2:
        return 1.0
    if not normalized1 or not normalized2:
        return 0.0
    words1 = set(normalized1.split(" "))
    words2 = set(normalized2.split(" "))
    return len(words1 & words2) / len(words1 | words2)


def extract_price(text: Optional[str]) -> Optional[str]:
    """Numeric part of the first currency amount, e.g. "$1,299.99" -> "1,299.99"."""
    if not text:
        return None
    match = _PRICE_VALUE_RE.search(text)
    return match.group(1) if match else None


def is_price_element(element: ElementSnapshot) -> bool:
    if element.text and _PRICE_TEXT_RE.search(element.text):
        return True
    if "price" in (element.selector or "").lower():
        return True
    return "price" in (element.attributes.get("class") or "").lower()


def id_context(element: ElementSnapshot) -> str:
    """The first ``#id`` compound of the selector, or "" when there is none."""
    for part in (element.selector or "").split():
        if part.startswith("#"):
            return part
    return ""


class FingerprintElementMatcher:
    """Match elements across snapshots by fingerprint, similarity and content."""

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()
        self.settings = self.config.matching_settings
        self.semantic_price_enabled = (
            self.settings.enable_semantic_price and self.config.flags.enable_semantic_matching
        )
        self.log = logger.bind(component="element_matcher")

    def match_elements(
        self,
        baseline_elements: list[ElementSnapshot],
        current_elements: list[ElementSnapshot],
    ) -> MatchResult:
        """Pair baseline elements with current elements.

        Args:
            baseline_elements: Elements from the baseline snapshot.
            current_elements: Elements from the current snapshot.

        Returns:
            MatchResult with ordered pairs and the unmatched leftovers
        """
        pairs: list[MatchedPair] = []
        matched: set[int] = set()
        used: set[int] = set()

        current_fingerprints = [element_fingerprint(el) for el in current_elements]

        # Stage 1: exact fingerprint
        for b_index, baseline in enumerate(baseline_elements):
            fingerprint = element_fingerprint(baseline)
            for c_index, current in enumerate(current_elements):
                if c_index not in used and current_fingerprints[c_index] == fingerprint:
                    pairs.append(MatchedPair(baseline, current, 1.0))
                    matched.add(b_index)
                    used.add(c_index)
                    break

        # Stage 2: weighted fuzzy match
        for b_index, baseline in enumerate(baseline_elements):
            if b_index in matched:
                continue
            best_index: Optional[int] = None
            best_confidence = 0.0
            for c_index, current in enumerate(current_elements):
                if c_index in used:
                    continue
                confidence = self.calculate_match_confidence(baseline, current)
                if confidence > best_confidence:
                    best_index = c_index
                    best_confidence = confidence
            if best_index is not None and best_confidence >= self.settings.fuzzy_min_confidence:
                pairs.append(MatchedPair(baseline, current_elements[best_index], best_confidence))
                matched.add(b_index)
                used.add(best_index)

        # Stage 3: price elements in the same container
        if self.semantic_price_enabled:
            for b_index, baseline in enumerate(baseline_elements):
                if b_index in matched:
                    continue
                c_index = self._find_price_match(baseline, current_elements, used)
                if c_index is not None:
                    pairs.append(
                        MatchedPair(
                            baseline,
                            current_elements[c_index],
                            self.settings.semantic_price_confidence,
                        )
                    )
                    matched.add(b_index)
                    used.add(c_index)
                    self.log.debug(
                        "Semantic price match",
                        baseline=baseline.selector,
                        current=current_elements[c_index].selector,
                    )

        result = MatchResult(
            matched_pairs=pairs,
            removed=[el for i, el in enumerate(baseline_elements) if i not in matched],
            added=[el for i, el in enumerate(current_elements) if i not in used],
        )
        self.log.info(
            "Element matching complete",
            matched=len(result.matched_pairs),
            removed=len(result.removed),
            added=len(result.added),
        )
        return result

    def calculate_match_confidence(
        self,
        baseline: ElementSnapshot,
        candidate: ElementSnapshot,
    ) -> float:
        """Weighted mean of the similarity signals both elements carry."""
        s = self.settings
        total_weight = 0.0
        score = 0.0

        if baseline.tag_name and candidate.tag_name:
            score += s.tag_weight * (1.0 if baseline.tag_name == candidate.tag_name else 0.0)
            total_weight += s.tag_weight

        if baseline.text is not None and candidate.text is not None:
            score += s.text_weight * word_similarity(baseline.text, candidate.text)
            total_weight += s.text_weight

        same_structure = structural_fingerprint(baseline) == structural_fingerprint(candidate)
        score += s.structural_weight * (1.0 if same_structure else STRUCTURAL_PARTIAL_SCORE)
        total_weight += s.structural_weight

        baseline_content = content_fingerprint(baseline)
        candidate_content = content_fingerprint(candidate)
        if baseline_content is not None and candidate_content is not None:
            score += s.content_weight * (1.0 if baseline_content == candidate_content else 0.0)
            total_weight += s.content_weight

        return score / total_weight if total_weight > 0 else 0.0

    def _find_price_match(
        self,
        baseline: ElementSnapshot,
        current_elements: list[ElementSnapshot],
        used: set[int],
    ) -> Optional[int]:
        if not normalize_text(baseline.text) or not is_price_element(baseline):
            return None
        if extract_price(baseline.text) is None:
            return None

        context = id_context(baseline)
        for c_index, current in enumerate(current_elements):
            if c_index in used:
                continue
            if self._price_in_subtree(current, current_elements) is None:
                continue
            if id_context(current) == context:
                return c_index
        return None

    def _price_in_subtree(
        self,
        element: ElementSnapshot,
        elements: list[ElementSnapshot],
    ) -> Optional[str]:
        price = extract_price(element.text)
        if price is not None or not element.selector:
            return price
        for other in elements:
            if other.selector and other.selector != element.selector and other.selector.startswith(element.selector):
                price = extract_price(other.text)
                if price is not None:
                    return price
        return None
