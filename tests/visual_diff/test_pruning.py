"""Tests for visual_diff/pruning.py."""

import pytest

from src.visual_diff.models import ChangeRecord, ChangeType
from src.visual_diff.pruning import (
    is_selector_ancestor,
    normalize_selector,
    prune_ancestor_duplicates,
)


class TestNormalizeSelector:
    """Tests for normalize_selector."""

    def test_strips_indexed_pseudo_classes(self):
        """Test nth-* pseudo-classes are removed."""
        assert normalize_selector("ul > li:nth-child(2)  span") == "ul > li span"
        assert normalize_selector("tr:nth-of-type(3) td:nth-last-child(1)") == "tr td"
        assert normalize_selector("p:nth-last-of-type(2n+1)") == "p"

    def test_keeps_other_pseudo_classes(self):
        """Test non-indexed pseudo-classes survive."""
        assert normalize_selector("li:first-child") == "li:first-child"

    def test_empty(self):
        """Test empty input."""
        assert normalize_selector("") == ""
        assert normalize_selector(None) == ""


class TestIsSelectorAncestor:
    """Tests for is_selector_ancestor."""

    def test_descendant_selector(self):
        """Test a prefix selector is an ancestor."""
        assert is_selector_ancestor("div.card", "div.card span.price")
        assert is_selector_ancestor("ul", "ul>li")

    def test_index_insensitive(self):
        """Test indices do not affect the relation."""
        assert is_selector_ancestor("ul li:nth-child(1)", "ul li:nth-child(3) em")

    def test_substring_over_match(self):
        """Test the containment heuristic also relates look-alike selectors."""
        assert is_selector_ancestor(".item", ".item-wrapper")

    def test_unrelated(self):
        """Test unrelated selectors."""
        assert not is_selector_ancestor("div.card span.price", "div.card")
        assert not is_selector_ancestor("", "div")


class TestPruneAncestorDuplicates:
    """Tests for prune_ancestor_duplicates."""

    def test_card_price_scenario(self, make_text_change):
        """Test the aggregate card text is removed and the price kept."""
        card = make_text_change("div.card", "Price: $10", "Price: $12")
        price = make_text_change("div.card span.price", "$10", "$12")

        result = prune_ancestor_duplicates([card, price])

        assert result == [price]

    def test_idempotent(self, make_text_change):
        """Test a second pass removes nothing further."""
        changes = [
            make_text_change("main", "Total: $10 incl. tax", "Total: $12 incl. tax"),
            make_text_change("main div.total", "Total: $10", "Total: $12"),
            make_text_change("main div.total em", "$10", "$12"),
            make_text_change("h1.title", "Welcome", "Hello"),
        ]

        once = prune_ancestor_duplicates(changes)
        twice = prune_ancestor_duplicates(once)

        assert twice == once
        assert [c.element for c in once] == ["main div.total em", "h1.title"]

    def test_never_increases_count(self, make_text_change):
        """Test the result is never longer than the input."""
        changes = [
            make_text_change("p.one", "x", "y"),
            make_text_change("p.two", "x", "y"),
        ]

        result = prune_ancestor_duplicates(changes)

        assert len(result) <= len(changes)
        assert len(result) == 2

    def test_non_text_records_pass_through(self, make_text_change):
        """Test non-text records keep their position."""
        style = ChangeRecord("div.card", "width", "1px", "2px", "style_dimension", 1.0)
        card = make_text_change("div.card", "Price: $10", "Price: $12")
        price = make_text_change("div.card span.price", "$10", "$12")
        structural = ChangeRecord("p", "element_removed", "p", None, ChangeType.STRUCTURAL, 1.0)

        result = prune_ancestor_duplicates([style, card, price, structural])

        assert result == [style, price, structural]

    def test_leaf_pass_ignores_selectors(self, make_text_change):
        """Test short leaf texts prune containing records under unrelated selectors."""
        total = make_text_change("p#summary", "Total: $5", "Total: $6")
        leaf = make_text_change("li.cost", "$5", "$6")

        result = prune_ancestor_duplicates([total, leaf])

        assert result == [leaf]

    def test_leaf_pass_skips_long_text(self, make_text_change):
        """Test leaf texts over 60 characters do not prune."""
        long_old = "x" * 61
        long_new = "y" * 61
        outer = make_text_change("p#one", long_old + " more", long_new + " more")
        leaf = make_text_change("li.two", long_old, long_new)

        result = prune_ancestor_duplicates([outer, leaf])

        assert result == [outer, leaf]

    def test_requires_both_sides_contained(self, make_text_change):
        """Test the new text must also be contained."""
        card = make_text_change("div.card", "Price: $10", "Sold out")
        price = make_text_change("div.card span.price", "$10", "$12")

        result = prune_ancestor_duplicates([card, price])

        assert result == [card, price]

    def test_equal_texts_kept(self, make_text_change):
        """Test identical texts are not strictly longer and both survive."""
        first = make_text_change("div.card", "$10", "$12")
        second = make_text_change("div.card span.price", "$10", "$12")

        assert prune_ancestor_duplicates([first, second]) == [first, second]

    @pytest.mark.parametrize("size", [0, 1])
    def test_small_inputs(self, make_text_change, size):
        """Test lists with fewer than two text records are returned unchanged."""
        changes = [make_text_change("p", "a", "b")][:size]
        assert prune_ancestor_duplicates(changes) == changes
