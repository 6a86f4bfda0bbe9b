"""Shared fixtures for visual_diff tests.

Selectors in these fixtures avoid the default interactive keywords
(button, input, form, select and the letter "a") unless a test wants
the selector rule to fire.
"""

import pytest

from src.config import DetectionConfig
from src.visual_diff.models import ChangeRecord, ChangeType, ElementSnapshot


def _element(selector="p#intro", tag_name="p", text=None, **kwargs) -> ElementSnapshot:
    return ElementSnapshot(selector=selector, tag_name=tag_name, text=text, **kwargs)


def _text_change(selector, old, new, magnitude=0.5) -> ChangeRecord:
    return ChangeRecord(
        element=selector,
        property="text",
        old_value=old,
        new_value=new,
        change_type=ChangeType.TEXT,
        magnitude=magnitude,
    )


@pytest.fixture
def make_element():
    """Factory for ElementSnapshot with sensible defaults."""
    return _element


@pytest.fixture
def make_text_change():
    """Factory for unclassified text ChangeRecords."""
    return _text_change


@pytest.fixture
def default_config():
    """Config with every default."""
    return DetectionConfig()


@pytest.fixture
def structural_config():
    """Config with structural detection enabled."""
    return DetectionConfig.model_validate({"flags": {"enableStructuralAnalysis": True}})


@pytest.fixture
def baseline_page():
    """A small baseline page."""
    return [
        _element("h1.title", "h1", "Welcome", attributes={"class": "title"}),
        _element(
            "p#intro",
            "p",
            "Our service is fast",
            attributes={"id": "intro"},
            styles={"font-weight": "400", "width": "100px"},
            position={"x": 100, "y": 200},
        ),
        _element("li.item", "li", "First", attributes={"class": "item"}),
    ]


@pytest.fixture
def current_page():
    """The baseline page after an update."""
    return [
        _element("h1.title", "h1", "Welcome", attributes={"class": "title"}),
        _element(
            "p#intro",
            "p",
            "Our service is slow",
            attributes={"id": "intro"},
            styles={"font-weight": "700", "width": "100px"},
            position={"x": 100, "y": 260},
        ),
        _element("li.item", "li", "First", attributes={"class": "item"}),
    ]
