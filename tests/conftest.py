"""Shared test fixtures and configuration.

Sets environment variables before any inclination modules are imported,
so config never reads a developer's real key or data directory.
"""

import os

# pytest loads conftest.py before test modules, so this runs first.
os.environ.setdefault("OPENROUTER_API_KEY", "test-key-not-real")
os.environ.setdefault("INCLINATION_LEADERBOARD_AVERAGING", "weighted")

import pytest  # noqa: E402

from inclination.discussion_setup import (  # noqa: E402
    DiscussionSetup,
    ModelSelection,
    create_discussion,
)
from inclination.storage import JsonDocumentStore  # noqa: E402


@pytest.fixture
def store(tmp_path) -> JsonDocumentStore:
    """Document store rooted in a per-test temporary directory."""
    return JsonDocumentStore(tmp_path / "data")


@pytest.fixture
def make_discussion(store):
    """Factory that creates and stores an Explore vs Exploit discussion."""

    def _make(selections=None, rounds: int = 2, **overrides):
        fields = {
            "concept_a": "Explore",
            "concept_b": "Exploit",
            "context": "A product team is planning next quarter.",
            "option_a": "Investigate new markets",
            "option_b": "Double down on the core product",
            "rounds": rounds,
            "selections": selections or [
                ModelSelection(model_id="claude", count=1),
                ModelSelection(model_id="gpt4", count=1),
            ],
        }
        fields.update(overrides)
        return create_discussion(DiscussionSetup(**fields), store=store)

    return _make
