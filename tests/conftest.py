"""Shared fixtures for the test-suite."""

import pytest

from ai_assistant.tools import ToolRegistry
from ai_assistant.tools.catalog import build_default_registry
from ai_assistant.tools.posts import PostStore


@pytest.fixture
def post_store() -> PostStore:
    return PostStore()


@pytest.fixture
def registry(post_store: PostStore) -> ToolRegistry:
    return build_default_registry(post_store)
