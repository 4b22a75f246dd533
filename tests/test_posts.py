"""Tests for the built-in post abilities."""

import pytest

from ai_assistant.core.errors import ToolExecutionError
from ai_assistant.tools import ToolRegistry
from ai_assistant.tools.catalog import build_default_registry
from ai_assistant.tools.posts import (
    EDIT_POSTS,
    Post,
    PostStore,
)


def _tool(registry: ToolRegistry, name: str):
    tool = registry.find(name)
    assert tool is not None
    return tool


def test_catalog_names(registry: ToolRegistry) -> None:
    assert [tool.function_name for tool in registry] == [
        "get_post",
        "search_posts",
        "create_post_draft",
        "publish_post",
    ]


def test_create_then_publish(registry: ToolRegistry, post_store: PostStore) -> None:
    draft = _tool(registry, "create-post-draft").execute(
        {"title": " Hello ", "content": "<p>Hi</p>", "featured_image_id": "7"}
    )

    assert draft == {"id": 1, "title": "Hello", "status": "draft", "edit_link": "/posts/1/edit"}
    assert post_store.get(1).featured_image_id == 7  # type: ignore[union-attr]

    published = _tool(registry, "publish_post").execute({"id": 1})
    assert published["status"] == "publish"


def test_create_requires_title(registry: ToolRegistry) -> None:
    with pytest.raises(ToolExecutionError, match="Title is required"):
        _tool(registry, "create-post-draft").execute({"content": "body"})


def test_get_post(registry: ToolRegistry, post_store: PostStore) -> None:
    post_store.create(title="Existing", content="Body")

    post = _tool(registry, "get-post").execute({"id": "1"})

    assert post["title"] == "Existing"
    assert post["edit_link"] == "/posts/1/edit"


@pytest.mark.parametrize("args", [{}, {"id": "abc"}, {"id": 99}])
def test_get_post_errors(registry: ToolRegistry, args) -> None:
    with pytest.raises(ToolExecutionError):
        _tool(registry, "get-post").execute(args)


def test_search_posts() -> None:
    store = PostStore(
        [
            Post(id=1, title="Python tips"),
            Post(id=5, title="Other", content="more python"),
            Post(id=9, title="Unrelated"),
        ]
    )
    search = _tool(build_default_registry(store), "search-posts")

    assert [hit["id"] for hit in search.execute({"search": "PYTHON"})] == [1, 5]
    assert len(search.execute({"search": "python", "limit": 1})) == 1
    with pytest.raises(ToolExecutionError):
        search.execute({"search": ""})
    # New posts continue after the highest seeded id.
    assert store.create(title="Next").id == 10


def test_write_abilities_follow_capabilities(post_store: PostStore) -> None:
    registry = build_default_registry(post_store, capabilities=[EDIT_POSTS])

    assert _tool(registry, "get-post").check_permission({"id": 1}).allowed
    assert _tool(registry, "create-post-draft").check_permission({"title": "x"}).allowed
    denied = _tool(registry, "publish-post").check_permission({"id": 1})
    assert not denied.allowed
    assert denied.reason == "Sorry, you are not allowed to publish posts."
