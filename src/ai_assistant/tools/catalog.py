"""The default ability catalog: post and plugin abilities in one registry."""

from typing import (
    Iterable,
    Optional,
)

from ai_assistant.tools import ToolRegistry
from ai_assistant.tools.plugins import (
    ALL_PLUGIN_CAPABILITIES,
    PluginStore,
    build_plugin_tools,
)
from ai_assistant.tools.posts import (
    EDIT_POSTS,
    PUBLISH_POSTS,
    PostStore,
    build_post_tools,
)

ALL_CAPABILITIES = (EDIT_POSTS, PUBLISH_POSTS, *ALL_PLUGIN_CAPABILITIES)


def build_default_registry(
    posts: PostStore,
    plugins: Optional[PluginStore] = None,
    capabilities: Iterable[str] = ALL_CAPABILITIES,
) -> ToolRegistry:
    """Return a registry with the post abilities and, given a *plugins* store, the plugin ones."""
    capabilities = frozenset(capabilities)
    tools = build_post_tools(posts, capabilities)
    if plugins is not None:
        tools += build_plugin_tools(plugins, capabilities)
    return ToolRegistry(tools)
