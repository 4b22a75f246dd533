"""
Built-in plugin abilities.

Lets the assistant list the site's plugins, switch one on or off, and install a new one from a
plugin repository.  Both the installed plugins and the repository are held by an in-memory
:class:`PluginStore`.
"""

import logging
import threading
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
)

from pydantic import BaseModel

from ai_assistant.core.errors import ToolExecutionError
from ai_assistant.tools import (
    PermissionResult,
    ToolDescriptor,
    require_capability,
)

logger = logging.getLogger(__name__)

MANAGE_OPTIONS = "manage_options"
ACTIVATE_PLUGINS = "activate_plugins"
DEACTIVATE_PLUGINS = "deactivate_plugins"
INSTALL_PLUGINS = "install_plugins"

ALL_PLUGIN_CAPABILITIES = (MANAGE_OPTIONS, ACTIVATE_PLUGINS, DEACTIVATE_PLUGINS, INSTALL_PLUGINS)


class Plugin(BaseModel):
    """A plugin, installed or available for installation."""

    slug: str
    name: str
    version: str = "1.0.0"
    description: str = ""
    author: str = ""
    active: bool = False

    @property
    def plugin_file(self) -> str:
        return f"{self.slug}/{self.slug}.php"

    def summary(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "plugin_file": self.plugin_file,
            "version": self.version,
            "description": self.description,
            "author": self.author,
            "status": "active" if self.active else "inactive",
        }


class PluginStore:
    """Installed plugins plus the repository new plugins are installed from."""

    def __init__(
        self,
        installed: Optional[Iterable[Plugin]] = None,
        repository: Optional[Iterable[Plugin]] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._installed: Dict[str, Plugin] = {plugin.slug: plugin for plugin in installed or []}
        self._repository: Dict[str, Plugin] = {plugin.slug: plugin for plugin in repository or []}

    def list(self, include_inactive: bool = False) -> List[Plugin]:
        with self._lock:
            return [p for p in self._installed.values() if include_inactive or p.active]

    def find(self, term: str) -> Optional[Plugin]:
        """
        Resolve *term* to an installed plugin.

        Tried in order: exact slug, exact name (case-insensitive), partial name, partial slug.
        """
        needle = term.lower()
        with self._lock:
            plugins = list(self._installed.values())
        matchers = (
            lambda p: p.slug == term,
            lambda p: p.name.lower() == needle,
            lambda p: needle in p.name.lower(),
            lambda p: needle in p.slug.lower(),
        )
        for matches in matchers:
            for plugin in plugins:
                if matches(plugin):
                    return plugin
        return None

    def set_active(self, slug: str, active: bool) -> Plugin:
        with self._lock:
            plugin = self._installed[slug].model_copy(update={"active": active})
            self._installed[slug] = plugin
            return plugin

    def install(self, slug: str) -> Plugin:
        """Copy *slug* from the repository into the installed plugins, activated."""
        with self._lock:
            if slug not in self._repository:
                raise KeyError(slug)
            plugin = self._repository[slug].model_copy(update={"active": True})
            self._installed[slug] = plugin
            return plugin


def _activation_check(capabilities: Iterable[str]):
    granted = frozenset(capabilities)

    def check(args: Mapping[str, Any]) -> PermissionResult:
        if args.get("activate", True):
            if ACTIVATE_PLUGINS not in granted:
                return PermissionResult(False, "Sorry, you are not allowed to activate plugins.")
        elif DEACTIVATE_PLUGINS not in granted:
            return PermissionResult(False, "Sorry, you are not allowed to deactivate plugins.")
        return PermissionResult(True)

    return check


def build_plugin_tools(
    store: PluginStore, capabilities: Iterable[str] = ALL_PLUGIN_CAPABILITIES
) -> List[ToolDescriptor]:
    """Return the plugin abilities bound to *store* for a user holding *capabilities*."""
    capabilities = frozenset(capabilities)

    def get_active_plugins(args: Mapping[str, Any]) -> Dict[str, Any]:
        plugins = store.list(include_inactive=bool(args.get("include_inactive", False)))
        return {
            "active_plugins": [plugin.summary() for plugin in plugins],
            "total_count": len(plugins),
        }

    def activate_plugin(args: Mapping[str, Any]) -> Dict[str, Any]:
        term = args.get("plugin_name")
        if not isinstance(term, str) or not term.strip():
            raise ToolExecutionError("A valid plugin name or folder/slug is required.")
        plugin = store.find(term.strip())
        if plugin is None:
            raise ToolExecutionError(
                f'Plugin with name or folder "{term}" not found or not installed.'
            )

        activate = bool(args.get("activate", True))
        verb = "activated" if activate else "deactivated"
        if plugin.active == activate:
            message = f'Plugin "{plugin.name}" is already {"active" if activate else "inactive"}.'
        else:
            plugin = store.set_active(plugin.slug, activate)
            message = f'Plugin "{plugin.name}" has been {verb} successfully.'
            logger.info("Plugin %s %s", plugin.slug, verb)
        return {
            "success": True,
            "message": message,
            "plugin_name": plugin.name,
            "plugin_file": plugin.plugin_file,
        }

    def install_plugin(args: Mapping[str, Any]) -> Dict[str, Any]:
        slug = args.get("slug")
        if not isinstance(slug, str) or not slug:
            raise ToolExecutionError("A valid plugin slug is required.")
        try:
            plugin = store.install(slug)
        except KeyError as exc:
            raise ToolExecutionError(f"Plugin '{slug}' was not found in the repository.") from exc
        logger.info("Installed and activated plugin %s", plugin.slug)
        return {"success": True, "error": ""}

    return [
        ToolDescriptor(
            name="get-active-plugins",
            description=(
                "Retrieves a list of all currently active plugins on the site. "
                "Call this with an empty object {} as input."
            ),
            execute=get_active_plugins,
            input_schema={
                "type": "object",
                "properties": {
                    "include_inactive": {
                        "type": "boolean",
                        "description": "Whether to include inactive plugins in the list as well.",
                    },
                },
                "required": [],
            },
            output_schema={
                "type": "object",
                "properties": {
                    "active_plugins": {"type": "array", "items": {"type": "object"}},
                    "total_count": {"type": "integer"},
                },
            },
            permission_check=require_capability(
                capabilities, MANAGE_OPTIONS, "view the plugin list"
            ),
        ),
        ToolDescriptor(
            name="activate-plugin",
            description="Activates or deactivates an installed plugin by folder name or slug.",
            execute=activate_plugin,
            input_schema={
                "type": "object",
                "properties": {
                    "plugin_name": {
                        "type": "string",
                        "description": "The plugin name or folder/slug (e.g., Akismet, akismet).",
                    },
                    "activate": {
                        "type": "boolean",
                        "description": "Whether to activate (true) or deactivate (false).",
                    },
                },
                "required": ["plugin_name"],
            },
            output_schema={
                "type": "object",
                "properties": {
                    "success": {"type": "boolean"},
                    "message": {"type": "string"},
                    "plugin_name": {"type": "string"},
                    "plugin_file": {"type": "string"},
                },
            },
            permission_check=_activation_check(capabilities),
        ),
        ToolDescriptor(
            name="install-plugin",
            description="Installs and activates a plugin from the plugin repository by slug.",
            execute=install_plugin,
            input_schema={
                "type": "object",
                "properties": {
                    "slug": {"type": "string", "description": "The plugin slug (e.g., akismet)."},
                },
                "required": ["slug"],
            },
            output_schema={
                "type": "object",
                "properties": {"success": {"type": "boolean"}, "error": {"type": "string"}},
            },
            permission_check=require_capability(capabilities, INSTALL_PLUGINS, "install plugins"),
        ),
    ]
