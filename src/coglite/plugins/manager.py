"""Utility functions to manage the project-wide hook configuration."""

import logging
import threading
from inspect import isclass
from typing import Any

from pluggy import PluginManager

from .hooks.markers import HOOK_NAMESPACE
from .hooks.specs import DriveSpec
from .hooks.specs import StepSpec

logger = logging.getLogger(__name__)

_PLUGIN_ENTRY_POINT = "coglite.hooks"  # entry-point to load hooks from for installed plugins
_PLUGIN_MANAGER: PluginManager | None = None
_PLUGIN_LOCK = threading.RLock()


# region API


def register_hooks(*hooks: Any) -> None:
    """Register specified coglite pluggy hooks."""
    hook_manager = _get_global_plugin_manager()
    for hooks_collection in hooks:
        if not hook_manager.is_registered(hooks_collection):
            if isclass(hooks_collection):
                raise TypeError(
                    "coglite expects hooks to be registered as instances. "
                    "Have you forgotten the `()` when registering a hook class?"
                )
            hook_manager.register(hooks_collection)


def unregister_hooks(*hooks: Any) -> None:
    """Unregister previously registered coglite pluggy hooks."""
    hook_manager = _get_global_plugin_manager()
    for hooks_collection in hooks:
        if hook_manager.is_registered(hooks_collection):
            hook_manager.unregister(hooks_collection)


def register_plugins_entry_points(_plugin_manager: PluginManager | None = None) -> int:
    """Register coglite plugins from Python package entrypoints."""
    _plugin_manager = _plugin_manager if _plugin_manager else _get_global_plugin_manager()
    return _plugin_manager.load_setuptools_entrypoints(_PLUGIN_ENTRY_POINT)  # Doesn't use setuptools


def get_hook_manager() -> PluginManager:
    """Returns the global hook manager, creating it on first use."""
    return _get_global_plugin_manager()


def create_hook_manager_with_plugins(plugins: list[Any]) -> PluginManager:
    """
    Create a new hook manager with both global and drive-specific plugins.

    This combines globally registered hooks with additional hooks for a specific drive.
    Used internally by Driver to support per-drive hooks.

    Args:
        plugins: Additional hook implementations to register.

    Returns:
        A new PluginManager with global + drive-specific hooks.
    """
    manager = _create_plugin_manager()

    global_manager = _get_global_plugin_manager()
    for plugin in global_manager.get_plugins():
        if not manager.is_registered(plugin):  # pragma: no branch
            manager.register(plugin)

    for plugin in plugins:
        if not manager.is_registered(plugin):  # pragma: no branch
            if isclass(plugin):
                raise TypeError(
                    "coglite expects hooks to be registered as instances. "
                    "Have you forgotten the `()` when registering a hook class?"
                )
            manager.register(plugin)

    return manager


# region Helpers


def _initialize_plugin_system() -> PluginManager:
    """Initializes hooks for the coglite library."""
    manager = _create_plugin_manager()
    global _PLUGIN_MANAGER
    with _PLUGIN_LOCK:
        _PLUGIN_MANAGER = manager
    return manager


def _get_global_plugin_manager() -> PluginManager:
    """Returns initialized global plugin manager, initializing it if needed."""
    with _PLUGIN_LOCK:
        plugin_manager = _PLUGIN_MANAGER
        if plugin_manager is None:
            plugin_manager = _initialize_plugin_system()
        return plugin_manager


def _create_plugin_manager() -> PluginManager:
    """Create a new PluginManager instance and register coglite's hook specs."""
    manager = PluginManager(HOOK_NAMESPACE)
    manager.trace.root.setwriter(
        logger.debug if logger.getEffectiveLevel() == logging.DEBUG else None
    )
    manager.enable_tracing()
    manager.add_hookspecs(DriveSpec)
    manager.add_hookspecs(StepSpec)
    return manager
