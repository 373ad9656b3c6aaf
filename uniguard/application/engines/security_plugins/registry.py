"""
Security Plugin Registry

Manages registration, configuration, lifecycle and hook execution of
security plugins.
"""

import inspect
import itertools
import logging
from typing import Any, Optional, Union

from uniguard.exceptions import (
    InvalidPluginError,
    PluginError,
    PluginInitializationError,
)
from uniguard.application.engines.security_plugins.base import (
    SUBJECT_FIRST_HOOKS,
    HookName,
    PluginConfig,
    PluginContext,
    PluginPriority,
    RegisteredPlugin,
    RegisterPluginOptions,
    SecurityPlugin,
)

logger = logging.getLogger(__name__)


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class PluginRegistry:
    """
    Catalog of security plugins keyed by unique name.

    Features:
    - Register/unregister plugins with initialize/cleanup lifecycle
    - Enable/disable plugins at runtime
    - Priority ordering per hook (stable for equal priorities)
    - Sequential hook execution with error attribution
    """

    def __init__(self):
        self._plugins: dict[str, RegisteredPlugin] = {}
        self._sequence = itertools.count()

    async def register(
        self,
        plugin: SecurityPlugin,
        options: Optional[RegisterPluginOptions] = None,
    ) -> RegisteredPlugin:
        """
        Register a security plugin.

        The plugin is added only after initialize() succeeds.

        Raises:
            PluginError: a plugin with the same name is already registered
            InvalidPluginError: missing name, version or hooks
            PluginInitializationError: initialize() failed
        """
        self._validate_plugin(plugin)
        name = plugin.metadata.name

        if name in self._plugins:
            raise PluginError(f"Plugin '{name}' is already registered", name)

        config = self._merge_config(plugin, options)
        registered = RegisteredPlugin(
            plugin=plugin,
            config=config,
            enabled=config.enabled,
            priority=int(config.priority),
        )

        try:
            await _maybe_await(plugin.initialize())
        except Exception as e:
            logger.error(f"Failed to initialize plugin {name}: {e}")
            raise PluginInitializationError(name, e) from e

        registered.sequence = next(self._sequence)
        self._plugins[name] = registered
        logger.info(
            f"Registered security plugin: {name} v{plugin.metadata.version} "
            f"(priority={registered.priority}, enabled={registered.enabled})"
        )
        return registered

    async def unregister(self, name: str) -> None:
        """Unregister a plugin by name. Cleanup failures are logged, never raised."""
        registered = self._plugins.get(name)
        if registered is None:
            return

        try:
            await _maybe_await(registered.plugin.cleanup())
        except Exception as e:
            logger.warning(f"Plugin cleanup failed for '{name}': {e}")

        self._plugins.pop(name, None)
        logger.info(f"Unregistered security plugin: {name}")

    def enable(self, name: str) -> None:
        """Enable a plugin."""
        if name in self._plugins:
            self._plugins[name].enabled = True

    def disable(self, name: str) -> None:
        """Disable a plugin."""
        if name in self._plugins:
            self._plugins[name].enabled = False

    def get(self, name: str) -> Optional[RegisteredPlugin]:
        """Get a plugin by name."""
        return self._plugins.get(name)

    def get_all(self) -> list[RegisteredPlugin]:
        """All registered plugins, in registration order."""
        return list(self._plugins.values())

    def get_for_hook(self, hook_name: Union[HookName, str]) -> list[RegisteredPlugin]:
        """Enabled plugins implementing `hook_name`, highest priority first."""
        candidates = [
            p for p in self._plugins.values() if p.enabled and p.implements(hook_name)
        ]
        # Equal priorities keep registration order
        return sorted(candidates, key=lambda p: (-p.priority, p.sequence))

    async def invoke_hook(
        self,
        registered: RegisteredPlugin,
        hook_name: Union[HookName, str],
        context: PluginContext,
        *args: Any,
    ) -> Any:
        """
        Call one plugin's hook.

        Plugin errors propagate unchanged; anything else is wrapped in a
        PluginError naming the plugin and hook.
        """
        hook_name = HookName(hook_name)
        hook = registered.plugin.hooks.get(hook_name)
        if hook is None:
            return None

        if hook_name in SUBJECT_FIRST_HOOKS:
            call_args = (*args, context)
        else:
            call_args = (context, *args)

        try:
            return await _maybe_await(hook(*call_args))
        except PluginError:
            raise
        except Exception as e:
            raise PluginError(
                str(e) or e.__class__.__name__,
                registered.name,
                hook_name.value,
            ) from e

    async def execute_hook(
        self,
        hook_name: Union[HookName, str],
        context: PluginContext,
        *args: Any,
    ) -> list[Any]:
        """
        Run `hook_name` on every enabled plugin, one after another.

        Returns each hook's return value, in plugin order. The first error
        stops the remaining plugins.
        """
        pairs = await self.execute_hook_attributed(hook_name, context, *args)
        return [result for _, result in pairs]

    async def execute_hook_attributed(
        self,
        hook_name: Union[HookName, str],
        context: PluginContext,
        *args: Any,
    ) -> list[tuple[RegisteredPlugin, Any]]:
        """Like execute_hook, pairing each result with the plugin that returned it."""
        pairs = []
        for registered in self.get_for_hook(hook_name):
            result = await self.invoke_hook(registered, hook_name, context, *args)
            pairs.append((registered, result))
        return pairs

    async def clear(self) -> None:
        """Unregister every plugin."""
        for name in list(self._plugins):
            await self.unregister(name)

    def __len__(self) -> int:
        return len(self._plugins)

    def __contains__(self, name: object) -> bool:
        return name in self._plugins

    def list_plugins(self) -> list[dict]:
        """Summaries of all registered plugins."""
        return [
            {
                "name": p.name,
                "version": p.plugin.metadata.version,
                "description": p.plugin.metadata.description,
                "enabled": p.enabled,
                "priority": p.priority,
                "hooks": [h.value for h in p.plugin.hooks.implemented()],
            }
            for p in self._plugins.values()
        ]

    @staticmethod
    def _merge_config(
        plugin: SecurityPlugin, options: Optional[RegisterPluginOptions]
    ) -> PluginConfig:
        """Registry defaults < plugin defaults < caller overrides."""
        merged: dict[str, Any] = {
            "enabled": True,
            "priority": PluginPriority.NORMAL,
        }

        layers = [plugin.config]
        if options is not None:
            layers.append(options.config)
        for layer in layers:
            if layer is not None:
                merged.update(layer.model_dump(exclude_none=True))

        if options is not None:
            if options.enabled is not None:
                merged["enabled"] = options.enabled
            if options.priority is not None:
                merged["priority"] = options.priority

        return PluginConfig(**merged)

    @staticmethod
    def _validate_plugin(plugin: SecurityPlugin) -> None:
        """Validate plugin structure."""
        metadata = getattr(plugin, "metadata", None)

        if metadata is None or not metadata.name:
            raise InvalidPluginError("Plugin must have a name")

        if not metadata.version:
            raise InvalidPluginError("Plugin must have a version")

        hooks = getattr(plugin, "hooks", None)
        if hooks is None or not hooks.implemented():
            raise InvalidPluginError("Plugin must implement at least one hook")


# Default plugin registry
plugin_registry = PluginRegistry()


async def register_plugin(
    plugin: SecurityPlugin,
    options: Optional[RegisterPluginOptions] = None,
) -> RegisteredPlugin:
    """Register a plugin with the default registry."""
    return await plugin_registry.register(plugin, options)


async def unregister_plugin(name: str) -> None:
    await plugin_registry.unregister(name)


def enable_plugin(name: str) -> None:
    plugin_registry.enable(name)


def disable_plugin(name: str) -> None:
    plugin_registry.disable(name)


def get_plugin(name: str) -> Optional[RegisteredPlugin]:
    return plugin_registry.get(name)


def get_plugins() -> list[RegisteredPlugin]:
    return plugin_registry.get_all()


async def clear_plugins() -> None:
    await plugin_registry.clear()
