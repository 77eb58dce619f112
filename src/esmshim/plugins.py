"""Capability (plugin) identifiers understood by the HTML transform.

Plugin lists are passed through opaquely to the module transform; the HTML
transform itself only asks whether two known capabilities are present.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any

TRANSFORM_MODULES_AMD = "transform-modules-amd"
TRANSFORM_REGENERATOR = "transform-regenerator"

_PREFIXES = ("@babel/plugin-", "@babel/", "babel-plugin-")


def plugin_name(plugin: Any) -> str | None:
    """Return the normalised identifier of a plugin item.

    Items can be a bare identifier, an ``(identifier, options)`` pair, or any
    object with a ``name`` attribute.
    """
    if isinstance(plugin, (tuple, list)):
        if not plugin:
            return None
        plugin = plugin[0]
    if not isinstance(plugin, str):
        plugin = getattr(plugin, "name", None)
        if not isinstance(plugin, str):
            return None
    for prefix in _PREFIXES:
        if plugin.startswith(prefix):
            return plugin[len(prefix) :]
    return plugin


def contains_plugin(plugins: Iterable[Any], identifier: str) -> bool:
    wanted = plugin_name(identifier)
    return any(plugin_name(plugin) == wanted for plugin in plugins)


@dataclass(frozen=True, slots=True)
class Capabilities:
    modules_amd: bool = False
    regenerator: bool = False

    @classmethod
    def from_plugins(cls, plugins: Iterable[Any]) -> Capabilities:
        plugins = list(plugins)
        return cls(
            modules_amd=contains_plugin(plugins, TRANSFORM_MODULES_AMD),
            regenerator=contains_plugin(plugins, TRANSFORM_REGENERATOR),
        )
