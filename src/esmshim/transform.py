"""Rewrite module ``<script>`` tags of a parsed HTML document.

The pipeline runs over one tree, in place, in a fixed order:

1. resolve the base URL (honouring ``<base href>``),
2. inject polyfills (generator runtime, AMD loader) and drop ``nomodule``
   scripts when modules are converted to AMD,
3. rewrite external module scripts (cache-busting query parameter, and in
   AMD mode an inline ``define()`` stub),
4. rewrite inline module scripts through the module-source strategy.

Polyfill injection runs before either rewriting stage so that its reference
points (first module script, first child of ``<head>``) are read from the
document as authored.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .dom import (
    get_attr,
    get_text_content,
    has_tag,
    is_external_module_script,
    is_inline_module_script,
    query_all,
    query_one,
    remove_attr,
    set_attr,
    set_text_content,
)
from .jsmodule import transform_js_module
from .plugins import Capabilities
from .polyfills import inject_amd_loader, inject_regenerator_runtime, remove_nomodule_scripts
from .utils import append_query_parameter, preserve_surrounding_whitespace, resolve_url

if TYPE_CHECKING:
    from collections.abc import Sequence
    from typing import Any

    from .jsmodule import JSModuleSourceStrategy

logger = logging.getLogger(__name__)
_default_logger = logger


def get_base_url(root: Any, location: str) -> str:
    """Return the URL relative module specifiers resolve against.

    That is the first ``<base href>`` resolved against ``location``, or
    ``location`` itself when there is no usable base element.
    """
    base = query_one(root, has_tag("base"))
    if base is None:
        return location
    href = get_attr(base, "href")
    if not href:
        return location
    resolved = resolve_url(location, href)
    if resolved is None:
        logger.debug("Ignoring malformed <base href=%r>", href)
        return location
    return resolved


def define_stub(src: str) -> str:
    """Module-registration call that loads ``src`` through the AMD loader."""
    quoted = src.replace("\\", "\\\\").replace("'", "\\'")
    return f"define(['{quoted}']);"


def convert_external_module_to_inline_define(script: Any) -> None:
    set_text_content(script, define_stub(get_attr(script, "src") or ""))
    remove_attr(script, "src")
    remove_attr(script, "type")


def inject_polyfills(root: Any, capabilities: Capabilities) -> None:
    if capabilities.regenerator:
        inject_regenerator_runtime(root)
    if capabilities.modules_amd:
        inject_amd_loader(root)
        removed = remove_nomodule_scripts(root)
        if removed:
            logger.debug("Removed %d nomodule script(s)", removed)


def rewrite_external_modules(root: Any, capabilities: Capabilities, query_param: str) -> None:
    for script in query_all(root, is_external_module_script):
        # The define() stub reads src, so the query parameter must already be on it.
        set_attr(script, "src", append_query_parameter(get_attr(script, "src") or "", query_param))
        if capabilities.modules_amd:
            convert_external_module_to_inline_define(script)


async def rewrite_inline_modules(
    root: Any,
    base_url: str,
    js_module_transform: JSModuleSourceStrategy,
    plugins: Sequence[Any],
    query_param: str,
    logger: logging.Logger,
) -> None:
    async def transform(module: Any) -> str:
        return await transform_js_module(module, base_url, plugins, query_param, logger)

    # One script at a time, in document order.
    for script in query_all(root, is_inline_module_script):
        original = get_text_content(script)
        transformed = await js_module_transform(original, transform)
        set_text_content(script, preserve_surrounding_whitespace(original, transformed))
        remove_attr(script, "type")


async def transform_html(
    ast: Any,
    url: str,
    js_module_transform: JSModuleSourceStrategy,
    plugins: Sequence[Any],
    query_param: str,
    logger: logging.Logger | None = None,
) -> Any:
    """Rewrite the module scripts of ``ast`` in place and return it.

    Errors raised by the strategy or the module transform propagate; the
    tree is left as far as the pipeline got.
    """
    if logger is None:
        logger = _default_logger
    plugins = list(plugins)
    base_url = get_base_url(ast, url)
    capabilities = Capabilities.from_plugins(plugins)

    inject_polyfills(ast, capabilities)
    rewrite_external_modules(ast, capabilities, query_param)
    await rewrite_inline_modules(ast, base_url, js_module_transform, plugins, query_param, logger)
    return ast
