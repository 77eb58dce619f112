"""Polyfill script templates and their injection into documents.

Each template is parsed once per process from its static source and is never
attached to a document: every injection inserts a deep clone, so documents
transformed one after another (or concurrently) never share nodes.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from importlib import resources
from typing import TYPE_CHECKING

from justhtml import JustHTML

from .config import get_settings
from .dom import (
    has_tag,
    insert_before,
    insert_first,
    is_module_script,
    is_nomodule_script,
    query_all,
    query_one,
    remove_node,
)

if TYPE_CHECKING:
    from pathlib import Path
    from typing import Any

logger = logging.getLogger(__name__)

AMD_LOADER = "esm-amd-loader.js"
REGENERATOR_RUNTIME = "regenerator-runtime.js"


class PolyfillError(RuntimeError):
    """A polyfill asset could not be read or did not yield a script element."""


def _asset_override(name: str) -> Path | None:
    settings = get_settings()
    if name == AMD_LOADER:
        return settings.amd_loader_path
    if name == REGENERATOR_RUNTIME:
        return settings.regenerator_runtime_path
    return None


def read_polyfill_source(name: str) -> str:
    """Return the JavaScript source of a polyfill asset."""
    override = _asset_override(name)
    try:
        if override is not None:
            return override.read_text(encoding="utf-8")
        return resources.files(__package__).joinpath("assets", name).read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"cannot read polyfill {name!r}: {exc}"
        raise PolyfillError(msg) from exc


@lru_cache(maxsize=None)
def polyfill_template(name: str) -> Any:
    """Parse the named polyfill into a ``<script>`` element, once per process.

    The returned node is shared; never insert it directly, use
    :func:`clone_polyfill`.
    """
    source = read_polyfill_source(name)
    doc = JustHTML(f"<script>\n{source}\n</script>")
    script = query_one(doc.root, has_tag("script"))
    if script is None:
        msg = f"polyfill {name!r} did not parse to a <script> element"
        raise PolyfillError(msg)
    logger.debug("Parsed polyfill template %s (%d chars)", name, len(source))
    return script


def clone_polyfill(name: str) -> Any:
    return polyfill_template(name).clone_node(deep=True)


def clear_template_cache() -> None:
    polyfill_template.cache_clear()


def inject_regenerator_runtime(root: Any) -> bool:
    """Insert the generator runtime as the first child of ``<head>``.

    Returns False (and changes nothing) when the document has no head.
    """
    head = query_one(root, has_tag("head"))
    if head is None:
        logger.debug("No <head>; skipping %s", REGENERATOR_RUNTIME)
        return False
    insert_first(head, clone_polyfill(REGENERATOR_RUNTIME))
    return True


def inject_amd_loader(root: Any) -> bool:
    """Insert the AMD loader so it runs before any module script.

    The loader goes directly before the first ``<script type=module>``, or
    failing that becomes the first child of ``<head>``.
    """
    first_module = query_one(root, is_module_script)
    if first_module is not None and first_module.parent is not None:
        insert_before(first_module, clone_polyfill(AMD_LOADER))
        return True
    head = query_one(root, has_tag("head"))
    if head is not None:
        insert_first(head, clone_polyfill(AMD_LOADER))
        return True
    logger.debug("No module script and no <head>; skipping %s", AMD_LOADER)
    return False


def remove_nomodule_scripts(root: Any) -> int:
    scripts = query_all(root, is_nomodule_script)
    for script in scripts:
        remove_node(script)
    return len(scripts)
