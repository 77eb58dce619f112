"""Compact HTML serialization for transformed documents.

Script bodies are emitted verbatim: escaping ``<`` or ``&`` inside a
``<script>`` would change the JavaScript the browser sees.
"""

# ruff: noqa: PERF401

from __future__ import annotations

from typing import Any

VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)

# Elements whose text children are raw text in the HTML syntax
RAWTEXT_ELEMENTS = frozenset({"script", "style", "xmp", "iframe", "noembed", "noframes", "plaintext"})


def _escape_text(text: str | None) -> str:
    if not text:
        return ""
    return str(text).replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _escape_attr_value(value: str) -> str:
    return value.replace("&", "&amp;").replace('"', "&quot;")


def serialize_start_tag(name: str, attrs: dict[str, str | None] | None) -> str:
    parts: list[str] = ["<", name]
    for key, value in (attrs or {}).items():
        if value is None or value == "":
            parts.extend([" ", key])
        else:
            parts.extend([" ", key, '="', _escape_attr_value(str(value)), '"'])
    parts.append(">")
    return "".join(parts)


def serialize_end_tag(name: str) -> str:
    return f"</{name}>"


def to_html(node: Any) -> str:
    """Convert a node (or whole document) to an HTML string."""
    return _node_to_html(node, rawtext=False)


def _node_to_html(node: Any, *, rawtext: bool) -> str:
    name: str = node.name

    if name == "#text":
        if rawtext:
            return node.data or ""
        return _escape_text(node.data)

    if name == "#comment":
        return f"<!--{node.data or ''}-->"

    if name == "!doctype":
        return "<!DOCTYPE html>"

    if name in {"#document", "#document-fragment"}:
        return "".join(_node_to_html(child, rawtext=False) for child in node.children or [])

    open_tag = serialize_start_tag(name, node.attrs)
    if name in VOID_ELEMENTS:
        return open_tag

    if name == "template" and getattr(node, "template_content", None) is not None:
        children: list[Any] = node.template_content.children or []
    else:
        children = node.children or []

    child_rawtext = name in RAWTEXT_ELEMENTS and getattr(node, "namespace", None) in {None, "html"}
    parts = [open_tag]
    for child in children:
        parts.append(_node_to_html(child, rawtext=child_rawtext))
    parts.append(serialize_end_tag(name))
    return "".join(parts)
