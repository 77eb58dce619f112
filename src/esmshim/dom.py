"""Tree query and mutation helpers for justhtml nodes.

Lookups are plain document-order walks parameterised by a predicate, so the
transform never depends on a selector engine. All mutations go through the
node's own ``append_child`` / ``insert_before`` / ``remove_child`` so sibling
bookkeeping stays with the parser's node type.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from justhtml.node import TextNode

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from typing import Any

    Predicate = Callable[[Any], bool]

# Names the parser uses for non-element nodes
NON_ELEMENT_NAMES = frozenset({"#text", "#comment", "!doctype", "#document", "#document-fragment"})


def is_element(node: Any) -> bool:
    return node.name not in NON_ELEMENT_NAMES


def iter_elements(root: Any) -> Iterator[Any]:
    """Yield element nodes under ``root`` (inclusive) in document order."""
    stack = [root]
    while stack:
        node = stack.pop()
        if is_element(node):
            yield node
        children = getattr(node, "children", None)
        if children:
            # Snapshot so the consumer may detach the node it was just handed.
            stack.extend(reversed(list(children)))


def query_one(root: Any, predicate: Predicate) -> Any | None:
    for node in iter_elements(root):
        if predicate(node):
            return node
    return None


def query_all(root: Any, predicate: Predicate) -> list[Any]:
    return [node for node in iter_elements(root) if predicate(node)]


# -----------
# Predicates
# -----------


def has_tag(name: str) -> Predicate:
    def predicate(node: Any) -> bool:
        return node.name == name

    return predicate


def has_attr(node: Any, name: str) -> bool:
    attrs = node.attrs
    return bool(attrs) and name in attrs


def is_module_script(node: Any) -> bool:
    return node.name == "script" and (get_attr(node, "type") or "").strip().lower() == "module"


def is_external_module_script(node: Any) -> bool:
    return is_module_script(node) and has_attr(node, "src")


def is_inline_module_script(node: Any) -> bool:
    return is_module_script(node) and not has_attr(node, "src")


def is_nomodule_script(node: Any) -> bool:
    return node.name == "script" and has_attr(node, "nomodule")


# ----------
# Attributes
# ----------


def get_attr(node: Any, name: str) -> str | None:
    attrs = node.attrs
    if not attrs:
        return None
    return attrs.get(name)


def set_attr(node: Any, name: str, value: str) -> None:
    if node.attrs is None:
        node.attrs = {}
    node.attrs[name] = value


def remove_attr(node: Any, name: str) -> None:
    if node.attrs:
        node.attrs.pop(name, None)


# ----
# Text
# ----


def get_text_content(node: Any) -> str:
    if node.name == "#text":
        return node.data or ""
    parts: list[str] = []
    stack = list(reversed(node.children or []))
    while stack:
        current = stack.pop()
        if current.name == "#text":
            parts.append(current.data or "")
        elif getattr(current, "children", None):
            stack.extend(reversed(current.children))
    return "".join(parts)


def set_text_content(node: Any, text: str) -> None:
    for child in list(node.children or []):
        node.remove_child(child)
    if text:
        node.append_child(TextNode(text))


# ---------
# Structure
# ---------


def insert_before(reference: Any, node: Any) -> None:
    """Insert ``node`` as the immediately preceding sibling of ``reference``."""
    parent = reference.parent
    if parent is None:
        return
    parent.insert_before(node, reference)


def insert_first(parent: Any, node: Any) -> None:
    if parent.children:
        parent.insert_before(node, parent.children[0])
    else:
        parent.append_child(node)


def remove_node(node: Any) -> None:
    parent = node.parent
    if parent is not None:
        parent.remove_child(node)
