"""Module-source strategies and the built-in module transform.

The HTML transform hands every inline module body to a *strategy*. The
strategy decides what to do with the text and may call back into the module
transform, which rewrites import specifiers and, in AMD mode, wraps the body
in a ``define()`` call.

The built-in parser is statement-level and line-oriented: it recognises
``import``/``export`` statements that begin a line (or follow one on it),
skips lines inside block comments and template literals, and treats everything
else as opaque JavaScript. It is enough for the inline scripts found in HTML
pages; swap in a strategy backed by a real JavaScript toolchain for anything
more.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING

from .plugins import Capabilities
from .utils import append_query_parameter

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable
    from typing import Any

    ModuleTransformCallback = Callable[[Any], Awaitable[str]]
    JSModuleSourceStrategy = Callable[[str, ModuleTransformCallback], Awaitable[str]]

logger = logging.getLogger(__name__)
_default_logger = logger

IDENT = r"[A-Za-z_$][\w$]*"
_IDENT_RE = re.compile(rf"^{IDENT}$")
_QUOTED = r"""(?:'[^'\n]*'|"[^"\n]*")"""

# Where an import or export list ends; anything after it on the line is
# another statement.
_IMPORT_END_RE = re.compile(rf"(?:^\s*import\s*|\bfrom\s*){_QUOTED}\s*;?")
_EXPORT_LIST_END_RE = re.compile(
    rf"(?:\*(?:\s*as\s+{IDENT})?\s*from\s*{_QUOTED}|\}}(?:\s*from\s*{_QUOTED})?)\s*;?"
)
_COMMENT_RE = re.compile(r"//[^\n]*|/\*.*?\*/", re.S)

_IMPORT_START_RE = re.compile(r"^import(?=[\s{*'\"])")
_EXPORT_START_RE = re.compile(r"^export(?=[\s{*])")

_SIDE_EFFECT_IMPORT_RE = re.compile(r"""^import\s*(['"])(.*?)\1\s*;?$""", re.S)
_IMPORT_FROM_RE = re.compile(r"""^import\s+(.+?)\s*from\s*(['"])(.*?)\2\s*;?$""", re.S)

_EXPORT_ALL_RE = re.compile(rf"""^export\s*\*\s*(?:as\s+({IDENT})\s+)?from\s*(['"])(.*?)\2\s*;?$""", re.S)
_EXPORT_FROM_RE = re.compile(r"""^export\s*\{(.*?)\}\s*from\s*(['"])(.*?)\2\s*;?$""", re.S)
_EXPORT_LIST_RE = re.compile(r"^export\s*\{(.*?)\}\s*;?$", re.S)
_EXPORT_DEFAULT_NAMED_RE = re.compile(
    rf"^export\s+default\s+((?:async\s+)?function\b\s*\*?\s*({IDENT})|class\s+({IDENT}))"
)
_EXPORT_DEFAULT_RE = re.compile(r"^export\s+default\s+")
_EXPORT_FUNCTION_RE = re.compile(rf"^export\s+((?:async\s+)?function\b\s*\*?\s*({IDENT}))")
_EXPORT_CLASS_RE = re.compile(rf"^export\s+(class\s+({IDENT}))")
_EXPORT_VARIABLE_RE = re.compile(r"^export\s+((?:const|let|var)\b)")
_DECLARATOR_RE = re.compile(rf"^({IDENT})\s*(?:=|$)")
# A declaration list that ends in one of these continues on the next line.
_CONTINUATION_CHARS = ",=+-*%&|^?:<>"

_IMPORT_META_URL_RE = re.compile(r"\bimport\.meta\.url\b")
_IMPORT_META_RE = re.compile(r"\bimport\.meta\b")
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z\d+.-]*:")


class ModuleSyntaxError(ValueError):
    """The module body uses syntax the built-in parser does not understand."""

    def __init__(self, code: str, line: int | None = None, message: str | None = None) -> None:
        self.code = code
        self.line = line
        self.message = message or code
        super().__init__(str(self))

    def __str__(self) -> str:
        text = self.code if self.message == self.code else f"{self.code} - {self.message}"
        if self.line is not None:
            return f"({self.line}): {text}"
        return text


# --------------
# Statement tree
# --------------


class Statement:
    """Opaque JavaScript source line(s)."""

    __slots__ = ("line", "text")

    def __init__(self, text: str, line: int) -> None:
        self.text = text
        self.line = line


class ImportDeclaration:
    __slots__ = ("default", "line", "named", "namespace", "specifier", "text")

    def __init__(
        self,
        text: str,
        line: int,
        specifier: str,
        *,
        default: str | None = None,
        namespace: str | None = None,
        named: list[tuple[str, str]] | None = None,
    ) -> None:
        self.text = text
        self.line = line
        self.specifier = specifier
        self.default = default
        self.namespace = namespace
        # (imported name, local name)
        self.named = named or []

    @property
    def is_side_effect(self) -> bool:
        return self.default is None and self.namespace is None and not self.named


class ExportDeclaration:
    """An export statement.

    ``kind`` is one of ``declaration`` (``export const x``), ``default``,
    ``named`` (``export {a as b}``), ``from`` (``export {a} from 'm'``) and
    ``all`` (``export * from 'm'``). ``names`` holds ``(local, exported)``
    pairs; for ``from`` exports the local side names the binding in the
    source module, ``*`` meaning its namespace object.
    """

    __slots__ = ("body", "kind", "line", "names", "specifier", "text")

    def __init__(
        self,
        kind: str,
        text: str,
        line: int,
        *,
        body: str = "",
        names: list[tuple[str, str]] | None = None,
        specifier: str | None = None,
    ) -> None:
        self.kind = kind
        self.text = text
        self.line = line
        self.body = body
        self.names = names or []
        self.specifier = specifier


class Module:
    __slots__ = ("body",)

    def __init__(self, body: list[Statement | ImportDeclaration | ExportDeclaration]) -> None:
        self.body = body

    @property
    def imports(self) -> list[ImportDeclaration]:
        return [node for node in self.body if isinstance(node, ImportDeclaration)]

    @property
    def exports(self) -> list[ExportDeclaration]:
        return [node for node in self.body if isinstance(node, ExportDeclaration)]

    @property
    def specifiers(self) -> list[str]:
        seen: dict[str, None] = {}
        for node in self.body:
            specifier = getattr(node, "specifier", None)
            if specifier is not None:
                seen.setdefault(specifier, None)
        return list(seen)


# -------
# Parsing
# -------


def _string_end(text: str, start: int) -> int:
    """Offset just past the quoted string opening at ``start``."""
    quote = text[start]
    i = start + 1
    while i < len(text):
        c = text[i]
        if c == "\\":
            i += 2
        elif c in (quote, "\n"):
            return i + 1
        else:
            i += 1
    return len(text)


def _scan(text: str, context: tuple[str, ...] = ()) -> tuple[list[int], tuple[str, ...]]:
    """Find the offsets of ``text`` that belong to top-level code.

    ``context`` is the lexical state left by earlier lines: a stack of ``/*``
    (block comment), a backtick (template literal), ``${`` and ``{`` (code
    inside a template substitution). Returns the code offsets, where a
    top-level string or template counts by its closing quote only, and the
    state at the end of ``text``. Regular expression literals are not
    recognised.
    """
    stack = list(context)
    code: list[int] = []
    i, n = 0, len(text)
    while i < n:
        top = stack[-1] if stack else None
        c = text[i]
        if top == "/*":
            end = text.find("*/", i)
            if end == -1:
                break
            stack.pop()
            i = end + 2
        elif top == "`":
            if c == "\\":
                i += 2
                continue
            if c == "`":
                stack.pop()
                if not stack:
                    code.append(i)
            elif text.startswith("${", i):
                stack.append("${")
                i += 1
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end == -1 else end
        elif text.startswith("/*", i):
            stack.append("/*")
            i += 2
        elif c in "'\"":
            i = _string_end(text, i)
            if not stack:
                code.append(i - 1)
        else:
            if c == "`":
                stack.append("`")
            elif not stack:
                code.append(i)
            elif c == "{":
                stack.append("{")
            elif c == "}":
                stack.pop()
            i += 1
    return code, tuple(stack)


def _parse_name_list(text: str, line: int) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for part in _COMMENT_RE.sub("", text).replace("\n", " ").split(","):
        part = part.strip()
        if not part:
            continue
        m = re.match(rf"^({IDENT}|default)(?:\s+as\s+({IDENT}|default))?$", part)
        if not m:
            raise ModuleSyntaxError("invalid-binding-list", line, f"cannot parse {part!r}")
        pairs.append((m.group(1), m.group(2) or m.group(1)))
    return pairs


def _parse_import_clause(clause: str, text: str, line: int, specifier: str) -> ImportDeclaration:
    default = namespace = None
    named: list[tuple[str, str]] = []
    rest = _COMMENT_RE.sub("", clause).strip()

    m = re.match(rf"^({IDENT})\s*(?:,\s*|$)", rest)
    if m and not rest.startswith(("{", "*")):
        default = m.group(1)
        rest = rest[m.end() :].strip()

    if rest.startswith("*"):
        m = re.match(rf"^\*\s*as\s+({IDENT})$", rest)
        if not m:
            raise ModuleSyntaxError("invalid-import", line, text.strip())
        namespace = m.group(1)
    elif rest.startswith("{"):
        if not rest.endswith("}"):
            raise ModuleSyntaxError("invalid-import", line, text.strip())
        named = _parse_name_list(rest[1:-1], line)
    elif rest:
        raise ModuleSyntaxError("invalid-import", line, text.strip())

    return ImportDeclaration(text, line, specifier, default=default, namespace=namespace, named=named)


def _collect(lines: list[str], start: int, is_complete: Callable[[str], bool], code: str) -> tuple[str, int]:
    """Join lines from ``start`` until ``is_complete`` accepts the statement.

    Returns the joined text and the index of the last line consumed.
    """
    i = start
    text = lines[i]
    while not is_complete(text.strip()):
        i += 1
        if i >= len(lines):
            raise ModuleSyntaxError(code, start + 1, "statement is not terminated")
        text = f"{text}\n{lines[i]}"
    return text, i


def _split_at(text: str, end: re.Pattern[str]) -> tuple[str, str]:
    m = end.search(text)
    if m is None:
        return text, ""
    return text[: m.end()], text[m.end() :]


def _import_complete(stmt: str) -> bool:
    return bool(_IMPORT_END_RE.search(stmt))


def _export_list_complete(stmt: str) -> bool:
    return bool(_EXPORT_LIST_END_RE.search(stmt))


def _split_declaration(text: str) -> tuple[int, list[str]] | None:
    """Split ``export const a = 1, b = 2;`` at its top-level commas.

    Returns the offset just past the declaration and the declarator texts,
    or ``None`` while the declaration continues on a later line.
    """
    stripped = text.lstrip()
    m = _EXPORT_VARIABLE_RE.match(stripped)
    if m is None:
        return None
    start = len(text) - len(stripped) + m.end()
    code, context = _scan(text[start:])
    declarators: list[str] = []
    item = start
    depth = 0
    last = ""
    for offset in code:
        i = start + offset
        c = text[i]
        if c in "([{":
            depth += 1
        elif c in ")]}":
            depth -= 1
        elif c == "," and depth == 0:
            declarators.append(text[item:i])
            item = i + 1
        elif c == ";" and depth == 0:
            declarators.append(text[item:i])
            return i + 1, declarators
        if not c.isspace():
            last = c
    if depth > 0 or context or not last or last in _CONTINUATION_CHARS:
        return None
    declarators.append(text[item:])
    return len(text), declarators


def _declaration_complete(stmt: str) -> bool:
    return _split_declaration(stmt) is not None


def _parse_import(text: str, line: int) -> ImportDeclaration:
    stmt = text.strip()
    m = _SIDE_EFFECT_IMPORT_RE.match(stmt)
    if m:
        return ImportDeclaration(text, line, m.group(2))
    m = _IMPORT_FROM_RE.match(stmt)
    if not m:
        raise ModuleSyntaxError("invalid-import", line, stmt)
    return _parse_import_clause(m.group(1), text, line, m.group(3))


def _parse_export_list(text: str, line: int) -> ExportDeclaration:
    stmt = text.strip()
    m = _EXPORT_ALL_RE.match(stmt)
    if m:
        if m.group(1):
            return ExportDeclaration("from", text, line, names=[("*", m.group(1))], specifier=m.group(3))
        return ExportDeclaration("all", text, line, specifier=m.group(3))
    m = _EXPORT_FROM_RE.match(stmt)
    if m:
        return ExportDeclaration("from", text, line, names=_parse_name_list(m.group(1), line), specifier=m.group(3))
    m = _EXPORT_LIST_RE.match(stmt)
    if m:
        return ExportDeclaration("named", text, line, names=_parse_name_list(m.group(1), line))
    raise ModuleSyntaxError("invalid-export", line, stmt)


def _parse_variable_export(text: str, line: int, declarators: list[str]) -> ExportDeclaration:
    names: list[tuple[str, str]] = []
    for declarator in declarators:
        part = _COMMENT_RE.sub("", declarator).strip()
        if part.startswith(("{", "[")):
            raise ModuleSyntaxError("unsupported-export", line, "destructuring declarations cannot be exported")
        m = _DECLARATOR_RE.match(part)
        if not m:
            raise ModuleSyntaxError("invalid-export", line, f"cannot parse declarator {part!r}")
        names.append((m.group(1), m.group(1)))

    indent = text[: len(text) - len(text.lstrip())]
    body = indent + text.strip()[len("export") :].lstrip()
    return ExportDeclaration("declaration", text, line, body=body, names=names)


def _parse_export_line(text: str, line: int) -> ExportDeclaration:
    """Parse an export whose declaration may continue on following lines.

    Only the ``export`` keyword on this line is rewritten; the rest of the
    declaration passes through as opaque source.
    """
    indent = text[: len(text) - len(text.lstrip())]
    stmt = text.strip()

    m = _EXPORT_DEFAULT_NAMED_RE.match(stmt)
    if m:
        name = m.group(2) or m.group(3)
        body = indent + stmt[m.start(1) :]
        return ExportDeclaration("declaration", text, line, body=body, names=[(name, "default")])

    m = _EXPORT_DEFAULT_RE.match(stmt)
    if m:
        return ExportDeclaration("default", text, line, body=indent + stmt[m.end() :])

    for pattern in (_EXPORT_FUNCTION_RE, _EXPORT_CLASS_RE):
        m = pattern.match(stmt)
        if m:
            name = m.group(2)
            return ExportDeclaration("declaration", text, line, body=indent + stmt[m.start(1) :], names=[(name, name)])

    raise ModuleSyntaxError("invalid-export", line, stmt)


def parse_module(source: str) -> Module:
    """Split module source into import, export and opaque statements.

    Lines that start inside a block comment or template literal are opaque.
    An import or export list ends at its specifier (or closing brace) and a
    variable export at its first top-level semicolon; whatever follows on the
    same line is parsed as the next statement.
    """
    lines = source.split("\n")
    body: list[Statement | ImportDeclaration | ExportDeclaration] = []
    context: tuple[str, ...] = ()
    i = 0
    while i < len(lines):
        raw = lines[i]
        stripped = raw.lstrip()
        line = i + 1
        rest = ""
        node: Statement | ImportDeclaration | ExportDeclaration

        if context:
            node = Statement(raw, line)
        elif _IMPORT_START_RE.match(stripped):
            text, i = _collect(lines, i, _import_complete, "unterminated-import")
            text, rest = _split_at(text, _IMPORT_END_RE)
            node = _parse_import(text, line)
        elif re.match(r"^export\s*[{*]", stripped):
            text, i = _collect(lines, i, _export_list_complete, "unterminated-export")
            text, rest = _split_at(text, _EXPORT_LIST_END_RE)
            node = _parse_export_list(text, line)
        elif _EXPORT_VARIABLE_RE.match(stripped):
            text, i = _collect(lines, i, _declaration_complete, "unterminated-export")
            split = _split_declaration(text)
            if split is None:
                raise ModuleSyntaxError("unterminated-export", line, "statement is not terminated")
            end, declarators = split
            text, rest = text[:end], text[end:]
            node = _parse_variable_export(text, line, declarators)
        elif _EXPORT_START_RE.match(stripped):
            node = _parse_export_line(raw, line)
        else:
            node = Statement(raw, line)

        body.append(node)
        context = _scan(node.text, context)[1]
        if rest.strip():
            # Parse the remainder of the line as the next statement.
            lines[i] = rest
        else:
            i += 1
    return Module(body)


# ---------------
# Code generation
# ---------------


def is_path_specifier(specifier: str) -> bool:
    return specifier.startswith(("./", "../", "/")) or bool(_SCHEME_RE.match(specifier))


def _rewrite_specifier(specifier: str, query_param: str, log: logging.Logger) -> str:
    if not is_path_specifier(specifier):
        log.debug("Leaving bare module specifier %r unchanged", specifier)
        return specifier
    return append_query_parameter(specifier, query_param)


def _replace_specifier(text: str, old: str, new: str) -> str:
    """Swap the quoted specifier at the end of an import/export statement."""
    for quote in ("'", '"'):
        needle = f"{quote}{old}{quote}"
        idx = text.rfind(needle)
        if idx != -1:
            return f"{text[:idx]}{quote}{new}{quote}{text[idx + len(needle) :]}"
    return text


def _dependency_param(specifier: str, taken: set[str]) -> str:
    stem = specifier.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]
    stem = stem.split(".", 1)[0]
    base = "_" + (re.sub(r"[^\w$]", "_", stem) or "dep")
    name = base
    n = 1
    while name in taken:
        n += 1
        name = f"{base}{n}"
    taken.add(name)
    return name


def _property(name: str) -> str:
    if _IDENT_RE.match(name):
        return f".{name}"
    return f"[{json.dumps(name)}]"


def _binding(imported: str, local: str) -> str:
    if imported == local:
        return local
    if imported == "default":
        return f'"default": {local}'
    return f"{imported}: {local}"


def _replace_import_meta(text: str, base_url: str) -> str:
    quoted = json.dumps(base_url)
    text = _IMPORT_META_URL_RE.sub(quoted, text)
    return _IMPORT_META_RE.sub(f"({{ url: {quoted} }})", text)


def _to_esm(module: Module, query_param: str, log: logging.Logger) -> str:
    out: list[str] = []
    for node in module.body:
        specifier = getattr(node, "specifier", None)
        if specifier is None:
            out.append(node.text)
        else:
            out.append(_replace_specifier(node.text, specifier, _rewrite_specifier(specifier, query_param, log)))
    return "\n".join(out)


def _to_amd(module: Module, base_url: str, query_param: str, log: logging.Logger) -> str:
    exports = module.exports
    deps: list[str] = []
    params: list[str] = []
    side_effect_deps: list[str] = []
    taken: set[str] = set()
    param_for: dict[str, str] = {}

    if exports:
        deps.append("exports")
        params.append("_exports")
        taken.add("_exports")

    used = {
        getattr(n, "specifier", None)
        for n in module.body
        if not (isinstance(n, ImportDeclaration) and n.is_side_effect)
    }
    for specifier in module.specifiers:
        target = _rewrite_specifier(specifier, query_param, log)
        if specifier in used:
            param_for[specifier] = _dependency_param(specifier, taken)
            deps.append(target)
            params.append(param_for[specifier])
        else:
            side_effect_deps.append(target)
    deps.extend(side_effect_deps)

    prologue: list[str] = ['"use strict";']
    hoisted: list[str] = []
    body: list[str] = []
    epilogue: list[str] = []

    for imp in module.imports:
        if imp.is_side_effect:
            continue
        dep = param_for[imp.specifier]
        if imp.namespace:
            prologue.append(f"const {imp.namespace} = {dep};")
        if imp.default:
            prologue.append(f"const {imp.default} = {dep}.default;")
        if imp.named:
            bindings = ", ".join(_binding(imported, local) for imported, local in imp.named)
            prologue.append(f"const {{ {bindings} }} = {dep};")

    for node in module.body:
        if isinstance(node, Statement):
            body.append(_replace_import_meta(node.text, base_url))
        elif isinstance(node, ExportDeclaration):
            if node.kind == "default":
                body.append(_replace_import_meta(f"_exports.default = {node.body.lstrip()}", base_url))
            elif node.kind == "declaration":
                body.append(_replace_import_meta(node.body, base_url))
                target = hoisted if re.match(r"^\s*(?:async\s+)?function\b", node.body) else epilogue
                target.extend(f"_exports{_property(exported)} = {local};" for local, exported in node.names)
            elif node.kind == "named":
                epilogue.extend(f"_exports{_property(exported)} = {local};" for local, exported in node.names)
            elif node.kind == "from":
                dep = param_for[node.specifier]  # type: ignore[index]
                for local, exported in node.names:
                    value = dep if local == "*" else f"{dep}{_property(local)}"
                    prologue.append(f"_exports{_property(exported)} = {value};")
            elif node.kind == "all":
                dep = param_for[node.specifier]  # type: ignore[index]
                prologue.append(
                    f"Object.keys({dep}).forEach(function (key) {{ "
                    f'if (key !== "default" && !(key in _exports)) _exports[key] = {dep}[key]; }});'
                )

    header = f"define({json.dumps(deps)}, function ({', '.join(params)}) {{"
    return "\n".join([header, *prologue, *hoisted, *body, *epilogue, "});"])


async def transform_js_module(
    module: Module,
    base_url: str,
    plugins: Iterable[Any],
    query_param: str,
    logger: logging.Logger | None = None,
) -> str:
    """Rewrite a parsed module according to the active plugins."""
    log = logger if logger is not None else _default_logger
    capabilities = Capabilities.from_plugins(plugins)
    if capabilities.regenerator:
        log.warning("The built-in module transform does not desugar generator functions")
    if capabilities.modules_amd:
        return _to_amd(module, base_url, query_param, log)
    return _to_esm(module, query_param, log)


# ----------
# Strategies
# ----------


async def default_strategy(source: str, transform: ModuleTransformCallback) -> str:
    """Parse ``source`` with the built-in parser and run the transform on it."""
    return await transform(parse_module(source))


async def passthrough_strategy(source: str, transform: ModuleTransformCallback) -> str:
    """Leave module bodies untouched."""
    return source
