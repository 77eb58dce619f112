"""Command-line entry point: transform one HTML file."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from justhtml import JustHTML

from .config import get_settings
from .jsmodule import ModuleSyntaxError, default_strategy, passthrough_strategy
from .plugins import TRANSFORM_MODULES_AMD, TRANSFORM_REGENERATOR
from .polyfills import PolyfillError
from .serialize import to_html
from .transform import transform_html

logger = logging.getLogger("esmshim")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="esmshim",
        description="Rewrite <script type=module> tags for AMD loaders and legacy browsers.",
    )
    parser.add_argument("input", help="HTML file to transform ('-' reads stdin)")
    parser.add_argument("-o", "--output", help="Write the result here instead of stdout")
    parser.add_argument("--url", help="Document URL used to resolve relative specifiers (default: the input path)")
    parser.add_argument("--amd", action="store_true", help="Convert modules to AMD and inject the loader")
    parser.add_argument("--regenerator", action="store_true", help="Inject the generator-function runtime")
    parser.add_argument(
        "--query-param",
        default=None,
        help="Query parameter appended to module URLs (default: $ESMSHIM_QUERY_PARAM)",
    )
    parser.add_argument("--passthrough", action="store_true", help="Leave inline module bodies untouched")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _document_url(args: argparse.Namespace) -> str:
    if args.url:
        return args.url
    if args.input == "-":
        return "about:blank"
    return Path(args.input).resolve().as_uri()


def run(args: argparse.Namespace) -> str:
    source = sys.stdin.read() if args.input == "-" else Path(args.input).read_text(encoding="utf-8")
    plugins = []
    if args.amd:
        plugins.append(TRANSFORM_MODULES_AMD)
    if args.regenerator:
        plugins.append(TRANSFORM_REGENERATOR)
    query_param = args.query_param if args.query_param is not None else get_settings().query_param
    strategy = passthrough_strategy if args.passthrough else default_strategy

    doc = JustHTML(source)
    root = asyncio.run(transform_html(doc.root, _document_url(args), strategy, plugins, query_param, logger))
    return to_html(root)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        html = run(args)
    except (ModuleSyntaxError, PolyfillError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if args.output:
        Path(args.output).write_text(html, encoding="utf-8")
    else:
        sys.stdout.write(html)
        sys.stdout.write("\n")
    return 0
