from __future__ import annotations

import unittest

from esmshim.plugins import (
    TRANSFORM_MODULES_AMD,
    TRANSFORM_REGENERATOR,
    Capabilities,
    contains_plugin,
    plugin_name,
)
from esmshim.utils import append_query_parameter, preserve_surrounding_whitespace, resolve_url


class TestAppendQueryParameter(unittest.TestCase):
    def test_adds_query_string_when_missing(self) -> None:
        assert append_query_parameter("a.js", "v=2") == "a.js?v=2"

    def test_joins_existing_query_string(self) -> None:
        assert append_query_parameter("a.js?x=1", "v=2") == "a.js?x=1&v=2"

    def test_keeps_fragment_last(self) -> None:
        assert append_query_parameter("a.js#top", "v=2") == "a.js?v=2#top"
        assert append_query_parameter("a.js?x=1#top", "v=2") == "a.js?x=1&v=2#top"

    def test_no_double_separator(self) -> None:
        assert append_query_parameter("a.js?", "v=2") == "a.js?v=2"
        assert append_query_parameter("a.js?x=1&", "v=2") == "a.js?x=1&v=2"

    def test_empty_param_is_noop(self) -> None:
        assert append_query_parameter("a.js?x=1", "") == "a.js?x=1"

    def test_appending_same_param_twice_repeats_it(self) -> None:
        once = append_query_parameter("a.js", "v=2")
        assert append_query_parameter(once, "v=2") == "a.js?v=2&v=2"


class TestPreserveSurroundingWhitespace(unittest.TestCase):
    def test_restores_leading_and_trailing_whitespace(self) -> None:
        assert preserve_surrounding_whitespace("  const a = 1;  ", "const a=1;") == "  const a=1;  "

    def test_strips_whitespace_added_by_transform(self) -> None:
        assert preserve_surrounding_whitespace("\n  x\n", "\n\ny\n\n") == "\n  y\n"

    def test_no_surrounding_whitespace(self) -> None:
        assert preserve_surrounding_whitespace("x", " y ") == "y"

    def test_all_whitespace_original_is_not_doubled(self) -> None:
        assert preserve_surrounding_whitespace("\n  ", "") == "\n  "
        assert preserve_surrounding_whitespace("\n", "z") == "\nz"


class TestResolveUrl(unittest.TestCase):
    def test_relative_reference(self) -> None:
        assert resolve_url("http://example.com/a/b.html", "../c/") == "http://example.com/c/"

    def test_absolute_reference_replaces_base(self) -> None:
        assert resolve_url("http://example.com/a/", "https://cdn.example/x/") == "https://cdn.example/x/"

    def test_malformed_reference_returns_none(self) -> None:
        assert resolve_url("http://example.com/", "http://[::1/") is None


class TestPlugins(unittest.TestCase):
    def test_plugin_name_normalises_prefixes(self) -> None:
        assert plugin_name("@babel/plugin-transform-modules-amd") == TRANSFORM_MODULES_AMD
        assert plugin_name("babel-plugin-transform-regenerator") == TRANSFORM_REGENERATOR
        assert plugin_name(("transform-regenerator", {"async": False})) == TRANSFORM_REGENERATOR
        assert plugin_name(object()) is None
        assert plugin_name([]) is None

    def test_plugin_name_reads_name_attribute(self) -> None:
        class Plugin:
            name = "transform-modules-amd"

        assert plugin_name(Plugin()) == TRANSFORM_MODULES_AMD

    def test_contains_plugin(self) -> None:
        plugins = ["transform-arrow-functions", ["@babel/plugin-transform-modules-amd", {}]]
        assert contains_plugin(plugins, TRANSFORM_MODULES_AMD)
        assert not contains_plugin(plugins, TRANSFORM_REGENERATOR)

    def test_capabilities_from_plugins(self) -> None:
        assert Capabilities.from_plugins([]) == Capabilities()
        caps = Capabilities.from_plugins(iter([TRANSFORM_REGENERATOR, TRANSFORM_MODULES_AMD]))
        assert caps.modules_amd is True
        assert caps.regenerator is True


if __name__ == "__main__":
    unittest.main()
