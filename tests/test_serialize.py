from __future__ import annotations

import unittest

from justhtml import JustHTML
from justhtml.node import ElementNode, SimpleDomNode, TextNode

from esmshim.serialize import serialize_start_tag, to_html


class TestSerialize(unittest.TestCase):
    def test_document(self) -> None:
        doc = JustHTML("<!DOCTYPE html><p>Hello</p>")
        assert to_html(doc.root) == "<!DOCTYPE html><html><head></head><body><p>Hello</p></body></html>"

    def test_text_is_escaped(self) -> None:
        doc = JustHTML("<p>a &lt; b &amp; c</p>")
        assert "<p>a &lt; b &amp; c</p>" in to_html(doc.root)

    def test_script_text_is_verbatim(self) -> None:
        doc = JustHTML("<script>if (a < b && c > d) {}</script>")
        assert "<script>if (a < b && c > d) {}</script>" in to_html(doc.root)

    def test_boolean_attribute_is_minimised(self) -> None:
        doc = JustHTML("<script nomodule></script>")
        assert "<script nomodule></script>" in to_html(doc.root)

    def test_attribute_values_are_escaped(self) -> None:
        assert serialize_start_tag("a", {"title": 'say "hi" & go'}) == '<a title="say &quot;hi&quot; &amp; go">'

    def test_void_elements_have_no_end_tag(self) -> None:
        doc = JustHTML('<base href="/x/"><br>')
        html = to_html(doc.root)
        assert '<base href="/x/">' in html
        assert "</base>" not in html
        assert "</br>" not in html

    def test_comment(self) -> None:
        assert "<!-- note -->" in to_html(JustHTML("<!-- note --><p></p>").root)

    def test_fragment_root(self) -> None:
        root = SimpleDomNode("#document-fragment")
        script = ElementNode("script", {}, "html")
        script.append_child(TextNode("define(['./x.js']);"))
        root.append_child(script)
        assert to_html(root) == "<script>define(['./x.js']);</script>"


if __name__ == "__main__":
    unittest.main()
