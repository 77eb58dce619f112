from __future__ import annotations

import io
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest import mock

from esmshim.cli import build_parser, main
from esmshim.config import QUERY_PARAM_ENV, get_settings

PAGE = (
    "<!DOCTYPE html><html><head><title>t</title></head><body>"
    '<script type="module" src="./app.js"></script>'
    "<script nomodule src=\"./legacy.js\"></script>"
    "</body></html>"
)


class TestCLI(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.page = self.tmp / "index.html"
        self.page.write_text(PAGE, encoding="utf-8")
        get_settings.cache_clear()

    def tearDown(self) -> None:
        self._tmp.cleanup()
        get_settings.cache_clear()

    def test_parser_defaults(self) -> None:
        args = build_parser().parse_args(["in.html"])
        assert args.amd is False
        assert args.regenerator is False
        assert args.query_param is None
        assert args.output is None

    def test_amd_to_output_file(self) -> None:
        out = self.tmp / "out.html"
        assert main([str(self.page), "--amd", "--query-param", "v=1", "-o", str(out)]) == 0
        html = out.read_text(encoding="utf-8")
        assert "esmAmdLoader" in html
        assert "<script>define(['./app.js?v=1']);</script>" in html
        assert "legacy.js" not in html

    def test_stdout_without_amd(self) -> None:
        stdout = io.StringIO()
        with redirect_stdout(stdout):
            assert main([str(self.page), "--query-param", "v=2"]) == 0
        html = stdout.getvalue()
        assert '<script type="module" src="./app.js?v=2"></script>' in html
        assert "legacy.js" in html
        assert "esmAmdLoader" not in html

    def test_query_param_from_environment(self) -> None:
        stdout = io.StringIO()
        with mock.patch.dict(os.environ, {QUERY_PARAM_ENV: "build=42"}), redirect_stdout(stdout):
            get_settings.cache_clear()
            assert main([str(self.page)]) == 0
        assert "./app.js?build=42" in stdout.getvalue()

    def test_module_syntax_error_exits_nonzero(self) -> None:
        self.page.write_text('<script type="module">export = 1;</script>', encoding="utf-8")
        stderr = io.StringIO()
        with redirect_stderr(stderr):
            assert main([str(self.page), "--amd"]) == 1
        assert "error: (1): invalid-export" in stderr.getvalue()

    def test_passthrough_leaves_inline_body(self) -> None:
        self.page.write_text('<script type="module">export = 1;</script>', encoding="utf-8")
        stdout = io.StringIO()
        with redirect_stdout(stdout):
            assert main([str(self.page), "--passthrough"]) == 0
        assert "<script>export = 1;</script>" in stdout.getvalue()

    def test_missing_input_file(self) -> None:
        stderr = io.StringIO()
        with redirect_stderr(stderr):
            assert main([str(self.tmp / "missing.html")]) == 1
        assert stderr.getvalue().startswith("error:")


if __name__ == "__main__":
    unittest.main()
