#!/usr/bin/env python3
"""
Tests for best-effort minification of archived parts.
"""

import json
import sys
from pathlib import Path

import pytest

# Add the src directory to the path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from mhtml2html.core.minify import Minifier


@pytest.fixture
def minifier():
    return Minifier()


def test_css(minifier):
    src = b"a {\n  color : red ;\n}\n/* note */\n"
    out = minifier.minify("text/css", src)
    assert out.startswith(b"a{color:red")
    assert b"note" not in out


@pytest.mark.parametrize("media_type", [
    "application/javascript",
    "text/javascript",
    "application/x-javascript",
    "text/ecmascript",
    "TEXT/JavaScript",
])
def test_javascript_types(minifier, media_type):
    src = b"function add(a, b) {\n    // sum\n    return a + b;\n}\n"
    out = minifier.minify(media_type, src)
    assert len(out) < len(src)
    assert b"return a+b" in out


def test_json(minifier):
    src = b'{\n  "name": "caf\xc3\xa9",\n  "items": [1, 2]\n}'
    out = minifier.minify("application/ld+json", src)
    assert out == '{"name":"café","items":[1,2]}'.encode("utf-8")
    assert json.loads(out) == json.loads(src)


def test_svg_and_xml(minifier):
    src = b'<svg>\n  <!-- icon -->\n  <rect width="1"/>\n</svg>\n'
    assert minifier.minify("image/svg+xml", src) == b'<svg><rect width="1"/></svg>'
    assert minifier.minify("application/xml", b"<a>\n <b/>\n</a>") == b"<a><b/></a>"


def test_html(minifier):
    src = b"<html>\n  <body>\n    <p>Hello   world</p>\n  </body>\n</html>\n"
    out = minifier.minify("text/html", src)
    assert len(out) < len(src)
    assert b"Hello" in out


def test_unknown_types_are_untouched(minifier):
    data = b"\x89PNG  \n\n  data"
    assert minifier.minify("image/png", data) is data


def test_failures_keep_original_bytes(minifier):
    broken_json = b'{"unterminated": '
    assert minifier.minify("application/json", broken_json) == broken_json

    not_utf8 = b"a { content: '\xff' }"
    assert minifier.minify("text/css", not_utf8) == not_utf8
