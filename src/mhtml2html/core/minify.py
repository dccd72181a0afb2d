"""
Minification of archived parts.

Minifying is best effort: whenever a part cannot be decoded or the minifier
rejects it, the original bytes are kept.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Callable, List, Optional, Tuple

import csscompressor
import minify_html
import rjsmin


SCRIPT_TYPE_PATTERN = re.compile(r'^(application|text)/(x-)?(java|ecma)script$')
JSON_TYPE_PATTERN = re.compile(r'[/+]json$')
XML_TYPE_PATTERN = re.compile(r'[/+]xml$')


def _minify_html(text: str) -> str:
    return minify_html.minify(text, minify_js=False, minify_css=False)


def _minify_css(text: str) -> str:
    return csscompressor.compress(text)


def _minify_js(text: str) -> str:
    return rjsmin.jsmin(text)


def _minify_json(text: str) -> str:
    return json.dumps(json.loads(text), ensure_ascii=False, separators=(',', ':'))


def _minify_xml(text: str) -> str:
    # Delete comments
    text = re.sub(r'<!--.*?-->', '', text, flags=re.S)
    # Delete whitespace between tags
    text = re.sub(r'>\s+<', '><', text)
    return text.strip()


class Minifier:
    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._exact = {
            'text/html': _minify_html,
            'text/css': _minify_css,
            'image/svg+xml': _minify_xml,
        }
        self._patterns: List[Tuple[re.Pattern, Callable[[str], str]]] = [
            (SCRIPT_TYPE_PATTERN, _minify_js),
            (JSON_TYPE_PATTERN, _minify_json),
            (XML_TYPE_PATTERN, _minify_xml),
        ]

    def _minifier_for(self, media_type: str) -> Optional[Callable[[str], str]]:
        if media_type in self._exact:
            return self._exact[media_type]
        for pattern, func in self._patterns:
            if pattern.search(media_type):
                return func
        return None

    def minify(self, media_type: str, data: bytes) -> bytes:
        """
        Minify a part's bytes according to its MIME type.

        Args:
            media_type: Primary MIME token, e.g. 'text/css'
            data: Raw part bytes

        Returns:
            Minified bytes, or the original bytes if minification is not
            possible for this part
        """
        func = self._minifier_for(media_type.lower())
        if func is None:
            return data
        try:
            minified = func(data.decode('utf-8')).encode('utf-8')
        except Exception as e:
            self.logger.debug(f"Failed to minify {media_type} part: {e}")
            return data
        self.logger.debug(f"Minified {media_type} part: {len(data)} -> {len(minified)} bytes")
        return minified
