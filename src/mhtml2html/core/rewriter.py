"""
Reference rewriting for archived stylesheets and HTML documents.

Every reference found in an HTML attribute or a CSS ``url()`` token is either
inlined as a ``data:`` URI, when the referenced resource was captured in the
archive, or rewritten to a root-relative path under which the serving gateway
looks it up. Hyperlinks (``<a href>``) are navigational and left untouched.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence, Tuple, Union
from urllib.parse import SplitResult

from bs4 import BeautifulSoup, NavigableString
from bs4.builder import ParserRejectedMarkup

from mhtml2html.core.errors import ParseError, SerializeError
from mhtml2html.core.store import Resource, ResourceStore
from mhtml2html.utils.url_resolver import is_passthrough, local_path, parse_location, resolve


CSS_URL_PATTERN = re.compile(r'\burl\(([^()]+)\)')
CSS_URL_MARKER = 'url('

URL_ATTRIBUTES = ('src', 'href', 'background')

UTF8 = 'utf-8'


def _lookup(store: ResourceStore, base: SplitResult, value: str) -> Optional[Resource]:
    """Find the captured resource a (cid-resolved) reference points at, if any."""
    resource = store.get(value)
    if resource is None and value:
        resource = store.get(resolve(base, value))
    return resource


class CSSRewriter:
    def __init__(self, store: ResourceStore):
        self.store = store
        self.logger = logging.getLogger(__name__)

    def rewrite(self, base: SplitResult, css: bytes) -> bytes:
        """
        Rewrite the ``url()`` occurrences of a stylesheet.

        Bytes that are not valid UTF-8 pass through unchanged.
        """
        text = css.decode(UTF8, 'surrogateescape')
        return self.rewrite_text(base, text).encode(UTF8, 'surrogateescape')

    def rewrite_text(self, base: SplitResult, css_text: str) -> str:
        def repl(m):
            value = m.group(1).strip('"\'')
            if is_passthrough(value):
                return m.group(0)
            value = self.store.resolve_reference(value)
            resource = _lookup(self.store, base, value)
            if resource is not None:
                return f"url({resource.data_uri()})"
            return f"url({local_path(base, value)})"

        return CSS_URL_PATTERN.sub(repl, css_text)

    def rewrite_resource(self, resource: Resource) -> Resource:
        resource.data = self.rewrite(resource.base_url, resource.data)
        self.logger.debug(f"Rewrote stylesheet: {resource.location}")
        return resource


class HTMLRewriter:
    def __init__(self,
                 store: ResourceStore,
                 remove_elements: Sequence[str] = (),
                 remove_attributes: Sequence[Tuple[str, str]] = ()):
        """
        Args:
            store: Decoded resource graph used for inlining
            remove_elements: CSS selectors of elements to delete
            remove_attributes: (selector, attribute) pairs whose values are cleared
        """
        self.store = store
        self.remove_elements = list(remove_elements)
        self.remove_attributes = list(remove_attributes)
        self.css = CSSRewriter(store)
        self.logger = logging.getLogger(__name__)

    def rewrite_resource(self, resource: Resource) -> Resource:
        resource.data = self.rewrite(resource.base_url, resource.data, resource.is_converted, resource.encoding)
        self.logger.debug(f"Rewrote document: {resource.location}")
        return resource

    def rewrite(self,
                base: SplitResult,
                html: bytes,
                converted: bool = False,
                encoding: Optional[str] = None) -> bytes:
        """
        Rewrite every reference of an HTML document.

        Args:
            base: URL the document was captured from
            html: Document bytes
            converted: True if the bytes were transcoded to UTF-8, in which
                case charset declarations are updated to match
            encoding: Encoding detected for the bytes; when None the parser
                sniffs it

        Returns:
            Serialized document bytes

        Raises:
            ParseError: If the document cannot be parsed
            SerializeError: If the rewritten tree cannot be serialized
            ReferenceResolutionError: If a <base href> is not a valid URL
        """
        soup = self._parse(html, UTF8 if converted else encoding)

        self._remove_elements(soup)
        self._clear_attributes(soup)
        if converted:
            self._update_charset_declarations(soup)
        base = self._apply_base(soup, base)
        self._rewrite_attributes(soup, base)
        self._rewrite_style_elements(soup, base)
        self._rewrite_style_attributes(soup, base)

        return self._serialize(soup, UTF8 if converted else soup.original_encoding)

    def _parse(self, html: bytes, encoding: Optional[str]) -> BeautifulSoup:
        try:
            return BeautifulSoup(html, 'lxml', from_encoding=encoding)
        except ParserRejectedMarkup as e:
            raise ParseError(f"Failed to parse HTML: {e}") from e

    def _serialize(self, soup: BeautifulSoup, encoding: Optional[str]) -> bytes:
        try:
            # eventual_encoding=None keeps declared charsets as they are in the tree
            markup = soup.decode(eventual_encoding=None)
            return markup.encode(encoding or UTF8, 'xmlcharrefreplace')
        except (LookupError, UnicodeError, RecursionError) as e:
            raise SerializeError(f"Failed to serialize HTML: {e}") from e

    def _remove_elements(self, soup: BeautifulSoup) -> None:
        removed_count = 0
        for selector in self.remove_elements:
            for element in soup.select(selector):
                element.decompose()
                removed_count += 1
        if removed_count > 0:
            self.logger.debug(f"Removed {removed_count} elements")

    def _clear_attributes(self, soup: BeautifulSoup) -> None:
        for selector, attr in self.remove_attributes:
            for element in soup.select(selector):
                if element.has_attr(attr):
                    element[attr] = ''

    def _update_charset_declarations(self, soup: BeautifulSoup) -> None:
        for meta in soup.select('meta[http-equiv], meta[charset]'):
            http_equiv = meta.get('http-equiv')
            if http_equiv is not None and http_equiv.lower() == 'content-type':
                meta['content'] = 'text/html; charset=utf-8'
            elif http_equiv is None:
                meta['charset'] = UTF8

    def _apply_base(self, soup: BeautifulSoup, base: SplitResult) -> SplitResult:
        """Adopt an explicit <base href> as resolution base and drop it from the tree."""
        redefined = soup.select('head > base[href]')
        if not redefined:
            return base
        base = parse_location(redefined[0]['href'])
        for element in redefined:
            element.decompose()
        return base

    def _rewrite_attributes(self, soup: BeautifulSoup, base: SplitResult) -> None:
        inlined = rewritten = 0
        for attr in URL_ATTRIBUTES:
            for element in soup.select(f'[{attr}]'):
                if element.name == 'a' and element.has_attr('href'):
                    continue
                value = element[attr]
                if is_passthrough(value):
                    continue
                value = self.store.resolve_reference(value)

                resource = _lookup(self.store, base, value)
                if resource is not None:
                    element[attr] = resource.data_uri()
                    inlined += 1
                else:
                    element[attr] = local_path(base, value)
                    rewritten += 1

                if element.has_attr('integrity'):
                    del element['integrity']
        self.logger.debug(f"Inlined {inlined} and rewrote {rewritten} attribute references")

    def _rewrite_style_elements(self, soup: BeautifulSoup, base: SplitResult) -> None:
        for style in soup.find_all('style'):
            css_text = _text_of(style)
            if CSS_URL_MARKER not in css_text:
                continue
            style.string = self.css.rewrite_text(base, css_text)

    def _rewrite_style_attributes(self, soup: BeautifulSoup, base: SplitResult) -> None:
        for element in soup.select('[style]'):
            style = element['style']
            if CSS_URL_MARKER not in style:
                continue
            element['style'] = self.css.rewrite_text(base, style)


def _text_of(tag) -> str:
    return ''.join(str(child) for child in tag.contents if isinstance(child, NavigableString))
