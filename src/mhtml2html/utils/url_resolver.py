"""
URL Resolution Utilities

This module resolves references found inside archived resources against the
location of the resource that contains them, and escapes resolved URLs so they
can be served back as a single path segment by the local gateway.

The resolver is deliberately simpler than RFC 3986 reference resolution: a
reference either carries its own scheme, is protocol-relative, is
root-relative, or is joined onto the directory of the base path.
"""

import posixpath
import re
from typing import Union
from urllib.parse import SplitResult, quote, urlsplit

from mhtml2html.core.errors import ReferenceResolutionError


SCHEME_PATTERN = re.compile(r'^[a-zA-Z]+:')

# Prefixes that are never rewritten or inlined
PASSTHROUGH_PREFIXES = ('data:', 'mailto:')

CID_PREFIX = 'cid:'


def has_scheme(ref: str) -> bool:
    """Return True if the reference starts with a scheme such as ``http:``."""
    return bool(SCHEME_PATTERN.match(ref))


def is_passthrough(ref: str) -> bool:
    """Return True for ``data:`` and ``mailto:`` references."""
    return ref.startswith(PASSTHROUGH_PREFIXES)


def parse_location(location: str) -> SplitResult:
    """
    Parse a Content-Location or base href value as a URL.

    Args:
        location: Raw header or attribute value

    Returns:
        SplitResult for the location

    Raises:
        ReferenceResolutionError: If the value is not a valid URL
    """
    try:
        parsed = urlsplit(location)
        # Accessing the port validates it
        parsed.port
    except ValueError as e:
        raise ReferenceResolutionError(f"Invalid URL {location!r}: {e}") from e
    return parsed


def host_of(base: SplitResult) -> str:
    """Return the authority of a parsed URL without any userinfo."""
    return base.netloc.rpartition('@')[2]


def join_path(*parts: str) -> str:
    """
    Join path segments and collapse ``.``, ``..`` and empty segments.

    The result is always rooted and never keeps a trailing slash, matching
    what a filesystem path joiner produces.
    """
    joined = posixpath.normpath(posixpath.join(*parts))
    # normpath keeps exactly two leading slashes on POSIX
    if joined.startswith('//'):
        joined = '/' + joined.lstrip('/')
    return joined


def resolve(base: Union[SplitResult, str], ref: str) -> str:
    """
    Resolve a reference against a base URL.

    Args:
        base: Base URL, parsed or as a string
        ref: Reference found inside an archived resource

    Returns:
        Absolute URL string
    """
    if isinstance(base, str):
        base = parse_location(base)

    if has_scheme(ref):
        return ref
    if ref.startswith('//'):
        return f"{base.scheme}:{ref}"
    if ref.startswith('/'):
        return f"{base.scheme}://{host_of(base)}{ref}"
    return f"{base.scheme}://{host_of(base)}{join_path('/', posixpath.dirname(base.path), ref)}"


def escape_path(url: str) -> str:
    """
    Percent-escape a URL so it fits in a single path segment.

    Everything outside the unreserved character set is escaped, so
    ``https://cdn.example/lib.js`` becomes ``https%3A%2F%2Fcdn.example%2Flib.js``.
    """
    return quote(url, safe='')


def local_path(base: Union[SplitResult, str], ref: str) -> str:
    """Return the root-relative gateway path for a reference that was not captured."""
    return '/' + escape_path(resolve(base, ref))
