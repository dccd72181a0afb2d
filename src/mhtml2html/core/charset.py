"""
Charset normalization for archived HTML documents.

Archived pages are captured in their original page encoding, while every
later processing step assumes UTF-8. Detection follows the HTML sniffing
order: byte-order mark, the declared Content-Type charset, a ``<meta>``
prescan of the document head, a UTF-8 validity check, and finally the
windows-1252 default, which is never trusted.
"""

from __future__ import annotations

import logging
from email.message import Message
from typing import Optional, Tuple

import webencodings
from bs4.dammit import EncodingDetector

from mhtml2html.core.errors import TranscodeError
from mhtml2html.core.store import Resource


PRESCAN_BYTES = 1024
UTF8 = 'utf-8'
DEFAULT_ENCODING = 'windows-1252'

META_SUBSTITUTES = {
    'utf-16be': UTF8,
    'utf-16le': UTF8,
    'x-user-defined': DEFAULT_ENCODING,
}


def _lookup(label: Optional[str]) -> Optional[webencodings.Encoding]:
    if not label:
        return None
    return webencodings.lookup(label)


def _declared_charset(content_type: str) -> Optional[str]:
    msg = Message()
    msg['Content-Type'] = content_type
    return msg.get_content_charset()


def _looks_like_utf8(sample: bytes) -> bool:
    try:
        sample.decode(UTF8)
    except UnicodeDecodeError as e:
        # A multi-byte sequence cut off by the sample boundary is still UTF-8
        return e.reason == 'unexpected end of data' and e.end == len(sample)
    return True


def determine_encoding(data: bytes, content_type: str) -> Tuple[webencodings.Encoding, bool]:
    """
    Detect the encoding of an HTML document.

    Args:
        data: Raw document bytes
        content_type: Declared Content-Type of the part

    Returns:
        Tuple of (encoding, certain). ``encoding.name`` is the WHATWG name,
        e.g. 'utf-8' or 'windows-1252'.
    """
    sample = data[:PRESCAN_BYTES]

    _, bom_encoding = EncodingDetector.strip_byte_order_mark(sample)
    encoding = _lookup(bom_encoding)
    if encoding is not None:
        return encoding, True

    encoding = _lookup(_declared_charset(content_type))
    if encoding is not None:
        return encoding, True

    if sample:
        declared = EncodingDetector.find_declared_encoding(sample, is_html=True)
        encoding = _lookup(declared)
        if encoding is not None:
            # A document that can carry an ASCII <meta> is not UTF-16
            name = META_SUBSTITUTES.get(encoding.name, encoding.name)
            return webencodings.lookup(name), False

    if _looks_like_utf8(sample):
        return webencodings.lookup(UTF8), False
    return webencodings.lookup(DEFAULT_ENCODING), False


class CharsetNormalizer:
    def __init__(self):
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def needs_conversion(name: str, certain: bool) -> bool:
        if name == UTF8:
            return False
        # The windows-1252 fallback is a guess, not a detection
        return not (name == DEFAULT_ENCODING and not certain)

    def normalize(self, resource: Resource) -> Resource:
        """
        Transcode an HTML resource to UTF-8 when its detected encoding calls for it.

        Updates ``data``, ``content_type``, ``encoding`` and ``is_converted``
        in place.

        Raises:
            TranscodeError: If the bytes are invalid in the detected encoding
        """
        encoding, certain = determine_encoding(resource.data, resource.content_type)
        self.logger.debug(f"Detected {encoding.name} (certain={certain}) for {resource.location}")
        if not self.needs_conversion(encoding.name, certain):
            resource.encoding = encoding.name
            return resource

        data, bom_encoding = EncodingDetector.strip_byte_order_mark(resource.data)
        if bom_encoding is None:
            data = resource.data
        try:
            text, _ = encoding.codec_info.decode(data, 'strict')
        except UnicodeDecodeError as e:
            raise TranscodeError(f"Cannot decode {resource.location} as {encoding.name}: {e}") from e

        resource.data = text.encode(UTF8)
        resource.content_type = resource.media_type
        resource.encoding = UTF8
        resource.is_converted = True
        self.logger.info(f"Converted {resource.location} from {encoding.name} to UTF-8")
        return resource
