"""
MHTML Decoding Module

This module parses an MHTML archive (a multipart/related mail message) into a
ResourceStore. Each MIME part becomes one Resource keyed by its
Content-Location; Content-IDs are registered so ``cid:`` references can be
resolved later.

Only base64 and identity transfer encodings are decoded. Parts using any
other transfer encoding (quoted-printable included) are stored undecoded.
"""

from __future__ import annotations

import base64
import binascii
import logging
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from pathlib import Path
from typing import BinaryIO, Optional, Union

from mhtml2html.core.errors import ContainerError, EncodingError, NoEntryDocumentError
from mhtml2html.core.minify import Minifier
from mhtml2html.core.store import Resource, ResourceStore
from mhtml2html.utils.url_resolver import parse_location


# Characters that may not appear in the MIME type of a data: URI
CONTENT_TYPE_STRIP = ('"', "'", ' ')


def normalize_content_type(content_type: str) -> str:
    """Remove quotes, apostrophes and spaces from a Content-Type value."""
    for char in CONTENT_TYPE_STRIP:
        content_type = content_type.replace(char, '')
    return content_type


def decode_base64(body: bytes) -> bytes:
    """
    Strictly decode a base64 body, ignoring line breaks.

    Raises:
        EncodingError: If the body contains characters outside the base64
            alphabet or has invalid padding
    """
    try:
        return base64.b64decode(b''.join(body.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise EncodingError(f"Invalid base64 data: {e}") from e


class MHTMLDecoder:
    """
    Decodes MHTML archives into a ResourceStore.

    The archive is decoded in a single pass. Any failure is fatal and no
    partially populated store is returned.
    """

    def __init__(self, minifier: Optional[Minifier] = None):
        """
        Initialize the decoder.

        Args:
            minifier: Optional minifier applied to every part's decoded bytes
        """
        self.minifier = minifier
        self.logger = logging.getLogger(__name__)

    def decode_file(self, path: Union[str, Path]) -> ResourceStore:
        with open(path, 'rb') as f:
            return self.decode(f)

    def decode_bytes(self, data: bytes) -> ResourceStore:
        return self._decode_message(self._parse_bytes(data))

    def decode(self, stream: BinaryIO) -> ResourceStore:
        """
        Decode an MHTML archive from a binary stream.

        Args:
            stream: Binary file-like object positioned at the message start

        Returns:
            Fully populated ResourceStore

        Raises:
            ContainerError: If the message or its boundary cannot be parsed
            EncodingError: If a base64 part is invalid
            ReferenceResolutionError: If a Content-Location is not a valid URL
            NoEntryDocumentError: If the archive has no text/html part
        """
        return self.decode_bytes(stream.read())

    def _parse_bytes(self, data: bytes) -> EmailMessage:
        try:
            msg = BytesParser(policy=policy.default).parsebytes(data)
        except Exception as e:
            raise ContainerError(f"Failed to parse message headers: {e}") from e

        if msg.get('Content-Type') is None:
            raise ContainerError("Message has no Content-Type header")
        if msg.get_content_maintype() != 'multipart':
            raise ContainerError(f"Unparseable or non-multipart Content-Type: {msg.get('Content-Type')}")
        if not msg.get_boundary():
            raise ContainerError("Content-Type declares no boundary parameter")
        if not msg.is_multipart():
            raise ContainerError(f"Boundary {msg.get_boundary()!r} not found in message body")
        return msg

    def _read_body(self, part: EmailMessage, transfer_encoding: str) -> bytes:
        payload = part.get_payload(decode=False)
        if isinstance(payload, list):
            # Nested multipart parts are kept as their serialized form
            return part.as_bytes()
        body = payload.encode('ascii', 'surrogateescape')
        if transfer_encoding.lower() == 'base64':
            return decode_base64(body)
        return body

    def _decode_message(self, msg: EmailMessage) -> ResourceStore:
        store = ResourceStore()

        for index, part in enumerate(msg.iter_parts()):
            location = str(part.get('Content-Location', '')).strip()
            transfer_encoding = str(part.get('Content-Transfer-Encoding', '')).strip()
            content_id = part.get('Content-ID')

            base_url = parse_location(location)
            data = self._read_body(part, transfer_encoding)

            if content_id:
                store.register_cid(str(content_id).strip().strip('<>'), location)

            content_type = normalize_content_type(str(part.get('Content-Type', '')))
            resource = Resource(location=location, content_type=content_type, base_url=base_url, data=data)

            if store.entry_location is None and resource.is_html:
                resource.is_initial = True
                store.entry_location = location

            if self.minifier is not None:
                resource.data = self.minifier.minify(resource.media_type, resource.data)

            replaces_entry = location == store.entry_location and not resource.is_initial
            store.add(resource)
            if replaces_entry:
                entry = store.reset_entry()
                self.logger.warning(f"Entry document replaced by a later part, entry is now: "
                                    f"{entry.location if entry else '<none>'}")
            self.logger.debug(f"Part {index}: {location or '<no location>'} ({content_type}, {len(resource.data)} bytes)")

        if store.entry_location is None:
            raise NoEntryDocumentError("No HTML pages to display")

        self.logger.info(f"Decoded {len(store)} resources, entry document: {store.entry_location}")
        return store
