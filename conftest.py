"""
Shared fixtures: in-memory MHTML archives.
"""

import base64
import logging
from typing import Dict, List, Optional

import pytest


BOUNDARY = "----MultipartBoundary--TestBoundary0123456789----"


def mhtml_part(location: str,
               content_type: str,
               body: bytes,
               encoding: Optional[str] = "base64",
               cid: Optional[str] = None) -> Dict[str, object]:
    return {
        'location': location,
        'content_type': content_type,
        'body': body,
        'encoding': encoding,
        'cid': cid,
    }


def build_mhtml(parts: List[Dict[str, object]], boundary: str = BOUNDARY) -> bytes:
    """Assemble an MHTML archive the way browsers save one."""
    lines = [
        b"From: <Saved by Blink>",
        b"Snapshot-Content-Location: https://example.com/index.html",
        b"Subject: Test page",
        b"MIME-Version: 1.0",
        f'Content-Type: multipart/related; type="text/html"; boundary="{boundary}"'.encode('ascii'),
        b"",
        b"",
    ]
    for part in parts:
        lines.append(f"--{boundary}".encode('ascii'))
        lines.append(f"Content-Type: {part['content_type']}".encode('ascii'))
        if part['cid']:
            lines.append(f"Content-ID: <{part['cid']}>".encode('ascii'))
        if part['encoding']:
            lines.append(f"Content-Transfer-Encoding: {part['encoding']}".encode('ascii'))
        lines.append(f"Content-Location: {part['location']}".encode('ascii'))
        lines.append(b"")
        body = part['body']
        if part['encoding'] == 'base64':
            body = base64.encodebytes(body).rstrip(b"\n").replace(b"\n", b"\r\n")
        lines.append(body)
    lines.append(f"--{boundary}--".encode('ascii'))
    lines.append(b"")
    return b"\r\n".join(lines)


@pytest.fixture
def make_mhtml():
    return build_mhtml


@pytest.fixture
def part():
    return mhtml_part


@pytest.fixture(autouse=True)
def reset_app_logger():
    yield
    logger = logging.getLogger("mhtml2html")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
