#!/usr/bin/env python3
"""
Tests for the local serving gateway.
"""

import sys
from pathlib import Path
from urllib.parse import urlsplit

import pytest
import requests

# Add the src directory to the path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from mhtml2html.core.server import ServingGateway
from mhtml2html.core.store import Resource, ResourceStore
from mhtml2html.utils.url_resolver import escape_path


ENTRY = "https://example.com/index.html"
IMAGE = "https://example.com/Images/Logo.PNG"


@pytest.fixture
def gateway():
    store = ResourceStore()
    for location, content_type, data in [
        (ENTRY, "text/html;charset=utf-8", b"<html><body>entry</body></html>"),
        (IMAGE, "image/png", b"\x89PNG bytes"),
    ]:
        store.add(Resource(location=location, content_type=content_type,
                           base_url=urlsplit(location), data=data))
    store.entry_location = ENTRY

    with ServingGateway(store) as running:
        yield running


def test_serves_entry_document(gateway):
    assert gateway.url.startswith("http://127.0.0.1:")

    response = requests.get(gateway.entry_url, timeout=5)

    assert response.status_code == 200
    assert response.headers["Content-Type"] == "text/html;charset=utf-8"
    assert response.headers["Content-Length"] == str(len(response.content))
    assert response.content == b"<html><body>entry</body></html>"


def test_lookup_falls_back_to_case_insensitive_match(gateway):
    response = requests.get(f"{gateway.url}/{escape_path(IMAGE.lower())}", timeout=5)

    assert response.status_code == 200
    assert response.headers["Content-Type"] == "image/png"
    assert response.content == b"\x89PNG bytes"


def test_query_string_is_ignored(gateway):
    response = requests.get(f"{gateway.url}/{escape_path(IMAGE)}?cache=1", timeout=5)
    assert response.status_code == 200


def test_missing_resource_is_404(gateway):
    response = requests.get(f"{gateway.url}/https%3A%2F%2Fcdn.example%2Flib.js", timeout=5)
    assert response.status_code == 404


def test_head_request(gateway):
    response = requests.head(gateway.entry_url, timeout=5)

    assert response.status_code == 200
    assert response.headers["Content-Length"] == "31"
    assert response.content == b""


def test_stop_releases_the_listener():
    store = ResourceStore()
    gateway = ServingGateway(store)
    gateway.start()
    url = gateway.url
    gateway.stop()

    with pytest.raises(requests.ConnectionError):
        requests.get(f"{url}/anything", timeout=2)
