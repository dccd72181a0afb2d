"""
Local serving gateway for decoded archives.

Serves every captured resource under ``/<percent-escaped location>``, which is
exactly the path the rewriters emit for references they could not inline. The
store is fully built before the gateway starts and is never mutated while it
runs, so requests are handled concurrently without locking.
"""

from __future__ import annotations

import logging
import threading
from functools import partial
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional
from urllib.parse import unquote

from mhtml2html.core.store import Resource, ResourceStore
from mhtml2html.utils.url_resolver import escape_path


DEFAULT_HOST = '127.0.0.1'


class ArchiveRequestHandler(BaseHTTPRequestHandler):
    def __init__(self, *args, store: ResourceStore, **kwargs):
        self.store = store
        self.logger = logging.getLogger(__name__)
        super().__init__(*args, **kwargs)

    def _requested_location(self) -> str:
        # The query string of a request is never part of a stored location
        location = unquote(self.path.split('?', 1)[0])
        return location[1:] if location.startswith('/') else location

    def _send_resource(self, resource: Optional[Resource], include_body: bool) -> None:
        if resource is None:
            self.send_error(404, "Not Found")
            return
        self.send_response(200)
        self.send_header('Content-Type', resource.content_type)
        self.send_header('Content-Length', str(len(resource.data)))
        self.end_headers()
        if include_body:
            self.wfile.write(resource.data)

    def do_GET(self) -> None:  # noqa: N802
        location = self._requested_location()
        resource = self.store.find(location)
        if resource is None:
            self.logger.debug(f"Not found: {location}")
        self._send_resource(resource, include_body=True)

    def do_HEAD(self) -> None:  # noqa: N802
        self._send_resource(self.store.find(self._requested_location()), include_body=False)

    def log_message(self, format: str, *args) -> None:
        self.logger.debug(f"{self.address_string()} - {format % args}")


class ServingGateway:
    """
    HTTP listener exposing a ResourceStore on an OS-assigned local port.
    """

    def __init__(self, store: ResourceStore, host: str = DEFAULT_HOST, port: int = 0):
        """
        Bind the listener.

        Args:
            store: Fully decoded and rewritten resource store
            host: Interface to bind
            port: Port to bind, 0 lets the OS choose
        """
        self.store = store
        self.logger = logging.getLogger(__name__)
        handler_cls = partial(ArchiveRequestHandler, store=store)
        self.httpd = ThreadingHTTPServer((host, port), handler_cls)
        self.httpd.daemon_threads = True
        self._thread: Optional[threading.Thread] = None

    @property
    def url(self) -> str:
        host, port = self.httpd.server_address[:2]
        return f"http://{host}:{port}"

    @property
    def entry_url(self) -> str:
        return f"{self.url}/{escape_path(self.store.entry_location or '')}"

    def start(self) -> None:
        """Serve in a background thread."""
        self._thread = threading.Thread(target=self.httpd.serve_forever, name='mhtml2html-gateway', daemon=True)
        self._thread.start()
        self.logger.debug(f"Gateway listening on {self.url}")

    def wait(self, poll_interval: float = 0.5) -> None:
        """Block until the gateway stops; KeyboardInterrupt propagates to the caller."""
        while self._thread is not None and self._thread.is_alive():
            self._thread.join(poll_interval)

    def stop(self) -> None:
        if self._thread is not None:
            self.httpd.shutdown()
            self._thread.join()
            self._thread = None
        self.httpd.server_close()

    def __enter__(self) -> ServingGateway:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
