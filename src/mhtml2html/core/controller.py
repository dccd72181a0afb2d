"""
mhtml2html Orchestrator: runs the decode → rewrite → output pipeline.

Stages run strictly one after another because inlining and cid resolution
need the complete resource graph. Within the stylesheet and document stages
each resource is processed independently, optionally on a thread pool.
"""

from __future__ import annotations

import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import BinaryIO, Callable, Dict, List, Optional, Tuple, Union

from .charset import CharsetNormalizer
from .decoder import MHTMLDecoder
from .errors import Mhtml2HtmlError
from .logger import ErrorTracker
from .minify import Minifier
from .rewriter import CSSRewriter, HTMLRewriter
from .server import DEFAULT_HOST, ServingGateway
from .store import Resource, ResourceStore
from mhtml2html.utils.browser import open_url


Source = Union[str, Path, bytes, BinaryIO]


@dataclass
class ConvertConfig:
    browse: bool = False
    minify: bool = False
    remove_elements: List[str] = field(default_factory=list)
    remove_attributes: List[Tuple[str, str]] = field(default_factory=list)
    workers: int = 1  # 1 = serial
    output_path: Optional[str] = None  # None = stdout
    open_browser: bool = True
    host: str = DEFAULT_HOST
    port: int = 0  # 0 = OS-assigned


SETTING_TYPES = {
    'browse': bool,
    'minify': bool,
    'workers': int,
    'output_path': (str, type(None)),
    'open_browser': bool,
    'host': str,
    'port': int,
}


def _is_str_list(value, length: Optional[int] = None) -> bool:
    return (isinstance(value, list)
            and all(isinstance(item, str) for item in value)
            and (length is None or len(value) == length))


def _check_setting(name: str, value: object) -> None:
    if name == 'remove_elements':
        valid = _is_str_list(value)
    elif name == 'remove_attributes':
        valid = isinstance(value, list) and all(_is_str_list(pair, 2) for pair in value)
    else:
        expected = SETTING_TYPES[name]
        # bool is an int subclass but never a valid count or port
        valid = isinstance(value, expected) and not (expected is int and isinstance(value, bool))
    if not valid:
        raise ValueError(f"Invalid value for {name!r}: {value!r}")


def load_settings(path: Union[str, Path]) -> Dict[str, object]:
    """
    Read ConvertConfig defaults from a JSON settings file.

    Unknown keys are ignored; attribute removal pairs are given as
    two-element lists.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not a JSON object or a value has the wrong type
    """
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError("Settings file must contain a JSON object")
    known = {f.name for f in fields(ConvertConfig)}
    settings = {k: v for k, v in data.items() if k in known}
    for name, value in settings.items():
        _check_setting(name, value)
    if 'remove_attributes' in settings:
        settings['remove_attributes'] = [tuple(pair) for pair in settings['remove_attributes']]
    return settings


class Mhtml2HtmlController:
    def __init__(self, config: Optional[ConvertConfig] = None, logger: Optional[logging.Logger] = None):
        self.config = config or ConvertConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.errors = ErrorTracker(self.logger)
        self.decoder = MHTMLDecoder(minifier=Minifier() if self.config.minify else None)
        self.normalizer = CharsetNormalizer()

    def _for_each(self, resources: List[Resource], stage: str, func: Callable[[Resource], Resource]) -> None:
        def process_one(resource: Resource) -> Resource:
            try:
                return func(resource)
            except Mhtml2HtmlError as e:
                self.errors.log_error(e, context=stage, location=resource.location,
                                      additional_info={'content_type': resource.content_type,
                                                       'bytes': len(resource.data)})
                raise

        if self.config.workers > 1 and len(resources) > 1:
            with ThreadPoolExecutor(max_workers=self.config.workers) as ex:
                # list() re-raises the first failure
                list(ex.map(process_one, resources))
        else:
            for resource in resources:
                process_one(resource)

    def decode(self, source: Source) -> ResourceStore:
        try:
            if isinstance(source, bytes):
                return self.decoder.decode_bytes(source)
            if isinstance(source, (str, Path)):
                return self.decoder.decode_file(source)
            return self.decoder.decode(source)
        except Mhtml2HtmlError as e:
            self.errors.log_error(e, context='decode')
            raise

    def convert(self, source: Source) -> ResourceStore:
        """
        Decode an archive and rewrite every resource in it.

        Args:
            source: Path, raw bytes, or binary stream of the MHTML archive

        Returns:
            The rewritten ResourceStore

        Raises:
            Mhtml2HtmlError: On any decode or rewrite failure
        """
        store = self.decode(source)

        css = CSSRewriter(store)
        self._for_each(store.css_resources(), 'css', css.rewrite_resource)

        html = HTMLRewriter(store,
                            remove_elements=self.config.remove_elements,
                            remove_attributes=self.config.remove_attributes)

        def rewrite_document(resource: Resource) -> Resource:
            self.normalizer.normalize(resource)
            return html.rewrite_resource(resource)

        self._for_each(store.html_resources(), 'html', rewrite_document)
        self.logger.info(f"Converted {len(store)} resources")
        return store

    def render(self, store: ResourceStore) -> bytes:
        """Concatenate every HTML resource in store order."""
        return b''.join(r.data for r in store.html_resources())

    def write(self, store: ResourceStore) -> None:
        output = self.render(store)
        if self.config.output_path:
            with open(self.config.output_path, 'wb') as f:
                f.write(output)
            self.logger.info(f"Saved HTML to: {self.config.output_path}")
        else:
            sys.stdout.buffer.write(output)
            sys.stdout.buffer.flush()

    def serve(self, store: ResourceStore) -> ServingGateway:
        """
        Start the serving gateway and point a browser at the entry document.

        Returns:
            The running gateway; the caller decides how long to keep it up
        """
        gateway = ServingGateway(store, host=self.config.host, port=self.config.port)
        gateway.start()
        url = gateway.entry_url
        if self.config.open_browser and open_url(url):
            self.logger.info(f"Browsing: {url}")
        else:
            if self.config.open_browser:
                self.errors.log_warning("Couldn't start browser", context='serve', location=url)
            self.logger.info(f"Open the following URL manually: {url}")
        return gateway

    def report(self) -> None:
        """Log a summary of the errors and warnings recorded during the run."""
        summary = self.errors.get_error_summary()
        if not summary['total_errors'] and not summary['total_warnings']:
            return
        types = ', '.join(f"{name} x{count}" for name, count in summary['error_types'].items())
        self.logger.info(f"Finished with {summary['total_errors']} error(s) ({types or 'none'}) "
                         f"and {summary['total_warnings']} warning(s)")
        for error in summary['recent_errors']:
            self.logger.info(f"  [{error['id']}] {error['type']} during {error['context']}"
                             f"{': ' + error['location'] if error['location'] else ''}")
        for warning in summary['recent_warnings']:
            self.logger.info(f"  [{warning['id']}] {warning['message']}")

    def run(self, source: Source) -> int:
        """Run the whole pipeline; returns a process exit code."""
        try:
            store = self.convert(source)
        except Mhtml2HtmlError:
            self.report()
            return 1

        if not self.config.browse:
            self.write(store)
            return 0

        gateway = self.serve(store)
        try:
            # The listener is the only consumer of the output in this mode
            gateway.wait()
        except KeyboardInterrupt:
            self.logger.info("Stopping gateway")
        finally:
            gateway.stop()
            self.report()
        return 0
