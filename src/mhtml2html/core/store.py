"""
Resource graph decoded from an MHTML archive.

The store is filled once by the decoder and then handed by reference to the
rewrite passes and the serving gateway. Rewrite passes only ever replace the
``data``, ``content_type`` and ``is_converted`` fields of the resource they are
processing.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional
from urllib.parse import SplitResult

from mhtml2html.utils.url_resolver import CID_PREFIX


HTML_TYPE = 'text/html'
CSS_TYPE = 'text/css'


@dataclass
class Resource:
    location: str           # Original Content-Location, unique key
    content_type: str       # Normalized, safe to embed in a data: URI
    base_url: SplitResult   # Location parsed as a URL
    data: bytes
    is_initial: bool = False
    is_converted: bool = False
    encoding: Optional[str] = None  # Detected by the charset normalizer

    @property
    def media_type(self) -> str:
        return self.content_type.split(';', 1)[0]

    @property
    def is_html(self) -> bool:
        return self.content_type == HTML_TYPE or self.content_type.startswith(HTML_TYPE + ';')

    @property
    def is_css(self) -> bool:
        return self.media_type == CSS_TYPE

    def data_uri(self) -> str:
        payload = base64.b64encode(self.data).decode('ascii')
        return f"data:{self.content_type};base64,{payload}"


@dataclass
class ResourceStore:
    resources: Dict[str, Resource] = field(default_factory=dict)
    cid_locations: Dict[str, str] = field(default_factory=dict)
    entry_location: Optional[str] = None

    def __post_init__(self):
        self.logger = logging.getLogger(__name__)

    def __len__(self) -> int:
        return len(self.resources)

    def __iter__(self) -> Iterator[Resource]:
        return iter(list(self.resources.values()))

    def __contains__(self, location: str) -> bool:
        return location in self.resources

    def add(self, resource: Resource) -> None:
        if resource.location in self.resources:
            self.logger.warning(f"Duplicate Content-Location, keeping the later part: {resource.location}")
        self.resources[resource.location] = resource

    def register_cid(self, cid: str, location: str) -> None:
        self.cid_locations[cid] = location

    def get(self, location: str) -> Optional[Resource]:
        return self.resources.get(location)

    def resolve_reference(self, value: str) -> str:
        """Replace a ``cid:`` reference by its registered location ("" when unknown)."""
        if value.startswith(CID_PREFIX):
            return self.cid_locations.get(value[len(CID_PREFIX):], '')
        return value

    def find(self, location: str) -> Optional[Resource]:
        """
        Look up a location exactly, falling back to a case-insensitive scan.

        Archived pages are not always consistent about the casing of the
        references they use, so the gateway tolerates case differences.
        """
        resource = self.resources.get(location)
        if resource is not None:
            return resource
        lowered = location.lower()
        for key, candidate in self.resources.items():
            if key.lower() == lowered:
                return candidate
        return None

    def reset_entry(self) -> Optional[Resource]:
        """
        Mark the first HTML resource in store order as the entry document.

        Used when the entry document was replaced by a later part carrying
        the same Content-Location.
        """
        self.entry_location = None
        for resource in self.resources.values():
            resource.is_initial = False
        for resource in self.resources.values():
            if resource.is_html:
                resource.is_initial = True
                self.entry_location = resource.location
                return resource
        return None

    @property
    def entry(self) -> Optional[Resource]:
        if self.entry_location is None:
            return None
        return self.resources.get(self.entry_location)

    def html_resources(self) -> List[Resource]:
        return [r for r in self.resources.values() if r.is_html]

    def css_resources(self) -> List[Resource]:
        return [r for r in self.resources.values() if r.is_css]
