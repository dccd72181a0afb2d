"""
Error taxonomy for the conversion pipeline.

Every decode-phase and rewrite-phase error is fatal: the converter either
produces a fully converted output or none.
"""


class Mhtml2HtmlError(Exception):
    """Base error for all conversion failures."""


class ContainerError(Mhtml2HtmlError):
    """Raised when the archive is not a parseable multipart message."""


class EncodingError(Mhtml2HtmlError):
    """Raised when a base64 transfer-encoded part is invalid."""


class NoEntryDocumentError(Mhtml2HtmlError):
    """Raised when the archive holds no text/html part."""


class ParseError(Mhtml2HtmlError):
    """Raised when an HTML resource cannot be parsed."""


class SerializeError(Mhtml2HtmlError):
    """Raised when a rewritten HTML tree cannot be serialized."""


class TranscodeError(Mhtml2HtmlError):
    """Raised when a resource cannot be transcoded to UTF-8."""


class ReferenceResolutionError(Mhtml2HtmlError):
    """Raised when a location or base href is not a valid URL."""
