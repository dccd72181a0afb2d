"""
mhtml2html: MHTML Web Archive Converter

Turns a captured MHTML web archive into a single self-contained HTML document
with every captured resource inlined, or serves the archived resource set from
a local address so it renders without the original network context.
"""

__version__ = "1.0"
__author__ = "mhtml2html Project"
__description__ = "MHTML Web Archive Converter"
