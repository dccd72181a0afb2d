"""
Command-line interface for mhtml2html.

Converts an MHTML archive to a single self-contained HTML document written to
stdout (or --output), or serves the archive locally and opens a browser (-b).
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from mhtml2html import __version__
from mhtml2html.core.controller import ConvertConfig, Mhtml2HtmlController, load_settings
from mhtml2html.core.logger import initialize_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='mhtml2html',
        description="Convert an MHTML web archive into self-contained HTML, or browse it locally.",
    )
    parser.add_argument('mhtml', help="Input .mhtml/.mht file ('-' reads stdin)")
    parser.add_argument('-b', '--browse', action='store_true', default=None,
                        help="serve the archive locally and open it in a browser instead of printing it")
    parser.add_argument('-m', '--minify', action='store_true', default=None,
                        help="minify HTML, CSS, JS, JSON, SVG and XML parts")
    parser.add_argument('-re', dest='remove_elements', action='append', metavar='SELECTOR',
                        help="remove elements matching a CSS selector (repeatable)")
    parser.add_argument('-ra', dest='remove_attributes', action='append', nargs=2, metavar=('SELECTOR', 'ATTR'),
                        help="clear an attribute on elements matching a CSS selector (repeatable)")
    parser.add_argument('-o', '--output', dest='output_path', help="write the HTML to a file instead of stdout")
    parser.add_argument('-j', '--workers', type=int, help="rewrite resources on N worker threads")
    parser.add_argument('--port', type=int, help="port for --browse (default: OS-assigned)")
    parser.add_argument('--no-open', dest='open_browser', action='store_false', default=None,
                        help="with --browse, only print the URL")
    parser.add_argument('--config', help="JSON settings file providing defaults for these options")
    parser.add_argument('-v', '--verbose', action='store_true', help="debug logging on the console")
    parser.add_argument('--log-dir', help="also write rotating log files to this directory")
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    return parser


def build_config(args: argparse.Namespace) -> ConvertConfig:
    settings = load_settings(args.config) if args.config else {}
    for name in ('browse', 'minify', 'output_path', 'workers', 'port', 'open_browser'):
        value = getattr(args, name)
        if value is not None:
            settings[name] = value
    # Repeatable options extend the settings file instead of replacing it
    if args.remove_elements:
        settings['remove_elements'] = list(settings.get('remove_elements', [])) + args.remove_elements
    if args.remove_attributes:
        pairs = [tuple(pair) for pair in args.remove_attributes]
        settings['remove_attributes'] = list(settings.get('remove_attributes', [])) + pairs
    return ConvertConfig(**settings)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logger = initialize_logging(args.log_dir, logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = build_config(args)
    except (OSError, ValueError, TypeError) as e:
        logger.error(f"Invalid settings file {args.config}: {e}")
        return 2
    if config.workers < 1:
        parser.error("--workers must be at least 1")

    controller = Mhtml2HtmlController(config, logger=logger)
    source = sys.stdin.buffer if args.mhtml == '-' else args.mhtml
    try:
        return controller.run(source)
    except OSError as e:
        logger.error(f"I/O error: {e}")
        return 1
