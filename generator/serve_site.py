#!/usr/bin/env python3
"""Serve a built site locally, including draft previews under /_drafts/."""

import argparse
import functools
import http.server
import logging
import socketserver
import sys
from pathlib import Path
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8000
DEFAULT_ROOT = "_site"


def resolve_route(url_path: str, root: Path) -> str:
    """Map a pretty URL such as ``/about-me/`` onto ``/about-me.html``.

    Paths that already name a file, or that carry a suffix, are left alone.
    """
    path_only = url_path.split("?", 1)[0].split("#", 1)[0]
    relative = path_only.strip("/")
    if not relative:
        return url_path
    candidate = root / relative
    if candidate.is_file() or candidate.suffix:
        return url_path
    if (root / f"{relative}.html").is_file():
        return f"/{relative}.html"
    return url_path


class SiteHandler(http.server.SimpleHTTPRequestHandler):
    def do_GET(self):
        self.path = resolve_route(self.path, Path(self.directory))
        return http.server.SimpleHTTPRequestHandler.do_GET(self)

    def log_message(self, format, *args):
        logger.info("%s - %s", self.address_string(), format % args)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("port", nargs="?", type=int, default=DEFAULT_PORT)
    parser.add_argument("--root", default=DEFAULT_ROOT, help="Directory holding the built site")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    root = Path(args.root)
    if not root.is_dir():
        logger.error("Site directory '%s' does not exist; run sitegen-build first", root)
        return 1

    handler = functools.partial(SiteHandler, directory=str(root))
    httpd = socketserver.TCPServer(("", args.port), handler)

    logger.info("Serving %s at http://localhost:%d", root, args.port)

    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        httpd.server_close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
