"""
Some utilities for common tasks: content types, validators and paths.
"""

import os
import posixpath
import mimetypes
from datetime import timezone
from email.utils import parsedate_to_datetime
from wsgiref.handlers import format_date_time

__all__ = [
    "guess_content_type",
    "guess_content_type_from_body",
    "make_etag",
    "format_http_date",
    "parse_http_date",
    "safe_join",
]


# The content types that matter for a web build, so that we do not depend
# on the mime tables of the host system for these.
WEB_CONTENT_TYPES = {
    ".avif": "image/avif",
    ".css": "text/css; charset=utf-8",
    ".gif": "image/gif",
    ".htm": "text/html; charset=utf-8",
    ".html": "text/html; charset=utf-8",
    ".ico": "image/x-icon",
    ".jpeg": "image/jpeg",
    ".jpg": "image/jpeg",
    ".js": "text/javascript; charset=utf-8",
    ".json": "application/json",
    ".map": "application/json",
    ".mjs": "text/javascript; charset=utf-8",
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".svg": "image/svg+xml",
    ".txt": "text/plain; charset=utf-8",
    ".wasm": "application/wasm",
    ".webmanifest": "application/manifest+json",
    ".webp": "image/webp",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".xml": "text/xml; charset=utf-8",
}


def guess_content_type(filename, body=None):
    """ Get the content-type for a file, based on its extension. Known
    web types come from a fixed table, others from the ``mimetypes``
    module. If neither knows the extension, the type is guessed from
    the body (if given).
    """
    ext = os.path.splitext(filename)[1].lower()
    if ext in WEB_CONTENT_TYPES:
        return WEB_CONTENT_TYPES[ext]
    ctype, _ = mimetypes.guess_type("x" + ext)
    if ctype:
        if ctype.startswith("text/"):
            ctype += "; charset=utf-8"
        return ctype
    return guess_content_type_from_body(body or b"")


def guess_content_type_from_body(body):
    """ Guess the content-type based of the body.

    * "text/html; charset=utf-8" for bodies starting with ``<!DOCTYPE html>`` or ``<html>``.
    * "text/plain; charset=utf-8" for other bodies that look like text.
    * "application/octet-stream" otherwise.
    """
    if isinstance(body, str):
        body = body.encode()
    sniff = body[:512].lstrip()
    if sniff.lower().startswith((b"<!doctype html", b"<html")):
        return "text/html; charset=utf-8"
    elif sniff and _looks_like_text(sniff):
        return "text/plain; charset=utf-8"
    else:
        return "application/octet-stream"


def _looks_like_text(data):
    if b"\x00" in data:
        return False
    try:
        data.decode("utf-8")
    except UnicodeDecodeError as err:
        # A multi-byte character may have been cut off at the end of the sniff
        return err.reason == "unexpected end of data"
    return True


def make_etag(mod_time, size):
    """ Get the (strong, quoted) etag for a resource with the given
    modification time (unix seconds) and size (bytes).
    """
    return f'"{int(mod_time):x}-{size:x}"'


def format_http_date(timestamp):
    """ Format a unix timestamp as an HTTP date, e.g. for Last-Modified.
    """
    return format_date_time(timestamp)


def parse_http_date(value):
    """ Parse an HTTP date into a unix timestamp. Returns None if the
    value cannot be parsed.
    """
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError, OverflowError):
        return None
    if dt is None:  # older Pythons return None instead of raising
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def safe_join(directory, url_path):
    """ Join a directory and a url path. The path is normalized first,
    so ``..`` segments cannot reach outside of the directory.
    """
    relpath = posixpath.normpath("/" + url_path).lstrip("/")
    if not relpath or relpath == ".":
        return directory
    return os.path.join(directory, *relpath.split("/"))
