"""
This module implements the conditional serving of the SPA: find the
source for a request (in-memory cache, file on disk, or the application
shell as fallback), and decide between a full response and a 304.
"""

import os
import stat

from ._cache import CachedAsset
from ._logging import logger
from ._pipeline import Stage, set_not_found
from .utils import (
    guess_content_type,
    make_etag,
    format_http_date,
    parse_http_date,
    safe_join,
)


def is_not_modified(headers, etag, mod_time):
    """ Whether the client's copy is still valid, given the request headers
    (a dict with lowercase keys), and the etag and modification time of
    the resource.

    An ``if-none-match`` that equals the etag exactly wins. Otherwise an
    ``if-modified-since`` date is compared with one second of tolerance,
    because HTTP dates have no sub-second precision. A date that cannot
    be parsed is ignored.
    """
    if_none_match = headers.get("if-none-match", "")
    if if_none_match and if_none_match == etag:
        return True
    if_modified_since = headers.get("if-modified-since", "")
    if if_modified_since:
        since = parse_http_date(if_modified_since)
        if since is not None and mod_time < since + 1:
            return True
    return False


class Resolver:
    """ Find the source of the content for a URL path.
    """

    def __init__(self, config, cache):
        self._config = config
        self._cache = cache

    @property
    def fallback_filename(self):
        """ The path of the application shell on disk.
        """
        return os.path.join(self._config.static_dir, self._config.spa_fallback_file)

    def resolve(self, url_path):
        """ Get a ``CachedAsset`` for the given path, or None if neither
        the path nor the fallback file exist. Errors reading an existing
        file are raised.
        """
        cache_path = url_path
        if cache_path == "/":
            cache_path = "/" + self._config.spa_fallback_file
        asset, found = self._cache.lookup(cache_path)
        if found:
            return asset

        filename = safe_join(self._config.static_dir, url_path)
        if not os.path.isfile(filename):
            filename = self.fallback_filename
        try:
            st = os.stat(filename)
        except OSError:
            return None
        if not stat.S_ISREG(st.st_mode):
            return None

        with open(filename, "rb") as f:
            content = f.read()
        mime_type = guess_content_type(filename, content)
        return CachedAsset(content, st.st_mtime, st.st_size, mime_type)


class ResolveStage(Stage):
    """ Pipeline stage that resolves the response: 200 with the content,
    304 if the client's copy is still valid, or 404 if there is nothing
    to serve (not even the application shell).
    """

    name = "resolve"

    def __init__(self, config, cache):
        self._resolver = Resolver(config, cache)

    @property
    def resolver(self):
        return self._resolver

    def process(self, request, response):
        asset = self._resolver.resolve(request.path)

        if asset is None:
            logger.debug(f"Nothing to serve for {request.path}")
            set_not_found(response, request.method)
            return response

        etag = make_etag(asset.mod_time, asset.size)
        response.headers["etag"] = etag
        response.headers["last-modified"] = format_http_date(asset.mod_time)

        if is_not_modified(request.headers, etag, asset.mod_time):
            response.status = 304
            response.body = b""
            return response

        response.status = 200
        response.headers["content-type"] = asset.mime_type
        if request.method == "HEAD":
            response.headers["content-length"] = str(len(asset.content))
            response.body = b""
        else:
            response.body = asset.content
        return response
