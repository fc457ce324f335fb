"""
This module implements the cache-control policy: which caching headers
a path gets, based on the shape of the path.
"""

import os

from ._pipeline import Stage
from .utils import safe_join


# Build output under this prefix is content-hashed
HASHED_ASSETS_PREFIX = "/assets/"

STATIC_CONTENT_EXTENSIONS = (
    ".js",
    ".css",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".webp",
)


class PolicyTag:
    """ The cache-control treatments that a path can get.
    """

    IMMUTABLE = "immutable"
    NO_CACHE = "no-cache"
    SHORT_CACHE = "short-cache"
    NONE = "none"


POLICY_HEADERS = {
    PolicyTag.IMMUTABLE: {"cache-control": "public, max-age=31536000, immutable"},
    PolicyTag.NO_CACHE: {
        "cache-control": "no-cache, no-store, must-revalidate",
        "pragma": "no-cache",
        "expires": "0",
    },
    PolicyTag.SHORT_CACHE: {"cache-control": "public, max-age=3600"},
    PolicyTag.NONE: {},
}


def classify(path, config):
    """ Get the ``PolicyTag`` for the given URL path:

    * ``IMMUTABLE`` for hashed assets and scripts, stylesheets and images.
    * ``NO_CACHE`` for the root and the application shell, since it refers
      to the hashed assets of the current deploy.
    * ``SHORT_CACHE`` for other paths that exist as a file in the static dir.
    * ``NONE`` otherwise.
    """
    if path.startswith(HASHED_ASSETS_PREFIX) or path.endswith(
        STATIC_CONTENT_EXTENSIONS
    ):
        return PolicyTag.IMMUTABLE
    elif path == "/" or path == "/" + config.spa_fallback_file:
        return PolicyTag.NO_CACHE
    elif os.path.isfile(safe_join(config.static_dir, path)):
        return PolicyTag.SHORT_CACHE
    else:
        return PolicyTag.NONE


class CacheControlStage(Stage):
    """ Pipeline stage that sets the caching headers for the request path.
    """

    name = "cache-control"

    def __init__(self, config):
        self._config = config

    def process(self, request, response):
        tag = classify(request.path, self._config)
        response.headers.update(POLICY_HEADERS[tag])
        return response
