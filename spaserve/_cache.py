"""
This module implements the in-memory cache of critical assets: the
application shell and a few small files that are requested on every
page load.
"""

import os
import threading
from collections import namedtuple

from ._logging import logger
from .utils import guess_content_type


CachedAsset = namedtuple("CachedAsset", ["content", "mod_time", "size", "mime_type"])
CachedAsset.__doc__ = """ An in-memory copy of a file: its content (bytes),
modification time (unix seconds), size (bytes) and mime type.
"""

# Small assets that are cached in addition to the application shell
EXTRA_CRITICAL_ASSETS = ("vite.svg",)


def critical_asset_names(spa_fallback_file):
    """ Get the file names to cache for the given application shell.
    """
    names = [spa_fallback_file]
    names += [name for name in EXTRA_CRITICAL_ASSETS if name != spa_fallback_file]
    return names


class AssetCache:
    """ A mapping from URL path (e.g. "/index.html") to ``CachedAsset``,
    filled from a fixed list of file names in the static directory.

    Loading is best-effort: files that cannot be read are logged and
    skipped. A (re)load builds a new mapping and publishes it in one
    assignment, so concurrent lookups see either the old or the new
    mapping, never a partial one.
    """

    def __init__(self, static_dir, names):
        self._static_dir = static_dir
        self._names = tuple(names)
        self._assets = {}
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._assets)

    def __contains__(self, url_path):
        return url_path in self._assets

    @property
    def static_dir(self):
        """ The directory that the assets are read from.
        """
        return self._static_dir

    @property
    def names(self):
        """ The tuple of file names that this cache tries to load.
        """
        return self._names

    def load(self, static_dir=None):
        """ Replace the cached assets with freshly read copies. If
        ``static_dir`` is given, it replaces the directory to read from.
        Returns the number of cached assets.
        """
        with self._lock:
            if static_dir is not None:
                self._static_dir = static_dir
            assets = {}
            for name in self._names:
                asset = self._read_asset(name)
                if asset is not None:
                    assets["/" + name] = asset
            self._assets = assets

        logger.info(f"Loaded {len(assets)} critical assets into in-memory cache.")
        return len(assets)

    def reload(self):
        """ Re-read all assets from the current static directory.
        """
        return self.load()

    def lookup(self, url_path):
        """ Get a tuple ``(asset, found)`` for the given URL path.
        """
        asset = self._assets.get(url_path)
        return asset, asset is not None

    def _read_asset(self, name):
        filename = os.path.join(self._static_dir, name)
        try:
            with open(filename, "rb") as f:
                st = os.fstat(f.fileno())
                content = f.read()
        except OSError as err:
            logger.warning(
                f"Could not load critical asset {filename} into cache: {err}"
            )
            return None
        mime_type = guess_content_type(name, content)
        return CachedAsset(content, st.st_mtime, st.st_size, mime_type)
