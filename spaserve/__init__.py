"""
Spaserve - serve the build output of a single-page application over ASGI.

Requested paths are resolved against a static directory, and paths that
do not exist are answered with the application shell (e.g. ``index.html``)
so that client-side routing works. Responses get ETag and Last-Modified
validators (with 304 responses when the client's copy is still valid),
cache-control headers based on the kind of path, security headers, and
Brotli or gzip compression.
"""

from ._config import Config, ConfigError, load_config
from ._cache import AssetCache, CachedAsset
from ._pipeline import Pipeline, Stage, Response
from ._policy import PolicyTag, classify
from ._app import to_asgi, make_app, make_pipeline
from ._run import run
from . import utils


__all__ = [
    "Config",
    "ConfigError",
    "load_config",
    "AssetCache",
    "CachedAsset",
    "Pipeline",
    "Stage",
    "Response",
    "PolicyTag",
    "classify",
    "to_asgi",
    "make_app",
    "make_pipeline",
    "run",
    "utils",
]


__version__ = "0.1.0"
