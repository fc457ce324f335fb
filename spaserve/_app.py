"""
This module implements the ASGI application that forms the adapter
between the request pipeline and the ASGI server, and the function to
compose the default pipeline from a config.
"""

import inspect

from ._logging import logger
from . import _request
from ._request import HttpRequest
from ._compat import run_in_thread
from ._config import Config
from ._cache import AssetCache, critical_asset_names
from ._pipeline import Pipeline
from ._security import SecurityHeadersStage
from ._policy import CacheControlStage
from ._resolver import ResolveStage
from ._compress import CompressStage, BODYLESS_STATUSES
from .utils import guess_content_type_from_body


def make_pipeline(config, cache):
    """ Create the default pipeline for the given config and asset cache:
    security headers, cache-control, conditional resolving, compression.
    """
    return Pipeline(
        [
            SecurityHeadersStage(config),
            CacheControlStage(config),
            ResolveStage(config, cache),
            CompressStage(),
        ]
    )


def make_app(config):
    """ Create an ASGI application that serves the SPA described by the
    given config. The critical assets are loaded into memory right away.

    The returned application has attributes ``config``, ``cache`` and
    ``pipeline``, and a ``reload()`` function to re-read the cached assets.
    """
    if not isinstance(config, Config):
        raise TypeError(f"make_app() expects a Config, not {type(config)}")

    cache = AssetCache(config.static_dir, critical_asset_names(config.spa_fallback_file))
    cache.load()

    app = to_asgi(make_pipeline(config, cache))
    app.config = config
    app.cache = cache
    app.reload = cache.reload
    return app


def to_asgi(pipeline):
    """ Convert a request pipeline to an ASGI application, which can be
    served with an ASGI server, such as Uvicorn or Hypercorn.
    """

    if not isinstance(pipeline, Pipeline):
        raise TypeError("spaserve.to_asgi() expects a Pipeline object.")

    async def application(scope, receive, send):
        return await spaserve_application(pipeline, scope, receive, send)

    application.pipeline = pipeline
    return application


async def spaserve_application(pipeline, scope, receive, send):

    if scope["type"] == "http":
        request = HttpRequest(scope, send)
        await _handle_http(pipeline, request)
    elif scope["type"] == "lifespan":
        await _handle_lifespan(receive, send)
    else:
        logger.warning(f"Unknown ASGI type {scope['type']}")


async def _handle_lifespan(receive, send):
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            logger.info("Server is starting up")
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            logger.info("Server is shutting down")
            await send({"type": "lifespan.shutdown.complete"})
            return
        else:
            logger.warning(f"Unknown lifespan message {message['type']}")


async def _handle_http(pipeline, request):

    try:

        # Run the stages in a thread; they do blocking file io
        where = "request pipeline"
        response = await run_in_thread(pipeline.process, request)

        where = "processing pipeline output"
        status, headers, body = response.status, response.headers, response.body
        if not isinstance(status, int):
            raise ValueError(f"Status code must be an int, not {type(status)}")
        if isinstance(body, str):
            body = body.encode()
        if status not in BODYLESS_STATUSES and "content-type" not in headers:
            headers["content-type"] = guess_content_type_from_body(
                body if isinstance(body, bytes) else b""
            )

        if isinstance(body, bytes):
            where = "sending response"
            if status not in BODYLESS_STATUSES:
                headers.setdefault("content-length", str(len(body)))
            await request.accept(status, headers)
            await request.send(body, more=False)
        elif inspect.isasyncgen(body):
            # Headers are committed right before the first chunk. Without
            # content-length, the server uses chunked encoding.
            where = "sending chunked response"
            async for chunk in body:
                if request._app_state == _request.CONNECTING:
                    await request.accept(status, headers)
                if chunk:
                    await request.send(chunk)
            if request._app_state == _request.CONNECTING:
                await request.accept(status, headers)
        else:
            raise ValueError(f"Body cannot be {type(body)}.")

        # Mark end of data, if needed
        if request._app_state == _request.CONNECTED:
            where = "finalizing response"
            await request.send(b"", more=False)

    except Exception as err:
        # Process errors. We log them, and if possible send a 500
        error_text = f"{type(err).__name__} in {where}: {str(err)}"
        logger.error(error_text, exc_info=err)
        if request._app_state == _request.CONNECTING:
            await request.accept(500, {"content-type": "text/plain; charset=utf-8"})
            await request.send(error_text, more=False)
        elif request._app_state == _request.CONNECTED:
            await request.send(b"", more=False)  # At least close it
