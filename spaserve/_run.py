"""
This module implements a ``run()`` function to start an ASGI server of choice.
"""

import importlib


def run(app, server="uvicorn", bind="localhost:8080", **kwargs):
    """ Run the given ASGI app with the given ASGI server. This provides a
    programatic API as an alternative to the standard ASGI-way to start
    a server.

    Arguments:

    * ``app`` (required): The ASGI application object, or a string ``"module.path:appname"``.
    * ``server``: The name of the server to use, "uvicorn" (default) or "hypercorn".
    * ``bind``: The "host:port" to listen on.
    * ``kwargs``: additional arguments to pass to the underlying server.
    """

    if isinstance(app, str) and ":" not in app:
        raise ValueError("If specifying an app by name, give its full path!")

    # Check server and bind
    assert isinstance(server, str), "spaserve.run() server arg must be a string."
    assert isinstance(bind, str), "spaserve.run() bind arg must be a string."
    assert ":" in bind, "spaserve.run() bind arg must be 'host:port'"
    bind = bind.replace("localhost", "127.0.0.1")

    # Select server function
    try:
        func = SERVERS[server.lower()]
    except KeyError:
        raise ValueError(f"Invalid server specified: {server!r}")

    # Delegate
    return func(app, bind, **kwargs)


def _load_app(appname):
    modname, _, attr = appname.partition(":")
    return getattr(importlib.import_module(modname), attr)


def _run_uvicorn(app, bind, **kwargs):
    import uvicorn

    host, _, port = bind.rpartition(":")

    # Default to a warning log_level, otherwise uvicorn is quite verbose
    kwargs.setdefault("log_level", "warning")

    return uvicorn.run(app, host=host, port=int(port), **kwargs)


def _run_hypercorn(app, bind, **kwargs):
    import asyncio
    from hypercorn.config import Config as HypercornConfig
    from hypercorn.asyncio import serve

    if isinstance(app, str):
        app = _load_app(app)

    config = HypercornConfig()
    config.bind = [bind]
    for key, val in kwargs.items():
        setattr(config, key, val)

    return asyncio.run(serve(app, config))


SERVERS = {"uvicorn": _run_uvicorn, "hypercorn": _run_hypercorn}
