"""
Utilities to test spaserve apps without a real server.
"""

import sys
import gzip
import time
import asyncio
from collections import namedtuple
from urllib.parse import unquote, urlparse
from wsgiref.handlers import format_date_time

import brotli
import requests


DEFAULT_PORTS = {"http": 80, "https": 443}


class Response(namedtuple("Response", ["status", "headers", "body"])):
    """ The response to a request on a ``MockTestServer``. The header keys
    are lowercase, and the body is the raw bytes as sent by the app.
    """

    __slots__ = ()

    @property
    def decoded_body(self):
        """ The body with the content-encoding (br or gzip) undone.
        """
        encoding = self.headers.get("content-encoding", "")
        if encoding == "br":
            return brotli.decompress(self.body)
        elif encoding == "gzip":
            return gzip.decompress(self.body)
        return self.body


class MockTestServer:
    """ Run an ASGI application in-process, pretending to be a server.
    This makes it suited for unit tests (and tracking test coverage).

    Use it as a context manager: entering sends the lifespan startup
    event, exiting sends the shutdown event. Requests are made via the
    methods of this object, with a path or a full url (use an https url
    to pretend a secure connection). Whatever the application writes to
    stdout and stderr while the server runs, ends up in ``out``.
    """

    def __init__(self, app, *, loop=None):
        if not callable(app):
            raise TypeError("MockTestServer needs an ASGI application.")
        self._app = app
        self._loop = asyncio.new_event_loop() if loop is None else loop
        self._out = ""
        self._captured = []
        self._real_writes = None
        self._lifespan_task = None
        self._lifespan_inbox = None
        self._lifespan_events = []

    @property
    def app(self):
        """ The ASGI application being served.
        """
        return self._app

    @property
    def url(self):
        """ The base url that requests with only a path are sent to.
        """
        return "http://127.0.0.1:8080"

    @property
    def out(self):
        """ The captured stdout and stderr, passed through ``filter_lines()``.
        Available after the with-statement exits.
        """
        return self._out

    def __enter__(self):
        self._captured = []
        self._capture_streams()
        try:
            self._loop.run_until_complete(self._start_lifespan())
            self._lifespan("startup")
        except Exception:
            self._release_streams()
            raise
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        try:
            self._lifespan("shutdown")
        finally:
            self._release_streams()
        lines = "".join(self._captured).splitlines()
        self._out = "\n".join(self.filter_lines(lines))
        if exc_value is not None:
            self.log("Server output:\n" + self._out)

    def get(self, path, data=None, headers=None, **kwargs):
        return self.request("GET", path, data=data, headers=headers, **kwargs)

    def head(self, path, data=None, headers=None, **kwargs):
        return self.request("HEAD", path, data=data, headers=headers, **kwargs)

    def post(self, path, data=None, headers=None, **kwargs):
        return self.request("POST", path, data=data, headers=headers, **kwargs)

    def request(self, method, path, data=None, headers=None, **kwargs):
        """ Make a request and return a ``Response``.

        Arguments:
            method (str): the HTTP method, e.g. "GET".
            path (str): a path, or a full url.
            data: the request body (optional).
            headers: a dict of request headers (optional).
            kwargs: passed to ``requests.Request()``.
        """
        if not (isinstance(method, str) and isinstance(path, str)):
            raise TypeError("request() needs a str method and path.")
        url = path if path.startswith("http") else self.url + "/" + path.lstrip("/")
        prepared = requests.Request(
            method, url, data=data, headers=headers, **kwargs
        ).prepare()
        return self._loop.run_until_complete(self._do_request(prepared))

    def log(self, text):
        """ Write a message to the real stdout. Overloadable.
        """
        write = self._real_writes[0] if self._real_writes else sys.stdout.write
        write(text + "\n")

    def filter_lines(self, lines):
        """ Filter the lines of captured output. Overloadable.
        """
        return lines

    # %% Internals

    def _capture_streams(self):
        self._real_writes = sys.stdout.write, sys.stderr.write
        sys.stdout.write = sys.stderr.write = self._captured.append

    def _release_streams(self):
        sys.stdout.write, sys.stderr.write = self._real_writes
        self._real_writes = None

    async def _start_lifespan(self):
        # The queue must be created while our loop is running
        self._lifespan_inbox = asyncio.Queue()
        self._lifespan_events = []
        self._lifespan_task = asyncio.ensure_future(self._run_lifespan())

    async def _run_lifespan(self):
        async def send(m):
            self._lifespan_events.append(m["type"])

        await self._app({"type": "lifespan"}, self._lifespan_inbox.get, send)

    def _lifespan(self, what, timeout=5):
        expected = f"lifespan.{what}.complete"

        async def wait_for_app():
            await self._lifespan_inbox.put({"type": f"lifespan.{what}"})
            deadline = time.time() + timeout
            while expected not in self._lifespan_events:
                if self._lifespan_task.done():
                    raise RuntimeError(f"App stopped its lifespan before {what}.")
                if time.time() > deadline:
                    raise RuntimeError(f"Timeout waiting for {expected}.")
                await asyncio.sleep(0.01)

        self._loop.run_until_complete(wait_for_app())

    def _make_scope(self, prepared):
        parts = urlparse(prepared.url)
        host = parts.hostname
        port = parts.port or DEFAULT_PORTS[parts.scheme]

        headers = [
            (key.lower().encode(), value.encode())
            for key, value in prepared.headers.items()
        ]
        if "host" not in prepared.headers:
            netloc = host if port == DEFAULT_PORTS[parts.scheme] else f"{host}:{port}"
            headers.insert(0, (b"host", netloc.encode()))

        return {
            "type": "http",
            "http_version": "1.1",
            "method": prepared.method,
            "scheme": parts.scheme,
            "path": unquote(parts.path) or "/",
            "root_path": "",
            "query_string": parts.query.encode(),
            "headers": headers,
            "client": ["testclient", 50000],
            "server": [host, port],
        }

    async def _do_request(self, prepared):
        prepared.headers.setdefault("user-agent", "spaserve_mock_server")
        scope = self._make_scope(prepared)

        body = prepared.body or b""
        if isinstance(body, str):
            body = body.encode()
        inbox = [{"type": "http.request", "body": body, "more_body": False}]
        start = {}
        chunks = []

        async def receive():
            return inbox.pop(0) if inbox else {"type": "http.disconnect"}

        async def send(m):
            if m["type"] == "http.response.start":
                if start:
                    raise IOError("Response started twice.")
                start["status"] = m["status"]
                start["headers"] = {
                    key.decode().lower(): val.decode() for key, val in m["headers"]
                }
            elif m["type"] == "http.response.body":
                chunks.append(m.get("body", b""))

        await self._app(scope, receive, send)

        headers = start.get("headers", {})
        headers.setdefault("date", format_date_time(time.time()))
        headers.setdefault("server", "spaserve_mock_server")
        return Response(start.get("status", 9999), headers, b"".join(chunks))
