"""
This module implements the HttpRequest class that is passed through the
stages of the pipeline, and that the ASGI adapter writes the response to.
"""

# Response states
CONNECTING = 0
CONNECTED = 1
DONE = 2


class HttpRequest:
    """ An HTTP request, as seen by the stages: read-only access to the
    method, path, scheme and headers of the ASGI scope. The ASGI adapter
    uses ``accept()`` and ``send()`` to write the response; stages should
    not call these.
    """

    __slots__ = ("_scope", "_headers", "_send", "_app_state")

    def __init__(self, scope, send):
        self._scope = scope
        self._headers = None
        self._send = send
        self._app_state = CONNECTING

    def __repr__(self):
        return f"<HttpRequest {self.method} {self.path}>"

    @property
    def scope(self):
        """ The raw ASGI scope (a dict).
        """
        return self._scope

    @property
    def method(self):
        """ The HTTP method, e.g. "GET" or "HEAD".
        """
        return self._scope["method"]

    @property
    def headers(self):
        """ The request headers as a dict with lowercase keys. If a header
        occurs more than once, the last value wins. Bytes are decoded as
        latin-1, the charset of HTTP/1.1 headers, so any value decodes.
        """
        if self._headers is None:
            self._headers = {
                key.decode("latin-1").lower(): val.decode("latin-1")
                for key, val in self._scope["headers"]
            }
        return self._headers

    @property
    def scheme(self):
        """ "http" or "https".
        """
        return self._scope.get("scheme", "http")

    @property
    def path(self):
        """ The URL path with percent escapes decoded, including the root
        path that the app may be mounted on.
        """
        return self._scope.get("root_path", "") + self._scope["path"]

    async def accept(self, status=200, headers={}):
        """ Start the response by sending the status and headers.
        """
        if self._app_state != CONNECTING:
            raise IOError("Response was already started.")
        try:
            raw_headers = [(k.encode(), v.encode()) for k, v in headers.items()]
        except AttributeError:
            raise TypeError("Header names and values must be str.")
        self._app_state = CONNECTED
        await self._send(
            {"type": "http.response.start", "status": int(status), "headers": raw_headers}
        )

    async def send(self, data, more=True):
        """ Send a chunk of the response body. The last chunk is sent with
        ``more=False``.
        """
        if isinstance(data, str):
            data = data.encode()
        if not isinstance(data, bytes):
            raise TypeError(f"Response body must be bytes or str, not {type(data)}.")
        if self._app_state == CONNECTING:
            raise IOError("Cannot send body before the response is started.")
        elif self._app_state == DONE:
            raise IOError("Cannot send body after the response is finished.")
        if not more:
            self._app_state = DONE
        await self._send(
            {"type": "http.response.body", "body": data, "more_body": bool(more)}
        )
