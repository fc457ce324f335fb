"""
This module implements the compression of response bodies with Brotli
or gzip, depending on what the client accepts.
"""

import zlib

import brotli

from ._pipeline import Stage


CHUNK_SIZE = 64 * 1024

# Responses with these statuses have no payload
BODYLESS_STATUSES = (204, 304)


def select_encoding(accept_encoding):
    """ Get the content-encoding to use for the given accept-encoding
    header value: "br" is preferred over "gzip". Returns None if the
    client accepts neither.
    """
    if "br" in accept_encoding:
        return "br"
    elif "gzip" in accept_encoding:
        return "gzip"
    else:
        return None


class Compressor:
    """ A streaming compressor for the given encoding ("br" or "gzip").
    Use it as a context manager to guarantee that the stream is finished.
    """

    def __init__(self, encoding, quality=5):
        self._encoding = encoding
        self._finished = False
        if encoding == "br":
            self._compressor = brotli.Compressor(quality=quality)
            self._compress = self._compressor.process
        elif encoding == "gzip":
            # wbits 16 + 15 selects the gzip container
            self._compressor = zlib.compressobj(quality, zlib.DEFLATED, 31)
            self._compress = self._compressor.compress
        else:
            raise ValueError(f"Unsupported content-encoding: {encoding!r}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.finish()

    @property
    def encoding(self):
        return self._encoding

    @property
    def finished(self):
        """ Whether the stream has been finished.
        """
        return self._finished

    def compress(self, data):
        """ Compress a chunk of data, returning the bytes available so far.
        """
        if self._finished:
            raise IOError("Cannot compress data after the stream is finished.")
        return self._compress(data)

    def finish(self):
        """ Finish the stream, returning the remaining bytes (including the
        trailer). Calling this more than once returns empty bytes.
        """
        if self._finished:
            return b""
        self._finished = True
        if self._encoding == "br":
            return self._compressor.finish()
        else:
            return self._compressor.flush()


async def compressed_body(body, encoding, chunk_size=CHUNK_SIZE):
    """ Async generator that yields the compressed body in chunks.
    """
    with Compressor(encoding) as compressor:
        for start in range(0, len(body), chunk_size):
            chunk = compressor.compress(body[start : start + chunk_size])
            if chunk:
                yield chunk
        yield compressor.finish()


class CompressStage(Stage):
    """ Pipeline stage that compresses the response body, if the client
    accepts it. Responses without a body are left alone.
    """

    name = "compress"

    def __init__(self, chunk_size=CHUNK_SIZE):
        self._chunk_size = chunk_size

    def process(self, request, response):
        body = response.body
        if not response.resolved or response.status in BODYLESS_STATUSES:
            return response
        if not isinstance(body, (bytes, str)) or not body:
            return response
        if "content-encoding" in response.headers:
            return response

        vary = response.headers.get("vary", "")
        if "accept-encoding" not in vary.lower():
            response.headers["vary"] = (vary + ", " if vary else "") + "Accept-Encoding"

        encoding = select_encoding(request.headers.get("accept-encoding", ""))
        if encoding is None:
            return response

        if isinstance(body, str):
            body = body.encode()
        response.headers["content-encoding"] = encoding
        response.headers.pop("content-length", None)
        response.body = compressed_body(body, encoding, self._chunk_size)
        return response
