"""
Test the conditional serving: source resolution, validators, 304s and 404s.
"""

import os
import asyncio
import re

from pytest import raises

from spaserve import AssetCache, Config, make_app
from spaserve._resolver import Resolver, is_not_modified
from spaserve.utils import make_etag, format_http_date

from common import (
    make_static_dir,
    make_spa_server,
    write_file,
    MTIME,
    INDEX_HTML,
    VITE_SVG,
    APP_JS,
)


def make_resolver(static_dir, load=True, **kwargs):
    config = Config(static_dir=static_dir, **kwargs)
    cache = AssetCache(static_dir, [config.spa_fallback_file, "vite.svg"])
    if load:
        cache.load()
    return Resolver(config, cache)


def test_is_not_modified():
    etag = make_etag(MTIME, 100)
    last_modified = format_http_date(MTIME)
    day_before = format_http_date(MTIME - 86400)

    assert not is_not_modified({}, etag, MTIME)

    # Exact etag match only
    assert is_not_modified({"if-none-match": etag}, etag, MTIME)
    assert not is_not_modified({"if-none-match": "invalid-etag"}, etag, MTIME)
    assert not is_not_modified({"if-none-match": "W/" + etag}, etag, MTIME)
    assert not is_not_modified({"if-none-match": etag.strip('"')}, etag, MTIME)

    # Dates, with one second tolerance for the truncated fraction
    assert is_not_modified({"if-modified-since": last_modified}, etag, MTIME)
    assert is_not_modified(
        {"if-modified-since": format_http_date(MTIME + 3600)}, etag, MTIME
    )
    assert not is_not_modified({"if-modified-since": day_before}, etag, MTIME)
    assert not is_not_modified(
        {"if-modified-since": format_http_date(MTIME - 1)}, etag, MTIME
    )

    # A wrong etag falls through to the date check
    headers = {"if-none-match": '"nope"', "if-modified-since": last_modified}
    assert is_not_modified(headers, etag, MTIME)

    # Malformed dates are ignored
    assert not is_not_modified({"if-modified-since": "yesterday"}, etag, MTIME)
    assert not is_not_modified({"if-modified-since": ""}, etag, MTIME)


def test_resolve_sources():
    static_dir = make_static_dir()
    resolver = make_resolver(static_dir)

    # From the cache
    asset = resolver.resolve("/")
    assert asset.content == INDEX_HTML
    assert resolver.resolve("/index.html") is asset
    assert resolver.resolve("/vite.svg").content == VITE_SVG

    # From disk
    asset = resolver.resolve("/assets/index-4f2a9c.js")
    assert asset.content == APP_JS
    assert asset.size == len(APP_JS)
    assert asset.mime_type == "text/javascript; charset=utf-8"

    # Fallback from disk
    asset = resolver.resolve("/some/client/route")
    assert asset.content == INDEX_HTML
    assert asset.mime_type == "text/html; charset=utf-8"

    # Directories are not files
    assert resolver.resolve("/assets").content == INDEX_HTML
    assert resolver.resolve("/assets/").content == INDEX_HTML


def test_resolve_without_cache():
    static_dir = make_static_dir()
    resolver = make_resolver(static_dir, load=False)

    asset = resolver.resolve("/")
    assert asset.content == INDEX_HTML
    assert int(asset.mod_time) == int(MTIME)
    assert resolver.resolve("/vite.svg").content == VITE_SVG


def test_resolve_stays_in_static_dir():
    parent = make_static_dir({"secret.txt": b"secret"})
    static_dir = os.path.join(parent, "dist")
    write_file(static_dir, "index.html", INDEX_HTML)
    resolver = make_resolver(static_dir, load=False)

    assert resolver.resolve("/../secret.txt").content == INDEX_HTML
    assert resolver.resolve("/../../../../etc/passwd").content == INDEX_HTML


def test_resolve_nothing():
    static_dir = make_static_dir({"robots.txt": b"x"})
    resolver = make_resolver(static_dir)

    assert resolver.resolve("/") is None
    assert resolver.resolve("/some/route") is None
    assert resolver.resolve("/robots.txt").content == b"x"


def test_resolve_read_errors_propagate():
    static_dir = make_static_dir()
    resolver = make_resolver(static_dir, load=False)
    filename = os.path.join(static_dir, "robots.txt")

    os.chmod(filename, 0)
    try:
        if os.access(filename, os.R_OK):
            return  # running as root
        with raises(OSError):
            resolver.resolve("/robots.txt")
    finally:
        os.chmod(filename, 0o644)


def test_serving_from_cache():

    with make_spa_server() as p:
        r1 = p.get("/")
        r2 = p.get("/vite.svg")

    assert not p.out

    assert r1.status == 200
    assert r1.body == INDEX_HTML
    assert r1.headers["content-type"] == "text/html; charset=utf-8"
    assert r1.headers["content-length"] == str(len(INDEX_HTML))

    assert r2.status == 200
    assert r2.body == VITE_SVG
    assert r2.headers["content-type"] == "image/svg+xml"


def test_validators():

    with make_spa_server() as p:
        r1 = p.get("/vite.svg")
        r2 = p.get("/assets/index-4f2a9c.js")
        r3 = p.get("/some/client/route")

    for r, size in ((r1, len(VITE_SVG)), (r2, len(APP_JS)), (r3, len(INDEX_HTML))):
        assert r.status == 200
        assert r.headers["etag"] == make_etag(MTIME, size)
        assert re.match(r'^"[0-9a-f]+-[0-9a-f]+"$', r.headers["etag"])
        assert r.headers["last-modified"] == format_http_date(MTIME)
        assert r.headers["last-modified"].endswith(" GMT")

    assert r1.headers["etag"] == '"6553f100-%x"' % len(VITE_SVG)

    # The fallback reports the validators of the shell itself
    assert r3.body == INDEX_HTML
    assert r3.headers["content-type"] == "text/html; charset=utf-8"


def test_etag_304():

    with make_spa_server() as p:
        for path in ("/", "/vite.svg", "/assets/index-4f2a9c.js", "/client/route"):
            r1 = p.get(path)
            r2 = p.get(path, headers={"if-none-match": r1.headers["etag"]})
            r3 = p.get(path, headers={"if-none-match": "invalid-etag"})

            assert r1.status == 200 and len(r1.body) > 0

            assert r2.status == 304
            assert r2.body == b""
            assert r2.headers["etag"] == r1.headers["etag"]
            assert r2.headers["last-modified"] == r1.headers["last-modified"]
            assert "content-type" not in r2.headers
            assert "content-length" not in r2.headers

            assert r3.status == 200
            assert r3.body == r1.body

    assert not p.out


def test_if_modified_since():

    with make_spa_server() as p:
        for path in ("/", "/vite.svg", "/robots.txt", "/client/route"):
            r1 = p.get(path)
            last_modified = r1.headers["last-modified"]

            r2 = p.get(path, headers={"if-modified-since": last_modified})
            r3 = p.get(
                path, headers={"if-modified-since": format_http_date(MTIME + 86400)}
            )
            r4 = p.get(
                path, headers={"if-modified-since": format_http_date(MTIME - 86400)}
            )
            r5 = p.get(path, headers={"if-modified-since": "not a date"})

            assert r2.status == 304 and r2.body == b""
            assert r3.status == 304 and r3.body == b""
            assert r4.status == 200 and r4.body == r1.body and len(r4.body) > 0
            assert r5.status == 200 and r5.body == r1.body

    assert not p.out


def test_idempotent_etags():

    with make_spa_server() as p:
        etags1 = [p.get(path).headers["etag"] for path in ("/", "/robots.txt", "/x")]
        etags2 = [p.get(path).headers["etag"] for path in ("/", "/robots.txt", "/x")]

    assert etags1 == etags2


def test_not_found():
    static_dir = make_static_dir({"robots.txt": b"x"})

    with make_spa_server(static_dir) as p:
        r1 = p.get("/")
        r2 = p.get("/some/client/route")
        r3 = p.get("/robots.txt")

    assert not p.out

    for r in (r1, r2):
        assert r.status == 404
        assert r.body == b"404 page not found\n"
        assert r.headers["content-type"] == "text/plain; charset=utf-8"
        assert "etag" not in r.headers
        assert "last-modified" not in r.headers

    assert r3.status == 200


def test_head_not_found():
    static_dir = make_static_dir({"robots.txt": b"x"})

    with make_spa_server(static_dir) as p:
        r = p.head("/some/client/route")

    assert r.status == 404
    assert r.body == b""
    assert r.headers["content-length"] == str(len(b"404 page not found\n"))
    assert r.headers["content-type"] == "text/plain; charset=utf-8"


def test_non_utf8_conditional_header_is_ignored():
    app = make_app(Config(static_dir=make_static_dir()))
    scope = {
        "type": "http",
        "method": "GET",
        "scheme": "http",
        "path": "/",
        "root_path": "",
        "query_string": b"",
        "headers": [
            (b"host", b"localhost"),
            (b"if-modified-since", b"Mon, 01 Jan 2024 \xff"),
            (b"if-none-match", b"\xfe\xff"),
        ],
    }
    sent = []

    async def receive():
        return {"type": "http.request", "body": b"", "more_body": False}

    async def send(m):
        sent.append(m)

    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(app(scope, receive, send))
    finally:
        loop.close()

    assert sent[0]["status"] == 200
    assert b"".join(m["body"] for m in sent[1:]) == INDEX_HTML


def test_head_requests():

    with make_spa_server() as p:
        r1 = p.head("/")
        r2 = p.head("/assets/index-4f2a9c.js", headers={"accept-encoding": "gzip"})

    assert r1.status == 200
    assert r1.body == b""
    assert r1.headers["content-length"] == str(len(INDEX_HTML))
    assert r1.headers["etag"]

    assert r2.status == 200
    assert r2.body == b""
    assert r2.headers["content-length"] == str(len(APP_JS))
    assert "content-encoding" not in r2.headers


def test_other_methods_are_served_like_get():

    with make_spa_server() as p:
        r = p.post("/", data=b"ignored")

    assert r.status == 200
    assert r.body == INDEX_HTML


if __name__ == "__main__":
    from common import run_tests

    run_tests(globals())
