"""
Common utilities used in our test scripts.
"""

import os
import logging
import tempfile

from spaserve import Config, make_app
from spaserve.testutils import MockTestServer


# A modification time with a fractional part, to exercise the date tolerance
MTIME = 1700000000.75

INDEX_HTML = (
    b"<!doctype html><html><head><title>Vite + React</title></head>"
    b'<body><div id="root"></div><script src="/assets/index-4f2a9c.js"></script>'
    b"</body></html>"
)
CUSTOM_HTML = b"<html><body>Custom HTML</body></html>"
VITE_SVG = b'<svg xmlns="http://www.w3.org/2000/svg"></svg>'
APP_JS = b"console.log('hello from the app');\n" * 200
ROBOTS_TXT = b"User-agent: *\nDisallow:\n"
BIG_TXT = b"a" * 2000

DEFAULT_FILES = {
    "index.html": INDEX_HTML,
    "custom.html": CUSTOM_HTML,
    "vite.svg": VITE_SVG,
    "assets/index-4f2a9c.js": APP_JS,
    "assets/logo": b"\x89PNG\r\n\x1a\n\x00\x00",
    "robots.txt": ROBOTS_TXT,
    "big.txt": BIG_TXT,
}


def run_tests(scope):
    for func in list(scope.values()):
        if callable(func) and func.__name__.startswith("test_"):
            print(f"Running {func.__name__} ...")
            func()
    print("Done")


def filter_lines(lines):
    # Overloadable line filter
    skip = ("[INFO ", "[DEBUG ")
    return [line for line in lines if line and not line.startswith(skip)]


def make_static_dir(files=None, mtime=MTIME):
    """ Create a temporary static dir containing the given files (a dict
    mapping relative paths to bytes), all with the same modification time.
    """
    dirname = tempfile.mkdtemp(prefix="spaserve_test_")
    files = DEFAULT_FILES if files is None else files
    for relpath, content in files.items():
        write_file(dirname, relpath, content, mtime)
    return dirname


def write_file(dirname, relpath, content, mtime=MTIME):
    filename = os.path.join(dirname, *relpath.split("/"))
    os.makedirs(os.path.dirname(filename), exist_ok=True)
    with open(filename, "wb") as f:
        f.write(content)
    os.utime(filename, (mtime, mtime))
    return filename


def make_server(app):
    server = MockTestServer(app)
    server.filter_lines = filter_lines
    return server


def make_spa_server(static_dir=None, **kwargs):
    """ Create a mock server for a spaserve app. Keyword arguments are
    passed to Config.
    """
    if static_dir is None:
        static_dir = make_static_dir()
    return make_server(make_app(Config(static_dir=static_dir, **kwargs)))


class LogCapturer(logging.Handler):
    def __init__(self):
        super().__init__()
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())

    def __enter__(self):
        logger = logging.getLogger("spaserve")
        logger.addHandler(self)
        return self

    def __exit__(self, *args, **kwargs):
        logger = logging.getLogger("spaserve")
        logger.removeHandler(self)
