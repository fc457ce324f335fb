"""
Command line interface to serve a SPA build directory:

    python -m spaserve [--config FILE] [--server uvicorn] [--host 0.0.0.0]

The static directory, fallback file and port come from the environment
(``STATIC_DIR``, ``SPA_FALLBACK_FILE``, ``PORT``, ``CSP_HEADER``,
``HSTS_MAX_AGE``, ``SECURITY_HEADERS``) and the config file.
"""

import sys
import argparse

from ._logging import logger, set_log_level
from ._config import ConfigError, load_config
from ._app import make_app
from ._run import run


def main(argv=None):
    """ Load the config, create the app and run it. Returns the exit code.
    """
    parser = argparse.ArgumentParser(
        prog="spaserve", description="Serve the build output of a single-page app."
    )
    parser.add_argument("--config", default=None, help="path to a JSON config file")
    parser.add_argument("--server", default="uvicorn", help="uvicorn or hypercorn")
    parser.add_argument("--host", default="0.0.0.0", help="the host to bind to")
    parser.add_argument("--log-level", default="info", help="e.g. debug or warning")
    args = parser.parse_args(argv)

    set_log_level(args.log_level)

    try:
        config = load_config(args.config)
    except ConfigError as err:
        logger.error(f"Error loading configuration: {err}")
        return 1

    logger.info(f"Using static directory: {config.static_dir}")
    logger.info(f"Using SPA fallback file: {config.spa_fallback_file}")

    app = make_app(config)

    bind = f"{args.host}:{config.port}"
    logger.info(f"Listening on {bind} ...")
    run(app, args.server, bind)
    return 0


def cli():
    sys.exit(main())


if __name__ == "__main__":
    cli()
