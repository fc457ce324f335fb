"""
Logging for spaserve. All modules write to the "spaserve" logger, which
prints to stderr unless the handler is replaced.
"""

import sys
import logging


logger = logging.getLogger("spaserve")
logger.propagate = False
logger.setLevel(logging.INFO)

_handler = logging.StreamHandler(sys.stderr)
_handler.setFormatter(
    logging.Formatter(
        fmt="[%(levelname)s %(asctime)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )
)
logger.addHandler(_handler)


def set_log_level(level):
    """ Set the level of the spaserve logger. Accepts an int or a level
    name like "debug" or "warning".
    """
    if isinstance(level, str):
        level = level.upper()
    logger.setLevel(level)
