"""
This module provides compatibility for different async libs. Currently
only supporting asyncio.
"""

import asyncio


async def run_in_thread(func, *args):
    """ Call a blocking function in a worker thread and return its result,
    so that the event loop can keep serving other requests meanwhile.
    """

    if True:  # if asyncio
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)
