"""File utility functions for resolving content age.

This module provides the last-modified-time lookup used by the temporal
decay stage when a result carries no explicit date.
"""

import asyncio
import logging
import math
import os
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


def read_modified_time(file_path: Union[str, Path]) -> Optional[float]:
    """Read a file's last-modified time.

    Args:
        file_path: Absolute path to the file

    Returns:
        Modification time in POSIX seconds, or None if the file is missing,
        inaccessible, or reports a non-finite time
    """
    try:
        mtime = os.stat(file_path).st_mtime
    except (OSError, ValueError) as e:
        logger.debug("Could not stat %s: %s", file_path, e)
        return None

    if not math.isfinite(mtime):
        logger.debug("Non-finite mtime for %s", file_path)
        return None
    return mtime


async def get_modified_time(file_path: Union[str, Path]) -> Optional[float]:
    """Async variant of ``read_modified_time``.

    The ``stat`` call runs in a worker thread so concurrent lookups do
    not block the event loop.
    """
    return await asyncio.to_thread(read_modified_time, file_path)
