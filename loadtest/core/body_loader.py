"""Request body loading utilities."""

import logging
from pathlib import Path
from typing import Union

import aiofiles

logger = logging.getLogger(__name__)


async def load_body(path: Union[str, Path]) -> bytes:
    """
    Read a request body from a file.

    Args:
        path: File whose contents are sent as the body

    Returns:
        The file contents as bytes

    Raises:
        FileNotFoundError: If the file does not exist
    """
    body_path = Path(path)
    if not body_path.is_file():
        raise FileNotFoundError(f"Body file not found: {body_path}")

    async with aiofiles.open(body_path, "rb") as f:
        content = await f.read()

    logger.debug(f"Loaded {len(content)} bytes of body from {body_path.name}")
    return content
