"""
terrakit/utils/ephemeral_file.py

Provides an async context manager for an ephemeral file: a fresh private
directory is created, a path inside it is yielded, and the directory with
whatever was written into it is removed on exit.

The file itself is not created; the caller (or a child process such as
'terraform plan -out') writes it.
"""

import os
import tempfile
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional


@asynccontextmanager
async def ephemeral_manager(
    file_name: str,
    *,
    prefix: str = "terrakit-",
    parent_dir: Optional[str] = None,
) -> AsyncGenerator[str, None]:
    """
    Yield a path for one ephemeral file and remove it afterwards.

    Args:
        file_name: Name of the file inside the ephemeral directory.
        prefix: Prefix for the ephemeral directory name.
        parent_dir: Where the ephemeral directory is created; the system
            temporary directory when None.

    Yields:
        str: Absolute path of the (not yet existing) ephemeral file.

    Raises:
        ValueError: If `file_name` is empty or contains a path separator.
    """
    if not file_name or os.sep in file_name or "/" in file_name:
        raise ValueError(f"Invalid ephemeral file name: {file_name!r}")

    ephemeral_dir = tempfile.mkdtemp(
        dir=parent_dir or tempfile.gettempdir(), prefix=prefix
    )

    try:
        yield os.path.join(ephemeral_dir, file_name)
    finally:
        if os.path.isdir(ephemeral_dir):
            for item in os.listdir(ephemeral_dir):
                item_path = os.path.join(ephemeral_dir, item)
                if os.path.isfile(item_path) or os.path.islink(item_path):
                    os.remove(item_path)
            os.rmdir(ephemeral_dir)
