"""
terrakit/tests/test_ephemeral_file.py
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest

from terrakit.utils.ephemeral_file import ephemeral_manager


def test_ephemeral_file_is_removed(tmp_path: Path) -> None:
    async def run() -> str:
        async with ephemeral_manager("plan.tfplan", parent_dir=str(tmp_path)) as path:
            assert os.path.dirname(os.path.dirname(path)) == str(tmp_path)
            assert not os.path.exists(path)
            with open(path, "wb") as f:
                f.write(b"data")
        return path

    path = asyncio.run(run())
    assert not os.path.exists(path)
    assert list(tmp_path.iterdir()) == []


def test_ephemeral_file_removed_on_error(tmp_path: Path) -> None:
    async def run() -> None:
        async with ephemeral_manager("x", parent_dir=str(tmp_path)) as path:
            Path(path).write_text("partial")
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        asyncio.run(run())
    assert list(tmp_path.iterdir()) == []


@pytest.mark.parametrize("name", ["", "a/b"])
def test_ephemeral_file_rejects_bad_names(name: str) -> None:
    async def run() -> None:
        async with ephemeral_manager(name):
            pass

    with pytest.raises(ValueError):
        asyncio.run(run())
