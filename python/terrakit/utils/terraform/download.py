"""
terrakit/utils/terraform/download.py

Fetches terraform release archives and caches the extracted binary.

The binary for a given version is cached at

    <cache dir>/terraform_<version>_<os>_<arch>[.exe]

so several versions and platforms can live side by side. A cached binary is
reused without touching the network.
"""

from __future__ import annotations

import asyncio
import io
import logging
import os
import platform
import sys
import tempfile
import zipfile
from typing import Optional

import aiofiles
import aiohttp

from terrakit.errors import DownloadError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://releases.hashicorp.com/terraform"
DEFAULT_TIMEOUT = 300.0

_OS_NAMES = {"linux": "linux", "darwin": "darwin", "win32": "windows"}
_ARCH_NAMES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv7l": "arm",
    "armv6l": "arm",
}


def platform_triple() -> str:
    """Return the release platform name of this host, e.g. "linux_amd64".

    Raises:
        DownloadError: If terraform publishes no build for this OS or CPU.
    """
    os_name = _OS_NAMES.get(sys.platform)
    if sys.platform.startswith("linux"):
        os_name = "linux"
    arch = _ARCH_NAMES.get(platform.machine().lower())
    if os_name is None or arch is None:
        raise DownloadError(
            f"Unsupported platform: {sys.platform}/{platform.machine()}"
        )
    return f"{os_name}_{arch}"


def cache_directory() -> str:
    """Return the per-user cache directory for downloaded binaries."""
    if sys.platform == "darwin":
        return os.path.expanduser("~/Library/Caches/terrakit")
    if sys.platform == "win32":
        base = os.environ.get("LOCALAPPDATA") or os.path.expanduser("~\\AppData\\Local")
        return os.path.join(base, "terrakit")
    base = os.environ.get("XDG_CACHE_HOME") or os.path.expanduser("~/.cache")
    return os.path.join(base, "terrakit")


def binary_path(version: str, triple: str, cache_dir: str) -> str:
    """Return where the binary for `version` on `triple` is cached."""
    name = f"terraform_{version}_{triple}"
    if triple.startswith("windows_"):
        name += ".exe"
    return os.path.join(cache_dir, name)


def archive_url(version: str, triple: str, base_url: str = DEFAULT_BASE_URL) -> str:
    return f"{base_url.rstrip('/')}/{version}/terraform_{version}_{triple}.zip"


def _extract_binary(archive: bytes) -> bytes:
    """Return the terraform executable from a release archive."""
    try:
        with zipfile.ZipFile(io.BytesIO(archive)) as zf:
            for member in ("terraform", "terraform.exe"):
                if member in zf.namelist():
                    return zf.read(member)
    except zipfile.BadZipFile as exc:
        raise DownloadError(f"Release archive is not a valid zip file: {exc}") from exc
    raise DownloadError("Release archive does not contain a terraform binary.")


async def _fetch(url: str, timeout: float) -> bytes:
    try:
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=timeout)
        ) as session:
            async with session.get(url) as resp:
                if resp.status != 200:
                    raise DownloadError(f"Download of {url} failed: HTTP {resp.status}")
                return await resp.read()
    except asyncio.TimeoutError as exc:
        raise DownloadError(f"Download of {url} timed out after {timeout}s") from exc
    except aiohttp.ClientError as exc:
        raise DownloadError(f"Download of {url} failed: {exc}") from exc


async def _install(data: bytes, destination: str) -> None:
    """Write `data` next to `destination`, make it executable, then move it into place."""
    directory = os.path.dirname(destination)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".terraform-")
    os.close(fd)
    try:
        async with aiofiles.open(tmp_path, "wb") as f:
            await f.write(data)
        os.chmod(tmp_path, 0o755)
        os.replace(tmp_path, destination)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


async def download_if_needed(
    version: str,
    *,
    cache_dir: Optional[str] = None,
    base_url: str = DEFAULT_BASE_URL,
    timeout: float = DEFAULT_TIMEOUT,
) -> str:
    """
    Return the path of a cached terraform binary, downloading it first if absent.

    Args:
        version (str): Release number, e.g. "0.13.2".
        cache_dir (Optional[str]): Cache location; cache_directory() when None.
        base_url (str): Root URL of the release archives.
        timeout (float): Seconds allowed for the whole archive fetch.

    Returns:
        str: Absolute path of the executable.

    Raises:
        DownloadError: If the platform is unsupported, the archive cannot be
            fetched in time or unpacked, or the binary cannot be written to the cache.
    """
    triple = platform_triple()
    cache_dir = cache_dir or cache_directory()
    destination = os.path.abspath(binary_path(version, triple, cache_dir))

    if os.path.isfile(destination):
        logger.debug("Using cached terraform %s at %s", version, destination)
        return destination

    url = archive_url(version, triple, base_url)
    logger.info("Downloading terraform %s from %s", version, url)
    archive = await _fetch(url, timeout)
    binary = _extract_binary(archive)

    try:
        os.makedirs(cache_dir, exist_ok=True)
        await _install(binary, destination)
    except OSError as exc:
        raise DownloadError(f"Could not write {destination}: {exc}") from exc

    logger.info("Installed terraform %s at %s", version, destination)
    return destination
