"""
terrakit/utils/terraform/__init__.py

Provides a convenient import interface for the Terraform submodules:

- client.py for the Terraform client class
- commands.py for argument vectors and version parsing
- download.py for fetching and caching release binaries

Exports:
  - Terraform, the high-level client
  - parse_version_output, get_output_from_state
  - download_if_needed, platform_triple, cache_directory
"""

from terrakit.utils.terraform.client import Terraform
from terrakit.utils.terraform.commands import (
    get_output_from_state,
    make_command,
    parse_version_output,
)
from terrakit.utils.terraform.download import (
    cache_directory,
    download_if_needed,
    platform_triple,
)

__all__ = [
    "Terraform",
    "get_output_from_state",
    "make_command",
    "parse_version_output",
    "cache_directory",
    "download_if_needed",
    "platform_triple",
]
