"""
terrakit/models/settings.py

Client configuration for terrakit.utils.terraform.client.Terraform.

Every field can also be set through an environment variable prefixed with
`TERRAKIT_`, e.g. `TERRAKIT_VERSION=1.5.7` or `TERRAKIT_EXECUTABLE=/usr/bin/terraform`.
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from terrakit.utils.async_command_runner import OutputPolicy

DEFAULT_TERRAFORM_VERSION = "0.13.2"


class TerraformSettings(BaseSettings):
    """Settings for locating and running the terraform binary.

    Attributes:
        version: Terraform release to download when no executable is given.
        executable: Path of an existing terraform binary; skips the download.
        working_directory: Directory terraform runs in. A temporary directory
            owned by the client is created when unset.
        cache_dir: Where downloaded binaries are cached. Platform default when unset.
        download_base_url: Root URL of the release archives.
        plugin_cache_env: Environment variable pointed at the binary's directory
            for every invocation.
        stdout_policy: Default stdout handling for commands whose output is not parsed.
        stderr_policy: Default stderr handling for every command.
        use_spawn_shim: Force (True) or forbid (False) the posix_spawn based
            launcher; None selects it on macOS only.
        sensitive: If True, command lines and output are left out of error messages.
    """

    model_config = SettingsConfigDict(env_prefix="TERRAKIT_")

    version: str = DEFAULT_TERRAFORM_VERSION
    executable: Optional[str] = None
    working_directory: Optional[str] = None
    cache_dir: Optional[str] = None
    download_base_url: str = Field(default="https://releases.hashicorp.com/terraform")
    plugin_cache_env: str = "TF_PLUGIN_CACHE_DIR"
    stdout_policy: OutputPolicy = OutputPolicy.PASSTHROUGH
    stderr_policy: OutputPolicy = OutputPolicy.PASSTHROUGH
    use_spawn_shim: Optional[bool] = None
    sensitive: bool = True

    @field_validator("version")
    @classmethod
    def validate_version(cls, value: str) -> str:
        """Check that `version` is a bare release number usable in paths and URLs."""
        if not value or value.startswith("v"):
            raise ValueError("version must be a bare release number such as '0.13.2'.")
        if any(ch in value for ch in ["/", "\\", " ", "\n", "\t"]):
            raise ValueError("Slashes/whitespace not allowed in 'version'.")
        return value
