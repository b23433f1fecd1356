"""
terrakit/utils/terraform/client.py

The Terraform client: one terraform binary bound to one working directory.

Each operation builds the argument vector for a subcommand, runs it through
run_command in the working directory, and decodes the JSON it prints (if
any) into the document models.

Usage example:
    async with await Terraform.create(configuration={"resource": {...}}) as tf:
        await tf.initialize()
        plan = await tf.plan()
        await tf.apply(plan)
        state = await tf.show_state()
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from types import TracebackType
from typing import Any, Dict, Mapping, Optional, Type, Union

import aiofiles
from pydantic import BaseModel

from terrakit.errors import DecodeError, DecodeErrorKind, WorkingDirectoryError
from terrakit.models.plan import Plan
from terrakit.models.schema import SchemaDescription
from terrakit.models.settings import TerraformSettings
from terrakit.models.state import State
from terrakit.models.validator import decode_plan, decode_schema, decode_state
from terrakit.models.version import VersionDescription
from terrakit.utils.async_command_runner import CommandResult, OutputPolicy, run_command
from terrakit.utils.ephemeral_file import ephemeral_manager
from terrakit.utils.spawn_compat import resolve_executable
from terrakit.utils.terraform.commands import make_command, parse_version_output
from terrakit.utils.terraform.download import download_if_needed

logger = logging.getLogger(__name__)

CONFIGURATION_FILE = "main.tf.json"
PLAN_FILE = "terraform.tfplan"

ConfigurationInput = Union[Mapping[str, Any], BaseModel]


def _resolve_executable(executable: str) -> str:
    if os.sep not in executable and "/" not in executable:
        found = shutil.which(executable)
        if found is not None:
            return os.path.abspath(found)
    return os.path.abspath(executable)


def _render_configuration(configuration: ConfigurationInput) -> str:
    if isinstance(configuration, BaseModel):
        data: Any = configuration.model_dump(mode="json", exclude_none=True)
    else:
        data = dict(configuration)
    return json.dumps(data, indent=2, sort_keys=True)


class Terraform:
    """Runs terraform subcommands in a working directory.

    A client is not safe for concurrent use: terraform keeps lock and plugin
    state in the working directory, so callers must await one operation before
    starting the next.
    """

    def __init__(
        self,
        executable: str,
        working_directory: str,
        *,
        owns_working_directory: bool = False,
        settings: Optional[TerraformSettings] = None,
    ) -> None:
        """
        Bind a client to an executable and an existing working directory.

        Most callers want `Terraform.create`, which also fetches the binary
        and prepares the directory.

        Args:
            executable (str): Path of the terraform binary.
            working_directory (str): Directory every command runs in.
            owns_working_directory (bool): If True, `cleanup` removes the directory.
            settings (Optional[TerraformSettings]): Output policies and flags.
        """
        self._executable = _resolve_executable(executable)
        self._working_directory = os.path.abspath(working_directory)
        self._owns_working_directory = owns_working_directory
        self._settings = settings or TerraformSettings()
        self._cleaned_up = False

    @classmethod
    async def create(
        cls,
        configuration: Optional[ConfigurationInput] = None,
        settings: Optional[TerraformSettings] = None,
    ) -> Terraform:
        """
        Build a ready-to-use client.

        The executable is `settings.executable` if set, otherwise the release
        named by `settings.version`, downloaded on first use. The working
        directory is `settings.working_directory` if set (created if missing),
        otherwise a fresh temporary directory owned by the client.

        Args:
            configuration (Optional[ConfigurationInput]): A terraform JSON
                configuration. When given it is written to main.tf.json in the
                working directory.
            settings (Optional[TerraformSettings]): Client settings.

        Returns:
            Terraform: The client.

        Raises:
            ProcessError: If the configured executable is missing, not a regular
                file, or not executable.
            DownloadError: If the binary must be fetched and that fails.
            WorkingDirectoryError: If the directory or configuration file cannot be written.
        """
        settings = settings or TerraformSettings()

        if settings.executable:
            executable = resolve_executable(settings.executable)
        else:
            executable = await download_if_needed(
                settings.version,
                cache_dir=settings.cache_dir,
                base_url=settings.download_base_url,
            )

        try:
            if settings.working_directory:
                os.makedirs(settings.working_directory, exist_ok=True)
                working_directory = settings.working_directory
                owned = False
            else:
                working_directory = tempfile.mkdtemp(prefix="terrakit-")
                owned = True
        except OSError as exc:
            raise WorkingDirectoryError(
                f"Could not create working directory: {exc}"
            ) from exc

        client = cls(
            executable,
            working_directory,
            owns_working_directory=owned,
            settings=settings,
        )
        if configuration is not None:
            await client.write_configuration(configuration)
        logger.debug(
            "Terraform client ready: executable=%s, working_directory=%s",
            client.executable,
            client.working_directory,
        )
        return client

    async def __aenter__(self) -> Terraform:
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        if self._owns_working_directory:
            self.cleanup()

    @property
    def executable(self) -> str:
        return self._executable

    @property
    def working_directory(self) -> str:
        return self._working_directory

    @property
    def settings(self) -> TerraformSettings:
        return self._settings

    async def write_configuration(self, configuration: ConfigurationInput) -> str:
        """Write `configuration` as main.tf.json in the working directory.

        Returns:
            str: Path of the written file.

        Raises:
            WorkingDirectoryError: If the file cannot be written.
        """
        path = os.path.join(self._working_directory, CONFIGURATION_FILE)
        try:
            async with aiofiles.open(path, "w") as f:
                await f.write(_render_configuration(configuration))
        except OSError as exc:
            raise WorkingDirectoryError(f"Could not write {path}: {exc}") from exc
        return path

    def cleanup(self) -> None:
        """Remove the client-owned temporary working directory.

        Calling it again after a successful cleanup does nothing.

        Raises:
            ValueError: If the working directory was supplied by the caller.
            WorkingDirectoryError: If the directory cannot be removed.
        """
        if not self._owns_working_directory:
            raise ValueError(
                "cleanup is only allowed for a temporary working directory created by the client."
            )
        if self._cleaned_up:
            return
        try:
            shutil.rmtree(self._working_directory)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise WorkingDirectoryError(
                f"Could not remove {self._working_directory}: {exc}"
            ) from exc
        self._cleaned_up = True

    def _environment(self) -> Dict[str, str]:
        return {self._settings.plugin_cache_env: os.path.dirname(self._executable)}

    async def _run(
        self,
        action: str,
        target: Optional[str] = None,
        *,
        stdout: Optional[OutputPolicy] = None,
        stderr: Optional[OutputPolicy] = None,
    ) -> CommandResult:
        return await run_command(
            make_command(self._executable, action, target),
            env=self._environment(),
            cwd=self._working_directory,
            stdout=stdout or self._settings.stdout_policy,
            stderr=stderr or self._settings.stderr_policy,
            sensitive=self._settings.sensitive,
            use_spawn_shim=self._settings.use_spawn_shim,
        )

    async def initialize(
        self,
        *,
        stdout: Optional[OutputPolicy] = None,
        stderr: Optional[OutputPolicy] = None,
    ) -> None:
        """Run 'terraform init'."""
        await self._run("init", stdout=stdout, stderr=stderr)

    async def plan(
        self,
        *,
        stdout: Optional[OutputPolicy] = None,
        stderr: Optional[OutputPolicy] = None,
    ) -> Plan:
        """Create an execution plan and return it decoded.

        The plan is written to a private temporary file, rendered with
        'terraform show -json', and the file's bytes are attached to the
        result as Plan.raw_source so `apply` can submit exactly this plan.

        Args:
            stdout (Optional[OutputPolicy]): Policy for 'terraform plan' stdout.
            stderr (Optional[OutputPolicy]): Policy for stderr of both commands.

        Returns:
            Plan: The decoded plan carrying its binary artifact.

        Raises:
            ProcessError: If either command fails.
            DecodeError: If the plan JSON does not decode.
        """
        async with ephemeral_manager(PLAN_FILE) as plan_path:
            await self._run("plan", plan_path, stdout=stdout, stderr=stderr)
            result = await self._run(
                "show", plan_path, stdout=OutputPolicy.COLLECT, stderr=stderr
            )
            async with aiofiles.open(plan_path, "rb") as f:
                raw_source = await f.read()

        return decode_plan(result.stdout).with_raw_source(raw_source)

    async def apply(
        self,
        plan: Plan,
        *,
        stdout: Optional[OutputPolicy] = None,
        stderr: Optional[OutputPolicy] = None,
    ) -> None:
        """Apply exactly the changes recorded in `plan`.

        Raises:
            ValueError: If the plan carries no binary artifact (it was not
                produced by `plan`).
            ProcessError: If 'terraform apply' fails.
        """
        if not plan.raw_source:
            raise ValueError("Plan has no raw_source; only plans from Terraform.plan() can be applied.")

        async with ephemeral_manager(PLAN_FILE) as plan_path:
            async with aiofiles.open(plan_path, "wb") as f:
                await f.write(plan.raw_source)
            await self._run("apply", plan_path, stdout=stdout, stderr=stderr)

    async def destroy(
        self,
        *,
        stdout: Optional[OutputPolicy] = None,
        stderr: Optional[OutputPolicy] = None,
    ) -> None:
        """Run 'terraform destroy -auto-approve' on the working directory."""
        await self._run(
            "destroy", self._working_directory, stdout=stdout, stderr=stderr
        )

    async def show_state(
        self, *, stderr: Optional[OutputPolicy] = None
    ) -> Optional[State]:
        """Return the current state, or None if nothing has been applied yet.

        Raises:
            ProcessError: If 'terraform show' fails.
            DecodeError: If the state JSON does not decode.
        """
        result = await self._run("show", stdout=OutputPolicy.COLLECT, stderr=stderr)
        try:
            document = json.loads(result.stdout)
        except ValueError as exc:
            raise DecodeError(str(exc), DecodeErrorKind.MALFORMED) from exc
        if not isinstance(document, dict) or "values" not in document:
            return None
        return decode_state(result.stdout)

    async def schema(
        self, *, stderr: Optional[OutputPolicy] = None
    ) -> SchemaDescription:
        """Return the schemas of the providers used by the configuration."""
        result = await self._run("schema", stdout=OutputPolicy.COLLECT, stderr=stderr)
        return decode_schema(result.stdout)

    async def version(
        self, *, stderr: Optional[OutputPolicy] = None
    ) -> VersionDescription:
        """Return terraform's version and the versions of initialized providers.

        Raises:
            ProcessError: If 'terraform version' fails.
            UnexpectedOutput: If the output has no version line.
        """
        result = await self._run("version", stdout=OutputPolicy.COLLECT, stderr=stderr)
        return parse_version_output(result.stdout.decode(errors="replace"))
