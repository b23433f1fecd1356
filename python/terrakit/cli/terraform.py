#!/usr/bin/env python3
"""
terrakit/cli/terraform.py

CLI offering four subcommands that run terraform and print the decoded result
as JSON:

  1) "version": terraform and provider versions.
  2) "schema": provider schemas of the working directory ('init' first).
  3) "state": the current state, or null if nothing was applied.
  4) "plan": plan a JSON configuration file ('init' first).

Terraform's own human-readable output is shown only if a command fails, so
stdout carries nothing but the JSON document.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

import aiofiles
from pydantic import BaseModel

from terrakit.errors import TerraformError
from terrakit.models.settings import DEFAULT_TERRAFORM_VERSION, TerraformSettings
from terrakit.utils.async_command_runner import OutputPolicy
from terrakit.utils.terraform.client import Terraform


def _settings(args: argparse.Namespace) -> TerraformSettings:
    return TerraformSettings(
        version=args.terraform_version,
        executable=args.executable,
        working_directory=args.working_directory,
        cache_dir=args.cache_dir,
        stdout_policy=OutputPolicy.PASSTHROUGH_ON_FAILURE,
        stderr_policy=OutputPolicy.PASSTHROUGH_ON_FAILURE,
        sensitive=not args.verbose,
    )


def _print_document(document: Optional[BaseModel]) -> None:
    data: Any = None if document is None else document.model_dump(mode="json")
    print(json.dumps(data, indent=2))


async def _load_configuration(path: str) -> Dict[str, Any]:
    async with aiofiles.open(path, "r") as f:
        data = json.loads(await f.read())
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a JSON object.")
    return data


async def _run_version(args: argparse.Namespace) -> None:
    """Handle the 'version' subcommand."""
    async with await Terraform.create(settings=_settings(args)) as tf:
        _print_document(await tf.version())


async def _run_schema(args: argparse.Namespace) -> None:
    """Handle the 'schema' subcommand."""
    async with await Terraform.create(settings=_settings(args)) as tf:
        await tf.initialize()
        _print_document(await tf.schema())


async def _run_state(args: argparse.Namespace) -> None:
    """Handle the 'state' subcommand."""
    async with await Terraform.create(settings=_settings(args)) as tf:
        _print_document(await tf.show_state())


async def _run_plan(args: argparse.Namespace) -> None:
    """Handle the 'plan' subcommand."""
    try:
        configuration = await _load_configuration(args.config)
    except (OSError, ValueError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        sys.exit(1)

    async with await Terraform.create(configuration, _settings(args)) as tf:
        await tf.initialize()
        _print_document(await tf.plan())


async def _dispatch(args: argparse.Namespace) -> None:
    try:
        await args.func(args)
    except TerraformError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point for running terraform and printing decoded documents."""
    parser = argparse.ArgumentParser(
        prog="terrakit.cli.terraform",
        description="Run terraform and print its decoded JSON documents.",
    )
    parser.add_argument(
        "--executable",
        default=None,
        help="Path of a terraform binary (default: download --terraform-version).",
    )
    parser.add_argument(
        "--terraform-version",
        default=DEFAULT_TERRAFORM_VERSION,
        help=f"Release to download if no executable is given (default: {DEFAULT_TERRAFORM_VERSION}).",
    )
    parser.add_argument(
        "--working-directory",
        default=None,
        help="Directory to run terraform in (default: a temporary directory).",
    )
    parser.add_argument(
        "--cache-dir",
        default=None,
        help="Where downloaded binaries are cached (default: the user cache directory).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Log each command and include command details in errors.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    version_parser = subparsers.add_parser(
        "version", help="Print terraform and provider versions."
    )
    version_parser.set_defaults(func=_run_version)

    schema_parser = subparsers.add_parser(
        "schema", help="Print the provider schemas of the working directory."
    )
    schema_parser.set_defaults(func=_run_schema)

    state_parser = subparsers.add_parser(
        "state", help="Print the current state of the working directory."
    )
    state_parser.set_defaults(func=_run_state)

    plan_parser = subparsers.add_parser(
        "plan", help="Plan a terraform JSON configuration and print the plan."
    )
    plan_parser.add_argument(
        "--config",
        required=True,
        help="Path of a terraform JSON configuration (written as main.tf.json).",
    )
    plan_parser.set_defaults(func=_run_plan)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(_dispatch(args))


if __name__ == "__main__":
    main()
