"""
terrakit/utils/terraform/commands.py

Helpers for building Terraform command arrays and for interpreting the
output of the commands that do not speak JSON.

Exports:
    - make_command: argument vector for one terraform subcommand
    - parse_version_output: parse 'terraform version' text
    - get_output_from_state: typed retrieval of a root module output
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Type, TypeVar

from terrakit.errors import UnexpectedOutput
from terrakit.models.state import State
from terrakit.models.validator import validate_type
from terrakit.models.version import VersionDescription

T = TypeVar("T")

_ACTION_ARGS: Dict[str, List[str]] = {
    "init": ["init"],
    "plan": ["plan", "-out"],
    "show": ["show", "-json"],
    "apply": ["apply", "-auto-approve", "-input=false"],
    "destroy": ["destroy", "-auto-approve"],
    "schema": ["providers", "schema", "-json"],
    "version": ["version"],
}


def make_command(executable: str, action: str, target: Optional[str] = None) -> List[str]:
    """Builds the argument vector for a Terraform subcommand.

    Args:
        executable: Path of the terraform binary.
        action: One of "init", "plan", "show", "apply", "destroy", "schema", "version".
        target: Trailing path argument: the plan file for plan/apply, an
            optional plan file for show, the working directory for destroy.

    Returns:
        A list of command tokens, e.g. ["/bin/terraform", "plan", "-out", "/tmp/x/plan"].

    Raises:
        ValueError: If the action is unknown, or plan/apply are missing their target.
    """
    if action not in _ACTION_ARGS:
        raise ValueError(f"Unknown terraform action: {action}")
    if action in ("plan", "apply", "destroy") and not target:
        raise ValueError(f"terraform {action} requires a target path")

    command = [executable, *_ACTION_ARGS[action]]
    if target:
        command.append(target)
    return command


def _strip_leading(token: str) -> str:
    return token[1:] if token else token


def parse_version_output(output: str) -> VersionDescription:
    """Parse the plain-text output of 'terraform version'.

    The first line starting with "Terraform" names the terraform version
    ("Terraform v0.13.2"). Every line starting with "+" names one provider,
    either as "+ provider.random v2.3.0" or "+ provider <source> v2.3.0".
    Other lines are ignored.

    Args:
        output: The command's stdout, decoded as text.

    Returns:
        VersionDescription: terraform's version with one submodule per provider.

    Raises:
        UnexpectedOutput: If no "Terraform" line is present or a line is truncated.
    """
    version: Optional[str] = None
    providers: List[VersionDescription] = []

    for line in output.splitlines():
        fields = line.split()
        if not fields:
            continue
        if fields[0] == "Terraform" and version is None:
            if len(fields) < 2:
                raise UnexpectedOutput(f"Truncated version line: {line!r}", output)
            version = _strip_leading(fields[1])
        elif fields[0] == "+":
            if fields[1:2] == ["provider"] and len(fields) >= 4:
                name, raw_version = fields[2], fields[3]
            elif len(fields) >= 3:
                name, raw_version = fields[1], fields[2]
            else:
                raise UnexpectedOutput(f"Truncated provider line: {line!r}", output)
            if name.startswith("provider."):
                name = name[len("provider.") :]
            providers.append(
                VersionDescription(name=name, version=_strip_leading(raw_version))
            )

    if version is None:
        raise UnexpectedOutput("No terraform version line in output.", output)
    return VersionDescription(name="terraform", version=version, submodules=providers)


def get_output_from_state(state: State, output_name: str, output_type: Type[T]) -> T:
    """Retrieve a typed output from a State object.

    Root module outputs are recorded as {"sensitive": ..., "value": ...}; the
    "value" member is what gets validated. Any other shape is validated as-is.

    Args:
        state (State):
            The parsed Terraform state.
        output_name (str):
            Which output to retrieve by name.
        output_type (Type[T]):
            The Python type to validate/cast the output to.

    Returns:
        The typed output if present.

    Raises:
        KeyError: If the output is missing.
        ValueError: If validation to output_type fails.
    """
    if output_name not in state.values.outputs:
        raise KeyError(f"Output '{output_name}' not found in Terraform state.")
    output_val: Any = state.values.outputs[output_name]
    if isinstance(output_val, dict) and "value" in output_val:
        output_val = output_val["value"]
    return validate_type(output_val, output_type)
