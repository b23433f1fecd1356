"""
terrakit/tests/test_terraform_client.py

The Terraform client driven against the fake terraform program from conftest.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

import pytest
from pydantic import BaseModel

from terrakit.errors import ProcessError, UnexpectedOutput
from terrakit.models.plan import Plan
from terrakit.models.settings import TerraformSettings
from terrakit.utils.async_command_runner import OutputPolicy
from terrakit.utils.terraform.client import Terraform
from terrakit.utils.terraform.commands import make_command, parse_version_output

if TYPE_CHECKING:
    from conftest import FakeTerraform

PLAN_MAGIC = b"FAKEPLAN\x00\x01"


class _Output(BaseModel):
    value: str


class _Config(BaseModel):
    output: Dict[str, _Output]


def _settings(
    fake: FakeTerraform, work_dir: Optional[Path] = None, **kwargs: Any
) -> TerraformSettings:
    return TerraformSettings(
        executable=str(fake.path),
        working_directory=str(work_dir) if work_dir else None,
        stdout_policy=OutputPolicy.DISCARD,
        stderr_policy=OutputPolicy.PASSTHROUGH_ON_FAILURE,
        **kwargs,
    )


def test_parse_version_output() -> None:
    description = parse_version_output("Terraform v0.13.2\n+ provider.random v2.3.0\n")

    assert description.name == "terraform"
    assert description.version == "0.13.2"
    assert len(description.submodules) == 1
    assert description.submodules[0].name == "random"
    assert description.submodules[0].version == "2.3.0"
    assert description.submodule("random").version == "2.3.0"


def test_parse_version_output_registry_layout() -> None:
    output = (
        "Terraform v1.5.7\n"
        "on linux_amd64\n"
        "+ provider registry.terraform.io/hashicorp/random v3.5.1\n"
        "+ provider registry.terraform.io/hashicorp/null v3.2.1\n"
        "\n"
        "Your version of Terraform is out of date!\n"
    )
    description = parse_version_output(output)

    assert description.version == "1.5.7"
    assert [(s.name, s.version) for s in description.submodules] == [
        ("registry.terraform.io/hashicorp/random", "3.5.1"),
        ("registry.terraform.io/hashicorp/null", "3.2.1"),
    ]


def test_parse_version_output_without_providers() -> None:
    description = parse_version_output("Terraform v0.12.29\n")
    assert description.version == "0.12.29"
    assert description.submodules == []


def test_parse_version_output_requires_version_line() -> None:
    with pytest.raises(UnexpectedOutput) as info:
        parse_version_output("+ provider.random v2.3.0\n")
    assert "provider.random" in info.value.output


def test_make_command() -> None:
    assert make_command("tf", "plan", "/tmp/p") == ["tf", "plan", "-out", "/tmp/p"]
    assert make_command("tf", "show") == ["tf", "show", "-json"]
    assert make_command("tf", "apply", "/tmp/p") == [
        "tf",
        "apply",
        "-auto-approve",
        "-input=false",
        "/tmp/p",
    ]
    assert make_command("tf", "schema") == ["tf", "providers", "schema", "-json"]
    with pytest.raises(ValueError):
        make_command("tf", "apply")
    with pytest.raises(ValueError):
        make_command("tf", "import")


def test_version(fake_terraform: FakeTerraform, work_dir: Path) -> None:
    async def run():
        tf = await Terraform.create(settings=_settings(fake_terraform, work_dir))
        return await tf.version()

    description = asyncio.run(run())

    assert description.version == "0.13.2"
    assert description.submodule("random").version == "2.3.0"
    call = fake_terraform.calls[-1]
    assert call["args"] == ["version"]
    assert os.path.realpath(call["cwd"]) == os.path.realpath(work_dir)
    assert call["plugin_cache"] == str(fake_terraform.path.parent)


def test_version_without_version_line(
    fake_terraform: FakeTerraform, work_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("FAKE_TF_VERSION", "garbage\n")

    async def run():
        tf = await Terraform.create(settings=_settings(fake_terraform, work_dir))
        return await tf.version()

    with pytest.raises(UnexpectedOutput):
        asyncio.run(run())


def test_plan_apply_show_destroy(fake_terraform: FakeTerraform, work_dir: Path) -> None:
    async def run():
        tf = await Terraform.create(settings=_settings(fake_terraform, work_dir))
        await tf.initialize()
        assert await tf.show_state() is None
        plan = await tf.plan()
        await tf.apply(plan)
        state = await tf.show_state()
        await tf.destroy()
        return plan, state

    plan, state = asyncio.run(run())

    assert plan.planned_values.root_module is not None
    assert plan.planned_values.root_module.count_resources() == 3
    assert plan.raw_source == PLAN_MAGIC + b"demo_plan.json"
    assert (work_dir / "applied.tfplan").exists() is False
    assert state is not None
    assert state.values.root_module is not None
    assert state.values.root_module.count_resources() == 3

    actions = [call["args"][0] for call in fake_terraform.calls]
    assert actions == ["init", "show", "plan", "show", "apply", "show", "destroy"]
    apply_call = fake_terraform.calls[4]
    assert apply_call["args"][1:3] == ["-auto-approve", "-input=false"]
    destroy_call = fake_terraform.calls[6]
    assert destroy_call["args"][1] == "-auto-approve"
    assert os.path.realpath(destroy_call["args"][2]) == os.path.realpath(work_dir)


def test_apply_submits_exact_plan_bytes(
    fake_terraform: FakeTerraform, work_dir: Path
) -> None:
    async def run():
        tf = await Terraform.create(settings=_settings(fake_terraform, work_dir))
        plan = await tf.plan()
        await tf.apply(plan)
        return plan

    plan = asyncio.run(run())

    assert (work_dir / "applied.tfplan").read_bytes() == plan.raw_source
    plan_file = fake_terraform.calls[0]["args"][2]
    assert not os.path.exists(plan_file)


def test_apply_requires_raw_source(fake_terraform: FakeTerraform, work_dir: Path) -> None:
    plan = Plan.model_validate(
        {"planned_values": {}, "configuration": {"root_module": {}}}
    )

    async def run():
        tf = await Terraform.create(settings=_settings(fake_terraform, work_dir))
        await tf.apply(plan)

    with pytest.raises(ValueError):
        asyncio.run(run())
    assert fake_terraform.calls == []


def test_plan_without_output_changes(
    fake_terraform: FakeTerraform, work_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("FAKE_TF_PLAN", "empty_plan.json")

    async def run():
        tf = await Terraform.create(settings=_settings(fake_terraform, work_dir))
        return await tf.plan()

    plan = asyncio.run(run())
    assert plan.output_changes == {}
    assert plan.resource_changes == []


def test_schema(fake_terraform: FakeTerraform, work_dir: Path) -> None:
    async def run():
        tf = await Terraform.create(settings=_settings(fake_terraform, work_dir))
        return await tf.schema()

    schema = asyncio.run(run())
    assert "registry.terraform.io/hashicorp/random" in schema.provider_schemas
    assert fake_terraform.calls[-1]["args"] == ["providers", "schema", "-json"]


def test_failed_command_raises_process_error(
    fake_terraform: FakeTerraform,
    work_dir: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("FAKE_TF_FAIL", "init")

    async def run():
        tf = await Terraform.create(settings=_settings(fake_terraform, work_dir))
        await tf.initialize(stdout=OutputPolicy.PASSTHROUGH_ON_FAILURE)

    with pytest.raises(ProcessError) as info:
        asyncio.run(run())

    assert info.value.return_code == 1
    assert info.value.stdout == b"boom on stdout\n"
    assert info.value.stderr == b"boom on stderr\n"
    captured = capsys.readouterr()
    assert "boom on stdout" in captured.out
    assert "boom on stderr" in captured.err


def test_configuration_is_written(fake_terraform: FakeTerraform, work_dir: Path) -> None:
    configuration = {"output": {"greeting": {"value": "hello"}}}

    async def run():
        await Terraform.create(configuration, _settings(fake_terraform, work_dir))

    asyncio.run(run())

    written = json.loads((work_dir / "main.tf.json").read_text())
    assert written == configuration


def test_configuration_model_is_written(
    fake_terraform: FakeTerraform, work_dir: Path
) -> None:
    async def run():
        await Terraform.create(
            _Config(output={"greeting": _Output(value="hi")}),
            _settings(fake_terraform, work_dir),
        )

    asyncio.run(run())

    written = json.loads((work_dir / "main.tf.json").read_text())
    assert written == {"output": {"greeting": {"value": "hi"}}}


def test_temporary_working_directory_lifecycle(fake_terraform: FakeTerraform) -> None:
    async def run():
        async with await Terraform.create(
            {"output": {}}, _settings(fake_terraform)
        ) as tf:
            directory = tf.working_directory
            assert os.path.isfile(os.path.join(directory, "main.tf.json"))
            await tf.version()
        return directory

    directory = asyncio.run(run())
    assert not os.path.exists(directory)


def test_cleanup_is_refused_for_caller_directory(
    fake_terraform: FakeTerraform, work_dir: Path
) -> None:
    async def run():
        async with await Terraform.create(
            settings=_settings(fake_terraform, work_dir)
        ) as tf:
            with pytest.raises(ValueError):
                tf.cleanup()

    asyncio.run(run())
    assert work_dir.is_dir()


def test_cleanup_twice_is_harmless(fake_terraform: FakeTerraform) -> None:
    async def run():
        return await Terraform.create(settings=_settings(fake_terraform))

    tf = asyncio.run(run())
    assert os.path.isdir(tf.working_directory)
    tf.cleanup()
    tf.cleanup()
    assert not os.path.exists(tf.working_directory)


@pytest.mark.skipif(not hasattr(os, "posix_spawn"), reason="requires os.posix_spawn")
def test_operations_through_spawn_shim(
    fake_terraform: FakeTerraform, work_dir: Path
) -> None:
    async def run():
        tf = await Terraform.create(
            settings=_settings(fake_terraform, work_dir, use_spawn_shim=True)
        )
        plan = await tf.plan()
        version = await tf.version()
        return plan, version

    plan, version = asyncio.run(run())
    assert plan.raw_source.startswith(PLAN_MAGIC)
    assert version.version == "0.13.2"
    assert os.path.realpath(fake_terraform.calls[0]["cwd"]) == os.path.realpath(work_dir)


def _create_with_executable(executable: str, work_dir: Path) -> Terraform:
    settings = TerraformSettings(executable=executable, working_directory=str(work_dir))
    return asyncio.run(Terraform.create(settings=settings))


def test_create_rejects_missing_executable(tmp_path: Path, work_dir: Path) -> None:
    with pytest.raises(ProcessError, match="not found"):
        _create_with_executable(str(tmp_path / "nope"), work_dir)


def test_create_rejects_non_executable_file(tmp_path: Path, work_dir: Path) -> None:
    binary = tmp_path / "terraform"
    binary.write_text("#!/bin/sh\nexit 0\n")
    binary.chmod(0o644)

    with pytest.raises(ProcessError, match="Not executable"):
        _create_with_executable(str(binary), work_dir)


def test_create_rejects_directory(tmp_path: Path, work_dir: Path) -> None:
    with pytest.raises(ProcessError, match="Not a regular file"):
        _create_with_executable(str(tmp_path), work_dir)


def test_create_finds_executable_on_path(
    fake_terraform: FakeTerraform, work_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("PATH", str(fake_terraform.path.parent))

    tf = _create_with_executable("terraform", work_dir)

    assert tf.executable == str(fake_terraform.path)
