"""
terrakit/tests/conftest.py

Shared fixtures. `fake_terraform` writes a small Python program that answers
the terraform subcommands used by the client from the JSON files in
tests/data, and records every invocation it receives.
"""

from __future__ import annotations

import json
import stat
import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

DATA_DIR = Path(__file__).parent / "data"

PLAN_MAGIC = b"FAKEPLAN\x00\x01"

_FAKE_TERRAFORM = '''\
import json
import os
import sys

PLAN_MAGIC = b"FAKEPLAN\\x00\\x01"
data_dir = os.environ["FAKE_TF_DATA"]
args = sys.argv[1:]

with open(os.environ["FAKE_TF_LOG"], "a") as log:
    log.write(json.dumps({
        "args": args,
        "cwd": os.getcwd(),
        "plugin_cache": os.environ.get("TF_PLUGIN_CACHE_DIR"),
    }) + "\\n")


def emit(name):
    with open(os.path.join(data_dir, name), "rb") as f:
        sys.stdout.buffer.write(f.read())


if os.environ.get("FAKE_TF_FAIL") == args[0]:
    sys.stdout.write("boom on stdout\\n")
    sys.stderr.write("boom on stderr\\n")
    sys.exit(1)

if args[0] == "version":
    sys.stdout.write(os.environ.get(
        "FAKE_TF_VERSION",
        "Terraform v0.13.2\\n+ provider.random v2.3.0\\n",
    ))
elif args[0] == "init":
    sys.stdout.write("Terraform has been successfully initialized!\\n")
elif args[0] == "plan":
    with open(args[2], "wb") as f:
        f.write(PLAN_MAGIC + os.environ.get("FAKE_TF_PLAN", "demo_plan.json").encode())
    sys.stdout.write("Plan: 3 to add, 0 to change, 0 to destroy.\\n")
elif args[0] == "show":
    if len(args) > 2:
        with open(args[2], "rb") as f:
            content = f.read()
        if not content.startswith(PLAN_MAGIC):
            sys.stderr.write("not a plan file\\n")
            sys.exit(1)
        emit(content[len(PLAN_MAGIC):].decode())
    elif os.path.exists(os.path.join(os.getcwd(), "applied.tfplan")):
        emit("state.json")
    else:
        sys.stdout.write(json.dumps({"format_version": "0.1"}) + "\\n")
elif args[0] == "apply":
    with open(args[-1], "rb") as src, open("applied.tfplan", "wb") as dst:
        dst.write(src.read())
    sys.stdout.write("Apply complete! Resources: 3 added, 0 changed, 0 destroyed.\\n")
elif args[0] == "destroy":
    if os.path.exists("applied.tfplan"):
        os.remove("applied.tfplan")
    sys.stdout.write("Destroy complete! Resources: 3 destroyed.\\n")
elif args[0:3] == ["providers", "schema", "-json"]:
    emit("schema.json")
else:
    sys.stderr.write("unknown command: %s\\n" % " ".join(args))
    sys.exit(1)
'''


class FakeTerraform:
    """Handle on the fake terraform program written by the fixture."""

    def __init__(self, path: Path, log_path: Path) -> None:
        self.path = path
        self.log_path = log_path

    @property
    def calls(self) -> List[Dict[str, Any]]:
        if not self.log_path.exists():
            return []
        return [json.loads(line) for line in self.log_path.read_text().splitlines()]


@pytest.fixture
def fake_terraform(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakeTerraform:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "terraform"
    script.write_text(f"#!{sys.executable}\n" + _FAKE_TERRAFORM)
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    log_path = tmp_path / "calls.jsonl"
    monkeypatch.setenv("FAKE_TF_DATA", str(DATA_DIR))
    monkeypatch.setenv("FAKE_TF_LOG", str(log_path))
    monkeypatch.delenv("FAKE_TF_FAIL", raising=False)
    monkeypatch.delenv("FAKE_TF_VERSION", raising=False)
    monkeypatch.delenv("FAKE_TF_PLAN", raising=False)
    return FakeTerraform(script, log_path)


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path

