from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

import pytest

from upxt import runner


@dataclass
class FakeUpx:
    """Stands in for subprocess.run inside upxt.runner."""

    returncode: int = 0
    stdout: bytes = b""
    stderr: bytes = b""
    output_bytes: Optional[bytes] = None
    launch_error: Optional[OSError] = None
    calls: list[list[str]] = field(default_factory=list)
    on_run: Optional[Callable[[list[str]], None]] = None

    def __call__(self, cmd, **kwargs):
        self.calls.append(list(cmd))
        if self.launch_error is not None and "--version" not in cmd:
            raise self.launch_error

        if "--version" in cmd:
            return subprocess.CompletedProcess(cmd, 0, b"upx 4.2.4\nUCL data compression library 1.03\n", b"")

        if self.on_run is not None:
            self.on_run(list(cmd))

        if self.output_bytes is not None and self.returncode == 0:
            if "-o" in cmd:
                target = Path(cmd[cmd.index("-o") + 1])
            else:
                target = Path(next(a for a in cmd[1:] if not a.startswith("-")))
            target.write_bytes(self.output_bytes)

        return subprocess.CompletedProcess(cmd, self.returncode, self.stdout, self.stderr)

    @property
    def job_calls(self) -> list[list[str]]:
        return [c for c in self.calls if "--version" not in c]


@pytest.fixture
def fake_upx(monkeypatch: pytest.MonkeyPatch) -> FakeUpx:
    fake = FakeUpx()
    monkeypatch.setattr(runner.subprocess, "run", fake)
    return fake


@pytest.fixture
def upx_path(tmp_path: Path) -> Path:
    return tmp_path / "bin" / "upx.exe"
