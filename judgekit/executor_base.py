"""Abstract bounded-executor interface for running command lines."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from judgekit.models import ExecutionResult


@runtime_checkable
class BoundedExecutor(Protocol):
    def execute(
        self,
        command: Sequence[str],
        *,
        timeout_ms: int,
        memory_limit_mb: int | None = None,
        stdin_path: Path | None = None,
        stdout_path: Path | None = None,
        cwd: Path | None = None,
    ) -> ExecutionResult: ...
