"""Subprocess-based executor with wall clock and memory limits."""

from __future__ import annotations

import logging
import os
import resource
import signal
import subprocess
import time
from collections.abc import Callable, Sequence
from contextlib import ExitStack
from pathlib import Path

from judgekit.errors import InfrastructureError
from judgekit.models import ExecutionResult

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
OOM_KILL_EXIT_CODE = 137

_MEMORY_MARKERS = ("bad_alloc", "MemoryError", "OutOfMemory", "Cannot allocate memory")


class LocalExecutor:
    """Executes command lines locally via subprocess with resource limits."""

    def execute(
        self,
        command: Sequence[str],
        *,
        timeout_ms: int,
        memory_limit_mb: int | None = None,
        stdin_path: Path | None = None,
        stdout_path: Path | None = None,
        cwd: Path | None = None,
    ) -> ExecutionResult:
        return execute(
            command,
            timeout_ms=timeout_ms,
            memory_limit_mb=memory_limit_mb,
            stdin_path=stdin_path,
            stdout_path=stdout_path,
            cwd=cwd,
        )


def execute(
    command: Sequence[str],
    *,
    timeout_ms: int,
    memory_limit_mb: int | None = None,
    stdin_path: Path | None = None,
    stdout_path: Path | None = None,
    cwd: Path | None = None,
) -> ExecutionResult:
    """Run ``command`` and classify how it ended.

    Standard input is read from ``stdin_path`` (or is empty) and standard
    output goes to ``stdout_path`` (or is captured into the result). Standard
    error is always captured.

    Raises InfrastructureError when the command cannot be started at all.
    """
    argv = apply_memory_limit(list(command), memory_limit_mb)
    if not argv:
        raise InfrastructureError("Cannot execute an empty command")
    capped = memory_limit_mb is not None and not _is_java(argv)
    logger.debug("Executing %s (timeout %sms, memory %s MB)", argv, timeout_ms, memory_limit_mb)

    with ExitStack() as stack:
        try:
            stdin = stack.enter_context(open(stdin_path, "rb")) if stdin_path else subprocess.DEVNULL
            stdout = stack.enter_context(open(stdout_path, "wb")) if stdout_path else subprocess.PIPE
        except OSError as e:
            raise InfrastructureError(f"Cannot open redirection file: {e}") from e

        start = time.monotonic()
        try:
            proc = subprocess.Popen(
                argv,
                stdin=stdin,
                stdout=stdout,
                stderr=subprocess.PIPE,
                cwd=str(cwd) if cwd else None,
                start_new_session=True,
                preexec_fn=_address_space_limiter(memory_limit_mb) if capped else None,
            )
        except FileNotFoundError as e:
            raise InfrastructureError(f"Command not found: {argv[0]}") from e
        except PermissionError as e:
            raise InfrastructureError(f"Command is not executable: {argv[0]}") from e

        try:
            out, err = proc.communicate(timeout=timeout_ms / 1000.0)
        except subprocess.TimeoutExpired:
            _kill_process_group(proc)
            out, err = proc.communicate()
            return ExecutionResult(
                exit_code=TIMEOUT_EXIT_CODE,
                stderr=f"Command timed out after {timeout_ms}ms",
                stdout=_decode(out),
                timed_out=True,
                elapsed_ms=_elapsed_ms(start),
            )

    stderr = _decode(err)
    return ExecutionResult(
        exit_code=proc.returncode,
        stderr=stderr,
        stdout=_decode(out),
        memory_exceeded=_is_memory_error(proc.returncode, stderr),
        elapsed_ms=_elapsed_ms(start),
    )


def apply_memory_limit(argv: list[str], memory_limit_mb: int | None) -> list[str]:
    """Give the JVM an explicit heap cap; other commands are capped via RLIMIT_AS."""
    if memory_limit_mb is None or not _is_java(argv):
        return argv
    if any(arg.startswith("-Xmx") for arg in argv):
        return argv
    return [argv[0], f"-Xmx{memory_limit_mb}m", *argv[1:]]


def _is_java(argv: list[str]) -> bool:
    return bool(argv) and Path(argv[0]).name == "java"


def _address_space_limiter(memory_limit_mb: int) -> Callable[[], None]:
    limit_bytes = memory_limit_mb * 1024 * 1024

    def preexec() -> None:
        try:
            resource.setrlimit(resource.RLIMIT_AS, (limit_bytes, limit_bytes))
        except (ValueError, OSError):
            pass

    return preexec


def _kill_process_group(proc: subprocess.Popen) -> None:
    # Prefer killing the whole session so forked children die too.
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        return
    except PermissionError:
        proc.kill()


def _is_memory_error(returncode: int, stderr: str) -> bool:
    if returncode == 0:
        return False
    if returncode in (OOM_KILL_EXIT_CODE, -signal.SIGKILL):
        return True
    # abort() and SIGSEGV are crashes unless the allocator said why.
    return any(marker in stderr for marker in _MEMORY_MARKERS)


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
