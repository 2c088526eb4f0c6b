"""Runs one program on one test and classifies how the run ended.

Abnormal runs leave a sentinel line in place of the program output so that
the output directory can be audited by hand. The outcome itself is returned
as a ``TestOutcome``; nothing downstream reads the sentinel back.
"""

from __future__ import annotations

import logging
import signal
from pathlib import Path

from judgekit.compiler import Compiler
from judgekit.errors import InfrastructureError
from judgekit.executor_base import BoundedExecutor
from judgekit.models import OutcomeKind, Program, TestCollection, TestOutcome
from judgekit.workspace import Workspace

logger = logging.getLogger(__name__)

TIME_LIMIT_SENTINEL = "Time Limit Exceeded after {ms}ms"
MEMORY_LIMIT_SENTINEL = "Memory Limit Exceeded ({mb} MB)"
RUNTIME_ERROR_SENTINEL = "Runtime Error: {message}"


class ProgramRunner:
    def __init__(
        self,
        executor: BoundedExecutor,
        compiler: Compiler,
        workspace: Workspace,
        time_limit_ms: int,
        memory_limit_mb: int,
    ):
        self.executor = executor
        self.compiler = compiler
        self.workspace = workspace
        self.time_limit_ms = time_limit_ms
        self.memory_limit_mb = memory_limit_mb
        self._commands: dict[Path, list[str]] = {}

    def command_for(self, program: Program) -> list[str]:
        """Runnable command for ``program``, compiled on first use."""
        source = self.workspace.resolve(program.source)
        if source not in self._commands:
            self._commands[source] = self.compiler.to_runnable_command(source)
        return self._commands[source]

    def run(self, program: Program, collection: TestCollection, test_index: int) -> TestOutcome:
        """Run ``program`` on one test.

        Time, memory and crash outcomes are returned, never raised. Raises
        InfrastructureError (or CompilationError) when the run cannot take
        place at all.
        """
        collection.test(test_index)
        command = self.command_for(program)

        input_path = self.workspace.test_input(collection.name, test_index)
        if not input_path.is_file():
            raise InfrastructureError(f"Test input not found: {input_path}")

        output_path = self.workspace.output_file(program.name, collection.name, test_index)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.unlink(missing_ok=True)
        except OSError as e:
            raise InfrastructureError(f"Cannot prepare output location {output_path}: {e}") from e

        result = self.executor.execute(
            command,
            timeout_ms=self.time_limit_ms,
            memory_limit_mb=self.memory_limit_mb,
            stdin_path=input_path,
            stdout_path=output_path,
            cwd=self.workspace.root,
        )

        if result.timed_out:
            outcome = TestOutcome(
                OutcomeKind.TIMED_OUT,
                test_index,
                output_path,
                limit_ms=self.time_limit_ms,
                message=TIME_LIMIT_SENTINEL.format(ms=self.time_limit_ms),
            )
        elif result.memory_exceeded:
            outcome = TestOutcome(
                OutcomeKind.MEMORY_EXCEEDED,
                test_index,
                output_path,
                limit_mb=self.memory_limit_mb,
                message=MEMORY_LIMIT_SENTINEL.format(mb=self.memory_limit_mb),
            )
        elif result.exit_code != 0:
            detail = result.stderr.strip() or _exit_description(result.exit_code)
            outcome = TestOutcome(
                OutcomeKind.RUNTIME_ERROR,
                test_index,
                output_path,
                message=RUNTIME_ERROR_SENTINEL.format(message=detail),
            )
        else:
            return TestOutcome(OutcomeKind.COMPLETED, test_index, output_path)

        logger.debug("%s on test %d: %s", program.name, test_index, outcome.message)
        try:
            output_path.write_text(outcome.message + "\n")
        except OSError as e:
            raise InfrastructureError(f"Cannot write {output_path}: {e}") from e
        return outcome


def _exit_description(exit_code: int) -> str:
    if exit_code < 0:
        try:
            return f"killed by signal {signal.Signals(-exit_code).name}"
        except ValueError:
            return f"killed by signal {-exit_code}"
    return f"exited with code {exit_code}"
