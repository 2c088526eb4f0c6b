"""Materializes test inputs: runs generators and copies manual tests."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Sequence

from judgekit.compiler import Compiler
from judgekit.config import Config
from judgekit.errors import ConfigurationError, InfrastructureError
from judgekit.executor_base import BoundedExecutor
from judgekit.models import ConcreteTest, Generator, TestCollection
from judgekit.workspace import Workspace

logger = logging.getLogger(__name__)


def select_tests(collection: TestCollection, index: int | None = None, group: str | None = None) -> list[ConcreteTest]:
    """Pick all tests, a single test by index, or the tests of one group."""
    if index is not None:
        try:
            return [collection.test(index)]
        except IndexError as e:
            raise ConfigurationError(str(e)) from e
    if group is None or group == "all":
        return list(collection.tests)
    selected = [t for t in collection.tests if t.group == group]
    if not selected:
        available = ", ".join(collection.groups) or "(none)"
        raise ConfigurationError(
            f"Group {group!r} not found in testset {collection.name!r}. Available groups: {available}"
        )
    return selected


class InputGenerator:
    def __init__(
        self,
        executor: BoundedExecutor,
        compiler: Compiler,
        workspace: Workspace,
        config: Config,
        generators: Sequence[Generator],
    ):
        self.executor = executor
        self.compiler = compiler
        self.workspace = workspace
        self.config = config
        self.generators = {g.name: g for g in generators}

    def generate(self, collection: TestCollection, tests: Sequence[ConcreteTest] | None = None) -> int:
        """Write the input files of ``tests`` (default: the whole collection).

        Generating the whole collection first removes inputs left over from a
        previous, longer version of the testset.
        """
        target = self.workspace.testset_dir(collection.name)
        if tests is None:
            tests = collection.tests
            if target.exists():
                for stale in target.glob("test*.txt"):
                    stale.unlink()
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InfrastructureError(f"Cannot create testset directory {target}: {e}") from e

        for test in tests:
            self.generate_one(collection.name, test)
        logger.info("Generated %d tests for testset %s", len(tests), collection.name)
        return len(tests)

    def generate_one(self, collection: str, test: ConcreteTest) -> None:
        dest = self.workspace.test_input(collection, test.index)
        if test.manual_path is not None:
            try:
                shutil.copyfile(test.manual_path, dest)
            except OSError as e:
                raise InfrastructureError(f"Cannot copy manual test {test.manual_path} to {dest}: {e}") from e
            return

        generator = self.generators.get(test.generator or "")
        if generator is None:
            raise ConfigurationError(f"Unknown generator {test.generator!r} for test {test.index}")
        command = self.compiler.to_runnable_command(generator.source)
        result = self.executor.execute(
            [*command, *test.args],
            timeout_ms=self.config.tool_timeout_ms,
            memory_limit_mb=self.config.tool_memory_mb,
            stdout_path=dest,
            cwd=self.workspace.root,
        )
        reason = None
        if result.timed_out:
            reason = f"timed out after {self.config.tool_timeout_ms}ms"
        elif result.memory_exceeded:
            reason = f"exceeded {self.config.tool_memory_mb} MB"
        elif result.exit_code != 0:
            reason = result.stderr.strip() or f"exited with code {result.exit_code}"
        if reason is not None:
            raise InfrastructureError(
                f"Generator {generator.name!r} failed on test {test.index} of testset {collection!r}: {reason}"
            )
