"""Input validator: checks generated inputs and runs the validator's own tests."""

from __future__ import annotations

import json
import logging
import tempfile
from collections.abc import Sequence
from pathlib import Path

from judgekit.compiler import Compiler
from judgekit.config import Config
from judgekit.errors import ConfigurationError, InfrastructureError, ValidationError
from judgekit.executor_base import BoundedExecutor
from judgekit.models import ConcreteTest, TestCollection, ValidatorSpec
from judgekit.workspace import Workspace

logger = logging.getLogger(__name__)

VALID = "VALID"
INVALID = "INVALID"


def load_validator_tests(path: Path) -> list[dict]:
    """Read ``{"tests": [{"stdin": ..., "expectedVerdict": "VALID"|"INVALID"}]}``."""
    try:
        data = json.loads(path.read_text())
    except OSError as e:
        raise ConfigurationError(f"Failed to read validator tests file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Failed to parse validator tests JSON {path}: {e}") from e
    tests = data.get("tests") if isinstance(data, dict) else None
    if not isinstance(tests, list):
        raise ConfigurationError(f"Invalid validator tests JSON structure in {path}")
    for i, case in enumerate(tests, 1):
        verdict = str(case.get("expectedVerdict", "")).upper() if isinstance(case, dict) else ""
        if verdict not in (VALID, INVALID):
            raise ConfigurationError(f"Validator test {i} must have expectedVerdict VALID or INVALID")
    return tests


class InputValidator:
    def __init__(
        self,
        executor: BoundedExecutor,
        compiler: Compiler,
        workspace: Workspace,
        config: Config,
        spec: ValidatorSpec,
    ):
        self.executor = executor
        self.compiler = compiler
        self.workspace = workspace
        self.config = config
        self.spec = spec

    def accepts(self, input_path: Path) -> tuple[bool, str]:
        """Run the validator on one input; returns (valid, diagnostics)."""
        command = self.compiler.to_runnable_command(self.spec.source)
        result = self.executor.execute(
            command,
            timeout_ms=self.config.tool_timeout_ms,
            memory_limit_mb=self.config.tool_memory_mb,
            stdin_path=input_path,
            cwd=self.workspace.root,
        )
        if result.timed_out:
            raise InfrastructureError(
                f"Validator unexpectedly exceeded time limit ({self.config.tool_timeout_ms}ms) on {input_path}"
            )
        if result.memory_exceeded:
            raise InfrastructureError(
                f"Validator unexpectedly exceeded memory limit ({self.config.tool_memory_mb} MB) on {input_path}"
            )
        return result.exit_code == 0, result.stderr.strip()

    def validate(self, collection: TestCollection, tests: Sequence[ConcreteTest] | None = None) -> None:
        """Validate every generated input, reporting all invalid ones together."""
        failures = []
        for test in collection.tests if tests is None else tests:
            path = self.workspace.test_input(collection.name, test.index)
            if not path.is_file():
                raise InfrastructureError(f"Test input not found: {path}. Generate the tests first.")
            valid, detail = self.accepts(path)
            if not valid:
                failures.append(f"test {test.index} ({test.describe()}): {detail or 'rejected'}")
        if failures:
            raise ValidationError(f"Some tests of testset {collection.name!r} failed validation", failures)
        logger.info("All tests of testset %s are valid", collection.name)

    def run_self_tests(self) -> int:
        if not self.spec.tests:
            raise ConfigurationError("No validator tests configured")
        cases = load_validator_tests(self.workspace.resolve(self.spec.tests))

        failures = []
        with tempfile.TemporaryDirectory(prefix="validator_tests") as tmp:
            for i, case in enumerate(cases, 1):
                path = Path(tmp) / f"test{i}.txt"
                path.write_text(case.get("stdin", ""))
                expected = str(case["expectedVerdict"]).upper()
                valid, detail = self.accepts(path)
                observed = VALID if valid else INVALID
                if observed != expected:
                    message = f"Validator test {i}: expected {expected}, got {observed}"
                    if detail:
                        message += f" ({detail})"
                    failures.append(message)
        if failures:
            raise ValidationError("Some validator tests failed", failures)
        return len(cases)
