"""Checker invocation, checker lookup and checker self-tests.

Checkers follow the testlib calling convention::

    checker <input> <participant output> <jury answer>

and report through their exit code (0 OK, 1 WA, 2 PE, 3 internal failure).
"""

from __future__ import annotations

import json
import logging
import tempfile
from collections.abc import Sequence
from pathlib import Path

from judgekit.config import Config
from judgekit.errors import CheckerFailure, ConfigurationError, ValidationError
from judgekit.executor_base import BoundedExecutor
from judgekit.models import CheckerResult, CheckerSpec, CheckerVerdict
from judgekit.workspace import Workspace

logger = logging.getLogger(__name__)

_EXIT_CODE_VERDICTS = {
    0: CheckerVerdict.OK,
    1: CheckerVerdict.WRONG_ANSWER,
    2: CheckerVerdict.PRESENTATION_ERROR,
    3: CheckerVerdict.CRASHED,
}
_EXPECTED_VERDICTS = ("OK", "WA", "PE")
_DESCRIPTION_PREFIX = "// Description:"


def verdict_for_exit_code(exit_code: int) -> CheckerVerdict:
    if exit_code < 0:
        return CheckerVerdict.CRASHED
    return _EXIT_CODE_VERDICTS.get(exit_code, CheckerVerdict.WRONG_ANSWER)


class CheckerInvoker:
    def __init__(
        self,
        executor: BoundedExecutor,
        command: Sequence[str],
        timeout_ms: int,
        memory_limit_mb: int,
        cwd: Path | None = None,
    ):
        self.executor = executor
        self.command = list(command)
        self.timeout_ms = timeout_ms
        self.memory_limit_mb = memory_limit_mb
        self.cwd = cwd

    def check(self, input_path: Path, output_path: Path, answer_path: Path) -> CheckerResult:
        """Compare a candidate output with the reference answer.

        Raises CheckerFailure if the checker itself runs out of time or
        memory; that is a broken checker, not a verdict.
        """
        result = self.executor.execute(
            [*self.command, str(input_path), str(output_path), str(answer_path)],
            timeout_ms=self.timeout_ms,
            memory_limit_mb=self.memory_limit_mb,
            cwd=self.cwd,
        )
        if result.timed_out:
            raise CheckerFailure(
                f"Checker unexpectedly exceeded time limit ({self.timeout_ms}ms) while checking {output_path}"
            )
        if result.memory_exceeded:
            raise CheckerFailure(
                f"Checker unexpectedly exceeded memory limit ({self.memory_limit_mb} MB) while checking {output_path}"
            )
        verdict = verdict_for_exit_code(result.exit_code)
        message = (result.stderr or result.stdout).strip()
        if verdict is not CheckerVerdict.OK:
            logger.debug("Checker rejected %s: %s", output_path, message)
        return CheckerResult(verdict, result.exit_code, message)


def resolve_checker_source(spec: CheckerSpec, workspace: Workspace, config: Config) -> Path:
    """Custom checkers live in the workspace, standard ones in ``checkers_dir``."""
    if spec.custom:
        path = workspace.resolve(spec.source)
    else:
        path = workspace.resolve(config.checkers_dir) / spec.source
    if not path.is_file():
        kind = "Custom checker" if spec.custom else "Standard checker"
        raise ConfigurationError(f"{kind} not found: {path}")
    return path


def list_standard_checkers(workspace: Workspace, config: Config) -> list[tuple[str, str]]:
    """Standard checkers in ``checkers_dir`` with the description from their header comment."""
    directory = workspace.resolve(config.checkers_dir)
    if not directory.is_dir():
        raise ConfigurationError(f"Checkers directory not found: {directory}")
    return [(path.name, _checker_description(path)) for path in sorted(directory.glob("*.cpp"))]


def _checker_description(path: Path) -> str:
    try:
        lines = path.read_text(errors="replace").splitlines()
    except OSError as e:
        raise ConfigurationError(f"Cannot read checker {path}: {e}") from e
    for line in lines:
        line = line.strip()
        if line.startswith(_DESCRIPTION_PREFIX):
            return line[len(_DESCRIPTION_PREFIX) :].strip()
        # Only the leading comment block is searched.
        if line and not line.startswith("//"):
            break
    return "No description available"


def load_checker_tests(path: Path) -> list[dict]:
    """Read ``{"tests": [{"stdin", "stdout", "answer", "verdict"}]}``."""
    try:
        data = json.loads(path.read_text())
    except OSError as e:
        raise ConfigurationError(f"Failed to read checker tests file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Failed to parse checker tests JSON {path}: {e}") from e
    tests = data.get("tests") if isinstance(data, dict) else None
    if not isinstance(tests, list):
        raise ConfigurationError(f"Invalid checker tests JSON structure in {path}")
    for i, case in enumerate(tests, 1):
        verdict = str(case.get("verdict", "")).upper() if isinstance(case, dict) else ""
        if verdict not in _EXPECTED_VERDICTS:
            raise ConfigurationError(f"Checker test {i} must have verdict OK, WA or PE")
    return tests


def run_checker_self_tests(invoker: CheckerInvoker, cases: Sequence[dict]) -> int:
    """Check that the checker accepts and rejects exactly where expected."""
    failures = []
    with tempfile.TemporaryDirectory(prefix="checker_tests") as tmp:
        for i, case in enumerate(cases, 1):
            case_dir = Path(tmp) / f"test{i}"
            case_dir.mkdir()
            paths = {}
            for key in ("stdin", "stdout", "answer"):
                paths[key] = case_dir / f"{key}.txt"
                paths[key].write_text(case.get(key, ""))

            expected = str(case["verdict"]).upper()
            result = invoker.check(paths["stdin"], paths["stdout"], paths["answer"])
            if expected == "OK" and not result.accepted:
                failures.append(f"Checker test {i}: expected OK but got {result.verdict.value} ({result.message})")
            elif expected != "OK" and result.accepted:
                failures.append(f"Checker test {i}: expected {expected} but got OK")
    if failures:
        raise ValidationError("Some checker tests failed", failures)
    return len(cases)
