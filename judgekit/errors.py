"""Exception taxonomy for judgekit.

Resource violations of a program under test (timeouts, memory, crashes) are
never raised; they are returned as ``TestOutcome`` values. Exceptions are
reserved for configuration mistakes, toolchain failures and verdict
disagreements of the package's own tools.
"""

from __future__ import annotations

from pathlib import Path


class JudgeKitError(Exception):
    """Base class for every error raised by judgekit."""


class ConfigurationError(JudgeKitError):
    """The problem configuration is malformed or references something missing."""


class ScriptError(ConfigurationError):
    """A test generation script references an unknown generator or missing file."""

    def __init__(
        self,
        message: str,
        generator: str | None = None,
        known_generators: list[str] | None = None,
        path: Path | None = None,
    ) -> None:
        super().__init__(message)
        self.generator = generator
        self.known_generators = list(known_generators or [])
        self.path = path


class InfrastructureError(JudgeKitError):
    """The toolchain itself failed (missing executable, failing generator, ...)."""


class CompilationError(InfrastructureError):
    def __init__(self, source: Path | str, detail: str) -> None:
        super().__init__(f"Failed to compile {source}:\n\t{detail}")
        self.source = Path(source)
        self.detail = detail


class FatalError(JudgeKitError):
    """Aborts the whole verification, not just the current program."""


class CheckerFailure(FatalError):
    """The checker exceeded its own time or memory budget."""


class MainProgramFailure(FatalError):
    def __init__(self, program: str, collection: str, test_index: int | None, reason: str) -> None:
        where = f"test {test_index} of testset {collection!r}" if test_index else f"testset {collection!r}"
        super().__init__(f"Main solution {program!r} failed on {where}: {reason}")
        self.program = program
        self.collection = collection
        self.test_index = test_index
        self.reason = reason


class ValidationError(JudgeKitError):
    """A validator or checker disagreed with the expected verdicts."""

    def __init__(self, message: str, failures: list[str] | None = None) -> None:
        self.failures = list(failures or [])
        if self.failures:
            message = message + ":\n" + "\n".join(f"  - {f}" for f in self.failures)
        super().__init__(message)
