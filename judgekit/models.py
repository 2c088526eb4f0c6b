"""Data models for judgekit."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union


class Tag(enum.Enum):
    """Declared expected behavior of a solution (Polygon short tags)."""

    MAIN = "MA"
    ALT_OK = "OK"
    REJECTED = "RJ"
    TIME_LIMIT = "TL"
    TIME_OR_OK = "TO"
    WRONG_ANSWER = "WA"
    PRESENTATION_ERROR = "PE"
    MEMORY_LIMIT = "ML"
    RUNTIME_ERROR = "RE"


class OutcomeKind(enum.Enum):
    COMPLETED = "COMPLETED"
    TIMED_OUT = "TIMED_OUT"
    MEMORY_EXCEEDED = "MEMORY_EXCEEDED"
    RUNTIME_ERROR = "RUNTIME_ERROR"


class CheckerVerdict(enum.Enum):
    OK = "OK"
    WRONG_ANSWER = "WA"
    PRESENTATION_ERROR = "PE"
    CRASHED = "CRASHED"


@dataclass
class Program:
    name: str
    source: str
    tag: Tag


@dataclass
class Generator:
    name: str
    source: str


@dataclass
class CheckerSpec:
    source: str  # custom checker path, or standard checker name like "wcmp.cpp"
    custom: bool = False
    tests: str | None = None


@dataclass
class ValidatorSpec:
    source: str
    tests: str | None = None


@dataclass
class GeneratedCommand:
    """Run a generator once with ``args``, or once per value of ``range``."""

    generator: str
    args: str = ""
    range: tuple[int, int] | None = None
    group: str | None = None
    points: float | None = None
    use_in_statements: bool = False

    @property
    def test_count(self) -> int:
        if self.range is None:
            return 1
        start, end = self.range
        return end - start + 1


@dataclass
class ManualCommand:
    manual_file: str
    group: str | None = None
    points: float | None = None
    use_in_statements: bool = False

    @property
    def test_count(self) -> int:
        return 1


TestCommand = Union[GeneratedCommand, ManualCommand]


@dataclass
class Testset:
    __test__ = False

    name: str
    commands: list[TestCommand] = field(default_factory=list)
    script: str = ""  # textual generation script, appended after ``commands``


@dataclass
class Problem:
    name: str
    time_limit_ms: int
    memory_limit_mb: int
    programs: list[Program]
    generators: list[Generator] = field(default_factory=list)
    checker: CheckerSpec | None = None
    validator: ValidatorSpec | None = None
    testsets: list[Testset] = field(default_factory=list)


@dataclass(frozen=True)
class ConcreteTest:
    """One expanded test; ``index`` is 1-based and stable for a fixed script."""

    index: int
    generator: str | None = None
    args: tuple[str, ...] = ()
    manual_path: Path | None = None
    group: str | None = None
    points: float | None = None
    use_in_statements: bool = False

    @property
    def is_manual(self) -> bool:
        return self.manual_path is not None

    def describe(self) -> str:
        if self.manual_path is not None:
            return f"manual {self.manual_path.name}"
        return " ".join([self.generator or "?", *self.args])


@dataclass
class TestCollection:
    __test__ = False

    name: str
    tests: list[ConcreteTest] = field(default_factory=list)

    def test(self, index: int) -> ConcreteTest:
        if index < 1 or index > len(self.tests):
            raise IndexError(
                f"Test index {index} is out of range. Testset {self.name!r} has {len(self.tests)} tests."
            )
        return self.tests[index - 1]

    @property
    def groups(self) -> list[str]:
        seen: list[str] = []
        for t in self.tests:
            if t.group and t.group not in seen:
                seen.append(t.group)
        return seen


@dataclass
class ExecutionResult:
    exit_code: int
    stderr: str = ""
    stdout: str = ""
    timed_out: bool = False
    memory_exceeded: bool = False
    elapsed_ms: int = 0


@dataclass(frozen=True)
class TestOutcome:
    __test__ = False

    kind: OutcomeKind
    test_index: int
    output_path: Path
    limit_ms: int | None = None
    limit_mb: int | None = None
    message: str = ""

    @property
    def is_abnormal(self) -> bool:
        return self.kind is not OutcomeKind.COMPLETED


@dataclass(frozen=True)
class CheckerResult:
    verdict: CheckerVerdict
    exit_code: int
    message: str = ""

    @property
    def accepted(self) -> bool:
        return self.verdict is CheckerVerdict.OK


@dataclass
class Violation:
    rule: str
    message: str
    test_index: int | None = None


@dataclass
class Judgment:
    program: Program
    collection: str
    violations: list[Violation] = field(default_factory=list)
    tests_processed: int = 0

    @property
    def passed(self) -> bool:
        return not self.violations
