"""Verdict reconciliation: run a program over a testset and judge it by its tag.

For each (program, testset) pass a ``VerdictTracker`` records which abnormal
outcomes were observed and on which test they first appeared. The tracker is
then judged against the program's entry in ``TAG_POLICIES``: every observed
flag must be permitted and every required flag must have been observed.

The main solution is held to a stricter standard. Any abnormal outcome, or a
checker rejecting its own output, raises ``MainProgramFailure`` and aborts
the whole verification.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field

from judgekit.checker import CheckerInvoker
from judgekit.errors import InfrastructureError, MainProgramFailure
from judgekit.models import (
    ConcreteTest,
    Judgment,
    OutcomeKind,
    Program,
    Tag,
    TestCollection,
    Violation,
)
from judgekit.runner import ProgramRunner
from judgekit.workspace import Workspace

logger = logging.getLogger(__name__)


class TrackerFlag(enum.Enum):
    TIME_LIMIT = "time limit exceeded"
    MEMORY_LIMIT = "memory limit exceeded"
    RUNTIME_ERROR = "runtime error"
    WRONG_ANSWER = "wrong answer"
    PRESENTATION_ERROR = "presentation error"


OUTCOME_FLAGS = {
    OutcomeKind.TIMED_OUT: TrackerFlag.TIME_LIMIT,
    OutcomeKind.MEMORY_EXCEEDED: TrackerFlag.MEMORY_LIMIT,
    OutcomeKind.RUNTIME_ERROR: TrackerFlag.RUNTIME_ERROR,
}


@dataclass
class VerdictTracker:
    """Flags observed during one pass, keyed to the first test showing them.

    Flags are only ever added; recording a flag again keeps the earlier index.
    """

    first_seen: dict[TrackerFlag, int] = field(default_factory=dict)

    def record(self, flag: TrackerFlag, test_index: int) -> None:
        self.first_seen.setdefault(flag, test_index)

    def saw(self, flag: TrackerFlag) -> bool:
        return flag in self.first_seen

    @property
    def observed(self) -> frozenset[TrackerFlag]:
        return frozenset(self.first_seen)

    @property
    def saw_time_limit(self) -> bool:
        return self.saw(TrackerFlag.TIME_LIMIT)

    @property
    def saw_memory_limit(self) -> bool:
        return self.saw(TrackerFlag.MEMORY_LIMIT)

    @property
    def saw_runtime_error(self) -> bool:
        return self.saw(TrackerFlag.RUNTIME_ERROR)

    @property
    def saw_wrong_answer(self) -> bool:
        return self.saw(TrackerFlag.WRONG_ANSWER)

    @property
    def saw_presentation_error(self) -> bool:
        return self.saw(TrackerFlag.PRESENTATION_ERROR)


@dataclass(frozen=True)
class TagPolicy:
    permitted: frozenset[TrackerFlag] = frozenset()
    required: frozenset[TrackerFlag] = frozenset()  # each must be observed
    required_any: frozenset[TrackerFlag] = frozenset()  # at least one must be observed


_TL = TrackerFlag.TIME_LIMIT
_ML = TrackerFlag.MEMORY_LIMIT
_RE = TrackerFlag.RUNTIME_ERROR
_WA = TrackerFlag.WRONG_ANSWER
_PE = TrackerFlag.PRESENTATION_ERROR

TAG_POLICIES: dict[Tag, TagPolicy] = {
    Tag.MAIN: TagPolicy(),
    Tag.ALT_OK: TagPolicy(),
    Tag.TIME_LIMIT: TagPolicy(permitted=frozenset({_TL}), required=frozenset({_TL})),
    Tag.TIME_OR_OK: TagPolicy(permitted=frozenset({_TL})),
    Tag.MEMORY_LIMIT: TagPolicy(permitted=frozenset({_ML}), required=frozenset({_ML})),
    Tag.RUNTIME_ERROR: TagPolicy(permitted=frozenset({_RE})),
    Tag.WRONG_ANSWER: TagPolicy(permitted=frozenset({_WA, _PE}), required=frozenset({_WA})),
    Tag.PRESENTATION_ERROR: TagPolicy(permitted=frozenset({_WA, _PE})),
    Tag.REJECTED: TagPolicy(
        permitted=frozenset({_TL, _ML, _RE, _WA}),
        required_any=frozenset({_TL, _ML, _RE, _WA}),
    ),
}


def policy_for(tag: Tag) -> TagPolicy:
    return TAG_POLICIES[tag]


def judge(program: Program, collection: str, tracker: VerdictTracker, tests_processed: int) -> Judgment:
    """Compare the observed flags with the program's tag; report every broken rule."""
    policy = policy_for(program.tag)
    violations = []

    for flag, index in sorted(tracker.first_seen.items(), key=lambda item: item[1]):
        if flag not in policy.permitted:
            violations.append(
                Violation(
                    rule="unexpected-outcome",
                    message=f"{flag.value} on test {index} is not allowed for tag {program.tag.value}",
                    test_index=index,
                )
            )

    for flag in sorted(policy.required, key=lambda f: f.name):
        if not tracker.saw(flag):
            violations.append(
                Violation(
                    rule="missing-required-outcome",
                    message=(
                        f"tag {program.tag.value} requires {flag.value} but it was never observed "
                        f"in {tests_processed} tests"
                    ),
                )
            )

    if policy.required_any and not (tracker.observed & policy.required_any):
        expected = ", ".join(sorted(f.value for f in policy.required_any))
        violations.append(
            Violation(
                rule="missing-required-outcome",
                message=(
                    f"tag {program.tag.value} requires at least one of: {expected}; "
                    f"none observed in {tests_processed} tests"
                ),
            )
        )

    return Judgment(program=program, collection=collection, violations=violations, tests_processed=tests_processed)


def describe_judgment(judgment: Judgment) -> str:
    head = f"{judgment.program.name} [{judgment.program.tag.value}] on testset {judgment.collection!r}"
    if judgment.passed:
        return f"{head}: passed ({judgment.tests_processed} tests)"
    lines = [f"{head}: FAILED"]
    lines.extend(f"  - {v.rule}: {v.message}" for v in judgment.violations)
    return "\n".join(lines)


class VerificationEngine:
    def __init__(self, runner: ProgramRunner, checker: CheckerInvoker, workspace: Workspace):
        self.runner = runner
        self.checker = checker
        self.workspace = workspace

    def reconcile(self, program: Program, collection: TestCollection, main: Program) -> Judgment:
        if program.tag is Tag.MAIN:
            return self.verify_main(program, collection)
        return self.verify_program(program, collection, main)

    def verify_main(self, program: Program, collection: TestCollection) -> Judgment:
        """Run the main solution over ``collection``; any failure is fatal."""
        try:
            self.runner.command_for(program)
        except InfrastructureError as e:
            raise MainProgramFailure(program.name, collection.name, None, str(e)) from e

        processed = 0
        for test in collection.tests:
            try:
                outcome = self.runner.run(program, collection, test.index)
            except InfrastructureError as e:
                raise MainProgramFailure(program.name, collection.name, test.index, str(e)) from e
            if outcome.is_abnormal:
                raise MainProgramFailure(program.name, collection.name, test.index, outcome.message)

            result = self.checker.check(self._input(collection, test), outcome.output_path, outcome.output_path)
            if not result.accepted:
                raise MainProgramFailure(
                    program.name,
                    collection.name,
                    test.index,
                    f"checker rejected its own output ({result.verdict.value}): {result.message}",
                )
            processed += 1

        logger.info("Main solution %s passed %d tests of %s", program.name, processed, collection.name)
        return Judgment(program=program, collection=collection.name, tests_processed=processed)

    def verify_program(self, program: Program, collection: TestCollection, main: Program) -> Judgment:
        """Run a non-main program over ``collection`` and judge it by its tag.

        An infrastructure failure stops this program's pass and fails its
        judgment. CheckerFailure propagates and aborts everything.
        """
        tracker = VerdictTracker()
        processed = 0
        interrupted: Violation | None = None

        try:
            self.runner.command_for(program)
        except InfrastructureError as e:
            failed = Judgment(program=program, collection=collection.name)
            failed.violations.append(Violation(rule="infrastructure", message=str(e)))
            return failed

        for test in collection.tests:
            try:
                self._process_test(program, collection, test, main, tracker)
            except InfrastructureError as e:
                interrupted = Violation(
                    rule="infrastructure",
                    message=f"processing stopped at test {test.index}: {e}",
                    test_index=test.index,
                )
                break
            processed += 1

        judgment = judge(program, collection.name, tracker, processed)
        if interrupted is not None:
            judgment.violations.insert(0, interrupted)
        if judgment.passed:
            logger.info("%s matches tag %s on %s", program.name, program.tag.value, collection.name)
        else:
            logger.info("%s violates tag %s on %s", program.name, program.tag.value, collection.name)
        return judgment

    def _process_test(
        self,
        program: Program,
        collection: TestCollection,
        test: ConcreteTest,
        main: Program,
        tracker: VerdictTracker,
    ) -> None:
        outcome = self.runner.run(program, collection, test.index)
        if outcome.is_abnormal:
            # No meaningful output to compare.
            tracker.record(OUTCOME_FLAGS[outcome.kind], test.index)
            return

        answer = self.workspace.output_file(main.name, collection.name, test.index)
        if not answer.is_file():
            raise InfrastructureError(f"Reference answer not found: {answer}")
        result = self.checker.check(self._input(collection, test), outcome.output_path, answer)
        if not result.accepted:
            # Presentation errors are counted as wrong answers.
            tracker.record(TrackerFlag.WRONG_ANSWER, test.index)

    def _input(self, collection: TestCollection, test: ConcreteTest):
        return self.workspace.test_input(collection.name, test.index)
