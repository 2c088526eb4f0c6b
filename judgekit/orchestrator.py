"""Verification pipeline: generate -> validate -> run main -> run and judge the rest."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field

from judgekit.checker import (
    CheckerInvoker,
    load_checker_tests,
    resolve_checker_source,
    run_checker_self_tests,
)
from judgekit.compiler import Compiler
from judgekit.config import Config
from judgekit.errors import ConfigurationError
from judgekit.executor import LocalExecutor
from judgekit.executor_base import BoundedExecutor
from judgekit.generator import InputGenerator, select_tests
from judgekit.models import ConcreteTest, Judgment, Problem, Program, Tag, TestCollection, TestOutcome
from judgekit.runner import ProgramRunner
from judgekit.script import expand_testset
from judgekit.validator import InputValidator
from judgekit.verification import VerificationEngine, describe_judgment
from judgekit.workspace import Workspace


@dataclass
class VerificationReport:
    judgments: list[Judgment] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(j.passed for j in self.judgments)

    @property
    def failures(self) -> list[Judgment]:
        return [j for j in self.judgments if not j.passed]


@dataclass
class RunRecord:
    program: Program
    collection: str
    outcomes: list[TestOutcome] = field(default_factory=list)


class Orchestrator:
    def __init__(self, config: Config, problem: Problem, executor: BoundedExecutor | None = None) -> None:
        self.config = config
        self.problem = problem
        self.workspace = Workspace.at(config.workspace)
        self._executor: BoundedExecutor = executor or LocalExecutor()
        self.compiler = Compiler(config, self.workspace, self._executor)
        self.inputs = InputGenerator(self._executor, self.compiler, self.workspace, config, problem.generators)
        self.runner = ProgramRunner(
            self._executor,
            self.compiler,
            self.workspace,
            time_limit_ms=problem.time_limit_ms,
            memory_limit_mb=problem.memory_limit_mb,
        )
        self._collections: list[TestCollection] | None = None
        self._checker: CheckerInvoker | None = None
        self._validator: InputValidator | None = None

    # -- configuration lookups -------------------------------------------

    def collections(self) -> list[TestCollection]:
        """Expand every testset. Raises ScriptError before anything runs."""
        if self._collections is None:
            if not self.problem.testsets:
                raise ConfigurationError("No testsets defined in the configuration file.")
            self._collections = [
                expand_testset(t, self.problem.generators, self.workspace) for t in self.problem.testsets
            ]
        return self._collections

    def collection(self, name: str) -> TestCollection:
        for c in self.collections():
            if c.name == name:
                return c
        available = ", ".join(c.name for c in self.collections())
        raise ConfigurationError(f"Testset {name!r} not found. Available testsets: {available}")

    def main_program(self) -> Program:
        mains = [p for p in self.problem.programs if p.tag is Tag.MAIN]
        if len(mains) != 1:
            names = ", ".join(p.name for p in mains) or "none"
            raise ConfigurationError(f"Exactly one solution must be tagged MA (main), found {len(mains)}: {names}")
        return mains[0]

    def program(self, name: str) -> Program:
        for p in self.problem.programs:
            if p.name == name:
                return p
        available = ", ".join(p.name for p in self.problem.programs)
        raise ConfigurationError(f"Solution {name!r} not found. Available solutions: {available}")

    def _selected(self, testset: str | None) -> list[TestCollection]:
        return self.collections() if testset is None else [self.collection(testset)]

    def _checker_invoker(self) -> CheckerInvoker:
        if self._checker is None:
            if self.problem.checker is None:
                raise ConfigurationError("No checker defined in the configuration file.")
            source = resolve_checker_source(self.problem.checker, self.workspace, self.config)
            self._checker = CheckerInvoker(
                self._executor,
                self.compiler.to_runnable_command(source),
                timeout_ms=self.config.checker_timeout_ms or self.problem.time_limit_ms,
                memory_limit_mb=self.config.checker_memory_mb or self.problem.memory_limit_mb,
                cwd=self.workspace.root,
            )
        return self._checker

    def _input_validator(self) -> InputValidator:
        if self._validator is None:
            if self.problem.validator is None:
                raise ConfigurationError("No validator defined in the configuration file.")
            self._validator = InputValidator(
                self._executor, self.compiler, self.workspace, self.config, self.problem.validator
            )
        return self._validator

    # -- individual steps ------------------------------------------------

    def generate_tests(self, testset: str | None = None, group: str | None = None, index: int | None = None) -> int:
        total = 0
        for c in self._selected(testset):
            tests = _subset(c, group, index)
            self._log(f"Generating tests for testset '{c.name}'...")
            total += self.inputs.generate(c, tests)
        self._log(f"Generated {total} test(s).")
        return total

    def validate_tests(self, testset: str | None = None, group: str | None = None, index: int | None = None) -> None:
        validator = self._input_validator()
        for c in self._selected(testset):
            self._log(f"Validating tests of testset '{c.name}'...")
            validator.validate(c, _subset(c, group, index))
        self._log("All tests are valid.")

    def test_validator(self) -> int:
        count = self._input_validator().run_self_tests()
        self._log(f"All {count} validator test(s) passed.")
        return count

    def test_checker(self) -> int:
        spec = self.problem.checker
        if spec is None:
            raise ConfigurationError("No checker defined in the configuration file.")
        if not spec.tests:
            raise ConfigurationError("No checker tests configured")
        cases = load_checker_tests(self.workspace.resolve(spec.tests))
        count = run_checker_self_tests(self._checker_invoker(), cases)
        self._log(f"All {count} checker test(s) passed.")
        return count

    def run_solutions(
        self, name: str = "all", testset: str | None = None, group: str | None = None, index: int | None = None
    ) -> list[RunRecord]:
        """Run solutions and collect their outcomes without judging them."""
        programs = self.problem.programs if name == "all" else [self.program(name)]
        records = []
        for program in programs:
            for c in self._selected(testset):
                self._log(f"Running {program.name} on testset '{c.name}'...")
                record = RunRecord(program=program, collection=c.name)
                for test in _subset(c, group, index) or c.tests:
                    outcome = self.runner.run(program, c, test.index)
                    if outcome.is_abnormal:
                        self._log(f"  test {test.index}: {outcome.message}")
                    record.outcomes.append(outcome)
                records.append(record)
        return records

    def test_solution(self, name: str, testset: str | None = None) -> VerificationReport:
        """Judge one solution against the main solution on freshly generated tests.

        The main solution runs first on every selected testset and any
        failure of it is fatal, exactly as in ``verify``.
        """
        main = self.main_program()
        program = self.program(name)
        collections = self._selected(testset)
        engine = self._engine()

        self._log(f"Main solution: {main.name}, target solution: {program.name} [{program.tag.value}]")
        report = VerificationReport()
        for c in collections:
            self.inputs.generate(c)
            self._log(f"Running main solution '{main.name}' on testset '{c.name}'...")
            main_judgment = engine.reconcile(main, c, main)
            if program is main:
                report.judgments.append(main_judgment)
                continue
            self._log(f"Verifying {program.name} [{program.tag.value}] on testset '{c.name}'...")
            judgment = engine.reconcile(program, c, main)
            report.judgments.append(judgment)
            self._log(describe_judgment(judgment))
        return report

    def list_testsets(self) -> list[str]:
        lines = []
        for c in self.collections():
            line = f"{c.name}: {len(c.tests)} test(s)"
            if c.groups:
                line += f", groups: {', '.join(c.groups)}"
            lines.append(line)
        return lines

    # -- full verification -----------------------------------------------

    def verify(self) -> VerificationReport:
        """Run the whole pipeline and judge every solution on every testset.

        Configuration problems are reported before anything is executed.
        FatalError (main solution or checker failure) propagates.
        """
        main = self.main_program()
        collections = self.collections()
        if self.problem.checker is None:
            raise ConfigurationError("No checker defined in the configuration file.")
        resolve_checker_source(self.problem.checker, self.workspace, self.config)

        self._log(f"\n{'='*60}")
        self._log(f"Verifying: {self.problem.name or self.workspace.root.name}")
        self._log(f"Time limit: {self.problem.time_limit_ms}ms, memory limit: {self.problem.memory_limit_mb} MB")
        self._log(f"Solutions: {len(self.problem.programs)}, testsets: {len(collections)}")
        self._log(f"{'='*60}\n")

        for c in collections:
            self.inputs.generate(c)
        self._log(f"Generated {sum(len(c.tests) for c in collections)} test(s).")

        if self.problem.validator is not None and self.problem.validator.tests:
            self.test_validator()

        if self.problem.validator is not None and self.config.validate_inputs:
            for c in collections:
                self._input_validator().validate(c)
            self._log("All tests are valid.")

        if self.problem.checker.tests:
            self.test_checker()

        engine = self._engine()
        report = VerificationReport()

        for c in collections:
            self._log(f"Running main solution '{main.name}' on testset '{c.name}'...")
            report.judgments.append(engine.reconcile(main, c, main))

        for program in self.problem.programs:
            if program is main:
                continue
            for c in collections:
                self._log(f"Verifying {program.name} [{program.tag.value}] on testset '{c.name}'...")
                judgment = engine.reconcile(program, c, main)
                report.judgments.append(judgment)
                self._log(describe_judgment(judgment))

        if report.passed:
            self._log("\nAll solutions behave as tagged.")
        else:
            self._log(f"\n{len(report.failures)} judgment(s) failed.")
        return report

    def _engine(self) -> VerificationEngine:
        return VerificationEngine(self.runner, self._checker_invoker(), self.workspace)

    def _log(self, message: str) -> None:
        print(message, file=sys.stderr)


def _subset(collection: TestCollection, group: str | None, index: int | None) -> list[ConcreteTest] | None:
    if index is None and not group:
        return None
    return select_tests(collection, index=index, group=group)
