"""Tests for the program runner."""

from __future__ import annotations

import sys
from unittest.mock import MagicMock

import pytest

from judgekit.compiler import Compiler
from judgekit.config import Config
from judgekit.errors import InfrastructureError
from judgekit.executor import LocalExecutor
from judgekit.models import (
    ConcreteTest,
    ExecutionResult,
    OutcomeKind,
    Program,
    Tag,
    TestCollection,
)
from judgekit.runner import ProgramRunner
from judgekit.workspace import Workspace


def _collection(n: int = 3) -> TestCollection:
    return TestCollection(name="tests", tests=[ConcreteTest(index=i, generator="gen") for i in range(1, n + 1)])


def _workspace(tmp_path, n: int = 3) -> Workspace:
    ws = Workspace.at(tmp_path)
    for i in range(1, n + 1):
        path = ws.test_input("tests", i)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"{i}\n")
    return ws


def _program(tmp_path, name: str, code: str) -> Program:
    (tmp_path / f"{name}.py").write_text(code)
    return Program(name=name, source=f"{name}.py", tag=Tag.ALT_OK)


def _real_runner(ws: Workspace, time_limit_ms: int = 5000) -> ProgramRunner:
    executor = LocalExecutor()
    compiler = Compiler(Config(workspace=str(ws.root), python=sys.executable), ws, executor)
    return ProgramRunner(executor, compiler, ws, time_limit_ms=time_limit_ms, memory_limit_mb=256)


def _fake_runner(ws: Workspace, result: ExecutionResult):
    executor = MagicMock()
    executor.execute.return_value = result
    compiler = MagicMock()
    compiler.to_runnable_command.return_value = ["./prog"]
    return ProgramRunner(executor, compiler, ws, time_limit_ms=1000, memory_limit_mb=64), executor, compiler


class TestRealPrograms:
    def test_completed_keeps_program_output(self, tmp_path):
        ws = _workspace(tmp_path)
        prog = _program(tmp_path, "double", "print(int(input()) * 2)\n")
        outcome = _real_runner(ws).run(prog, _collection(), 2)
        assert outcome.kind is OutcomeKind.COMPLETED
        assert outcome.output_path == ws.output_file("double", "tests", 2)
        assert outcome.output_path.read_text() == "4\n"

    def test_timeout_writes_sentinel(self, tmp_path):
        ws = _workspace(tmp_path)
        prog = _program(tmp_path, "slow", "import time\ntime.sleep(30)\n")
        outcome = _real_runner(ws, time_limit_ms=300).run(prog, _collection(), 1)
        assert outcome.kind is OutcomeKind.TIMED_OUT
        assert outcome.limit_ms == 300
        assert outcome.output_path.read_text().splitlines()[0] == "Time Limit Exceeded after 300ms"

    def test_runtime_error_writes_sentinel(self, tmp_path):
        ws = _workspace(tmp_path)
        prog = _program(tmp_path, "crash", "import sys\nprint('partial')\nsys.exit(3)\n")
        outcome = _real_runner(ws).run(prog, _collection(), 1)
        assert outcome.kind is OutcomeKind.RUNTIME_ERROR
        first = outcome.output_path.read_text().splitlines()[0]
        assert first == "Runtime Error: exited with code 3"


    def test_abort_is_runtime_error(self, tmp_path):
        ws = _workspace(tmp_path)
        prog = _program(tmp_path, "aborts", "import os\nos.abort()\n")
        outcome = _real_runner(ws).run(prog, _collection(), 1)
        assert outcome.kind is OutcomeKind.RUNTIME_ERROR
        first = outcome.output_path.read_text().splitlines()[0]
        assert first == "Runtime Error: killed by signal SIGABRT"


class TestClassification:
    def test_memory_exceeded(self, tmp_path):
        ws = _workspace(tmp_path)
        runner, _, _ = _fake_runner(ws, ExecutionResult(exit_code=137, memory_exceeded=True))
        outcome = runner.run(Program("p", "p.cpp", Tag.MEMORY_LIMIT), _collection(), 1)
        assert outcome.kind is OutcomeKind.MEMORY_EXCEEDED
        assert outcome.limit_mb == 64
        assert outcome.output_path.read_text() == "Memory Limit Exceeded (64 MB)\n"

    def test_runtime_error_uses_stderr(self, tmp_path):
        ws = _workspace(tmp_path)
        runner, _, _ = _fake_runner(ws, ExecutionResult(exit_code=1, stderr="Segmentation fault\n"))
        outcome = runner.run(Program("p", "p.cpp", Tag.RUNTIME_ERROR), _collection(), 1)
        assert outcome.message == "Runtime Error: Segmentation fault"
        assert outcome.is_abnormal

    def test_stale_output_deleted(self, tmp_path):
        ws = _workspace(tmp_path)
        stale = ws.output_file("p", "tests", 1)
        stale.parent.mkdir(parents=True)
        stale.write_text("old output\n")
        runner, _, _ = _fake_runner(ws, ExecutionResult(exit_code=0))
        runner.run(Program("p", "p.cpp", Tag.ALT_OK), _collection(), 1)
        assert not stale.exists()

    def test_executor_receives_limits_and_redirects(self, tmp_path):
        ws = _workspace(tmp_path)
        runner, executor, _ = _fake_runner(ws, ExecutionResult(exit_code=0))
        runner.run(Program("p", "p.cpp", Tag.ALT_OK), _collection(), 3)
        args, kwargs = executor.execute.call_args
        assert args[0] == ["./prog"]
        assert kwargs["timeout_ms"] == 1000
        assert kwargs["memory_limit_mb"] == 64
        assert kwargs["stdin_path"] == ws.test_input("tests", 3)
        assert kwargs["stdout_path"] == ws.output_file("p", "tests", 3)

    def test_compiles_once_per_program(self, tmp_path):
        ws = _workspace(tmp_path)
        runner, _, compiler = _fake_runner(ws, ExecutionResult(exit_code=0))
        prog = Program("p", "p.cpp", Tag.ALT_OK)
        for i in (1, 2, 3):
            runner.run(prog, _collection(), i)
        compiler.to_runnable_command.assert_called_once_with(ws.resolve("p.cpp"))

    def test_same_name_different_sources_compiled_separately(self, tmp_path):
        ws = _workspace(tmp_path)
        runner, _, compiler = _fake_runner(ws, ExecutionResult(exit_code=0))
        runner.run(Program("sol", "a/sol.cpp", Tag.ALT_OK), _collection(), 1)
        runner.run(Program("sol", "b/sol.cpp", Tag.WRONG_ANSWER), _collection(), 1)
        assert [c.args[0] for c in compiler.to_runnable_command.call_args_list] == [
            ws.resolve("a/sol.cpp"),
            ws.resolve("b/sol.cpp"),
        ]

    def test_signal_without_stderr_is_named(self, tmp_path):
        ws = _workspace(tmp_path)
        runner, _, _ = _fake_runner(ws, ExecutionResult(exit_code=-11))
        outcome = runner.run(Program("p", "p.cpp", Tag.RUNTIME_ERROR), _collection(), 1)
        assert outcome.kind is OutcomeKind.RUNTIME_ERROR
        assert outcome.message == "Runtime Error: killed by signal SIGSEGV"

    def test_missing_input_is_infrastructure_error(self, tmp_path):
        ws = Workspace.at(tmp_path)
        runner, _, _ = _fake_runner(ws, ExecutionResult(exit_code=0))
        with pytest.raises(InfrastructureError, match="Test input not found"):
            runner.run(Program("p", "p.cpp", Tag.ALT_OK), _collection(), 1)

    def test_index_out_of_range(self, tmp_path):
        ws = _workspace(tmp_path)
        runner, _, _ = _fake_runner(ws, ExecutionResult(exit_code=0))
        with pytest.raises(IndexError):
            runner.run(Program("p", "p.cpp", Tag.ALT_OK), _collection(), 4)
