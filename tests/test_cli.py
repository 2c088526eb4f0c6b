"""Tests for the judgekit command line."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from judgekit.cli import main


def _config(tmp_path, **extra):
    data = {
        "name": "p",
        "time-limit": 1000,
        "memory-limit": 256,
        "solutions": [{"name": "main", "source": "main.py", "tag": "MA"}],
        "generators": [{"name": "gen", "source": "gen.py"}],
        "testsets": [
            {"name": "tests", "generatorScript": {"script": "<#list 1..4 as i>\ngen ${i} > $\n</#list>"}},
            {"name": "samples", "generatorScript": {"commands": [{"type": "generator", "generator": "gen", "args": "1"}]}},
        ],
    }
    data.update(extra)
    (tmp_path / "Config.json").write_text(json.dumps(data))


def test_no_command_prints_help():
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 1


def test_list_testsets(tmp_path, capsys):
    _config(tmp_path)
    main(["--workspace", str(tmp_path), "list-testsets"])
    assert capsys.readouterr().out.splitlines() == ["tests: 4 test(s)", "samples: 1 test(s)"]


def test_errors_exit_with_message(tmp_path, capsys):
    _config(tmp_path)
    with pytest.raises(SystemExit) as exc:
        main(["--workspace", str(tmp_path), "test", "checker"])
    assert exc.value.code == 1
    assert "Error: No checker defined" in capsys.readouterr().err


def test_missing_config(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--workspace", str(tmp_path), "--config", "other.json", "verify"])
    assert exc.value.code == 1
    assert "other.json" in capsys.readouterr().err


@patch("judgekit.cli.download_testlib")
def test_download_testlib(mock_download, tmp_path):
    mock_download.return_value = tmp_path / "testlib.h"
    main(["--workspace", str(tmp_path), "download-testlib", "--dest", str(tmp_path / "inc")])
    assert mock_download.call_args.args[0] == str(tmp_path / "inc")


def test_list_checkers_needs_no_problem_file(tmp_path, capsys):
    (tmp_path / "checkers").mkdir()
    (tmp_path / "checkers" / "wcmp.cpp").write_text("// Description: Compare sequences of tokens\n")
    main(["--workspace", str(tmp_path), "list-checkers"])
    assert capsys.readouterr().out.splitlines() == ["wcmp.cpp: Compare sequences of tokens"]


@patch("judgekit.cli.Orchestrator")
def test_test_solution(mock_orchestrator, tmp_path):
    _config(tmp_path)
    report = mock_orchestrator.return_value.test_solution.return_value
    report.failures = []
    report.passed = True
    main(["--workspace", str(tmp_path), "test", "wa", "--testset", "tests"])
    mock_orchestrator.return_value.test_solution.assert_called_once_with("wa", testset="tests")


@patch("judgekit.cli.Orchestrator")
def test_test_solution_failure_exits_nonzero(mock_orchestrator, tmp_path):
    _config(tmp_path)
    report = mock_orchestrator.return_value.test_solution.return_value
    report.failures = []
    report.passed = False
    with pytest.raises(SystemExit) as exc:
        main(["--workspace", str(tmp_path), "test", "wa"])
    assert exc.value.code == 1


@patch("judgekit.cli.Orchestrator")
def test_run_and_validate_accept_selection(mock_orchestrator, tmp_path):
    _config(tmp_path)
    orchestrator = mock_orchestrator.return_value
    orchestrator.run_solutions.return_value = []
    main(["--workspace", str(tmp_path), "run", "main", "--index", "2"])
    orchestrator.run_solutions.assert_called_once_with("main", testset=None, group=None, index=2)
    main(["--workspace", str(tmp_path), "validate", "--testset", "tests", "--group", "hard"])
    orchestrator.validate_tests.assert_called_once_with(testset="tests", group="hard", index=None)
