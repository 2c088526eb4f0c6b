"""CLI interface for judgekit."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from judgekit.checker import list_standard_checkers
from judgekit.config import Config
from judgekit.errors import JudgeKitError
from judgekit.orchestrator import Orchestrator
from judgekit.problem import load_problem
from judgekit.testlib import download_testlib
from judgekit.verification import describe_judgment
from judgekit.workspace import Workspace


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="judgekit",
        description="judgekit: verify competitive programming problem packages",
    )
    parser.add_argument("--workspace", type=str, default=None, help="Problem directory (default: current)")
    parser.add_argument("--config", type=str, default=None, help="Problem configuration file, relative to workspace")
    parser.add_argument("-v", "--verbose", action="store_true", default=False, help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("verify", help="Generate, validate and verify every solution against its tag")

    gen_parser = subparsers.add_parser("generate", help="Generate test inputs")
    gen_parser.add_argument("--testset", type=str, default=None)
    gen_parser.add_argument("--group", type=str, default=None)
    gen_parser.add_argument("--index", type=int, default=None, help="Generate a single test")

    val_parser = subparsers.add_parser("validate", help="Validate generated test inputs")
    val_parser.add_argument("--testset", type=str, default=None)
    val_parser.add_argument("--group", type=str, default=None)
    val_parser.add_argument("--index", type=int, default=None, help="Validate a single test")

    run_parser = subparsers.add_parser("run", help="Run solutions without judging them")
    run_parser.add_argument("solution", nargs="?", default="all")
    run_parser.add_argument("--testset", type=str, default=None)
    run_parser.add_argument("--group", type=str, default=None)
    run_parser.add_argument("--index", type=int, default=None, help="Run on a single test")

    test_parser = subparsers.add_parser(
        "test", help="Run the checker's or validator's own tests, or judge one solution against the main one"
    )
    test_parser.add_argument("what", help="'checker', 'validator' or a solution name")
    test_parser.add_argument("--testset", type=str, default=None, help="Testset for judging a solution")

    subparsers.add_parser("list-testsets", help="List testsets with test counts and groups")
    subparsers.add_parser("list-checkers", help="List the standard checkers with their descriptions")

    dl_parser = subparsers.add_parser("download-testlib", help="Download testlib.h")
    dl_parser.add_argument("--dest", type=str, default=None, help="Target directory (default: workspace)")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = Config.from_env(workspace=args.workspace, problem_file=args.config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        ok = _dispatch(args, config)
    except JudgeKitError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    if not ok:
        sys.exit(1)


def _dispatch(args: argparse.Namespace, config: Config) -> bool:
    root = Path(config.workspace)
    if args.command == "download-testlib":
        dest = download_testlib(args.dest or root, url=config.testlib_url)
        print(f"testlib.h written to {dest}", file=sys.stderr)
        return True
    if args.command == "list-checkers":
        for source, description in list_standard_checkers(Workspace.at(root), config):
            print(f"{source}: {description}")
        return True

    problem = load_problem(root / config.problem_file)
    orchestrator = Orchestrator(config, problem)

    if args.command == "verify":
        report = orchestrator.verify()
        for judgment in report.failures:
            print(describe_judgment(judgment))
        return report.passed
    if args.command == "generate":
        orchestrator.generate_tests(testset=args.testset, group=args.group, index=args.index)
    elif args.command == "validate":
        orchestrator.validate_tests(testset=args.testset, group=args.group, index=args.index)
    elif args.command == "run":
        for record in orchestrator.run_solutions(
            args.solution, testset=args.testset, group=args.group, index=args.index
        ):
            abnormal = [o for o in record.outcomes if o.is_abnormal]
            print(f"{record.program.name} on {record.collection}: {len(record.outcomes)} run, {len(abnormal)} abnormal")
    elif args.command == "test":
        if args.what == "checker":
            orchestrator.test_checker()
        elif args.what == "validator":
            orchestrator.test_validator()
        else:
            report = orchestrator.test_solution(args.what, testset=args.testset)
            for judgment in report.failures:
                print(describe_judgment(judgment))
            return report.passed
    elif args.command == "list-testsets":
        for line in orchestrator.list_testsets():
            print(line)
    return True


if __name__ == "__main__":
    main()
