"""Loading a problem package description (``Config.json``)."""

from __future__ import annotations

import json
from pathlib import Path

from judgekit.errors import ConfigurationError
from judgekit.models import (
    CheckerSpec,
    GeneratedCommand,
    Generator,
    ManualCommand,
    Problem,
    Program,
    Tag,
    TestCommand,
    Testset,
    ValidatorSpec,
)


def load_problem(path: str | Path) -> Problem:
    """Load a problem from a JSON file.

    Only the shape of the file is checked here. Generator names and manual
    test files are checked when the testsets are expanded.
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read problem configuration {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Malformed JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be an object")
    return parse_problem(data, base_dir=path.parent)


def parse_problem(data: dict, base_dir: Path | None = None) -> Problem:
    programs = [_parse_program(s) for s in _list(data, "solutions")]
    if not programs:
        raise ConfigurationError("At least one solution must be configured")
    _reject_duplicates("solution", [p.name for p in programs])
    generators = [
        Generator(name=_str(g, "name"), source=_str(g, "source")) for g in _list(data, "generators", required=False)
    ]

    checker = None
    if data.get("checker") is not None:
        c = _dict(data["checker"], "checker")
        checker = CheckerSpec(source=_str(c, "source"), custom=bool(c.get("custom", False)), tests=c.get("tests"))

    validator = None
    if data.get("validator") is not None:
        v = _dict(data["validator"], "validator")
        validator = ValidatorSpec(source=_str(v, "source"), tests=v.get("tests"))

    testsets = [_parse_testset(t, base_dir) for t in _list(data, "testsets", required=False)]
    _reject_duplicates("testset", [t.name for t in testsets])

    return Problem(
        name=str(data.get("name", "")),
        time_limit_ms=_positive_int(data, "time-limit"),
        memory_limit_mb=_positive_int(data, "memory-limit"),
        programs=programs,
        generators=generators,
        checker=checker,
        validator=validator,
        testsets=testsets,
    )


def _reject_duplicates(kind: str, names: list[str]) -> None:
    seen = set()
    for name in names:
        if name in seen:
            raise ConfigurationError(f"Duplicate {kind} name {name!r}")
        seen.add(name)


def _parse_program(data) -> Program:
    data = _dict(data, "solution")
    name = _str(data, "name")
    raw_tag = data.get("tag", data.get("type"))
    try:
        tag = Tag(str(raw_tag).upper())
    except ValueError:
        valid = ", ".join(t.value for t in Tag)
        raise ConfigurationError(f"Solution {name!r} has unknown tag {raw_tag!r}. Valid tags: {valid}") from None
    return Program(name=name, source=_str(data, "source"), tag=tag)


def _parse_testset(data, base_dir: Path | None) -> Testset:
    data = _dict(data, "testset")
    name = _str(data, "name")
    script_data = data.get("generatorScript") or {}
    commands = [parse_command(c) for c in script_data.get("commands", [])]

    script = script_data.get("script", "") or ""
    if script_data.get("scriptFile"):
        script_path = Path(script_data["scriptFile"])
        if base_dir is not None and not script_path.is_absolute():
            script_path = base_dir / script_path
        try:
            script = "\n".join(part for part in (script, script_path.read_text()) if part)
        except OSError as e:
            raise ConfigurationError(f"Cannot read generation script {script_path}: {e}") from e
    return Testset(name=name, commands=commands, script=script)


def parse_command(data) -> TestCommand:
    data = _dict(data, "generator script command")
    common = {
        "group": data.get("group"),
        "points": data.get("points"),
        "use_in_statements": bool(data.get("useInStatements", False)),
    }
    kind = data.get("type")
    if kind == "manual":
        return ManualCommand(manual_file=_str(data, "manualFile"), **common)
    if kind == "generator":
        rng = data.get("range")
        if rng is not None:
            if (
                not isinstance(rng, list)
                or len(rng) != 2
                or not all(isinstance(x, int) and not isinstance(x, bool) for x in rng)
            ):
                raise ConfigurationError(f"Command range must be two integers, got {rng!r}")
            rng = (rng[0], rng[1])
        return GeneratedCommand(
            generator=str(data.get("generator", "")),
            args=str(data.get("args", "")),
            range=rng,
            **common,
        )
    raise ConfigurationError(f"Unknown command type {kind!r}; expected 'manual' or 'generator'")


def _dict(value, what: str) -> dict:
    if not isinstance(value, dict):
        raise ConfigurationError(f"Each {what} must be an object")
    return value


def _list(data: dict, key: str, required: bool = True) -> list:
    value = data.get(key)
    if value is None:
        if required:
            raise ConfigurationError(f"Missing required field {key!r}")
        return []
    if not isinstance(value, list):
        raise ConfigurationError(f"Field {key!r} must be a list")
    return value


def _str(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigurationError(f"Missing required field {key!r}")
    return value


def _positive_int(data: dict, key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(f"Field {key!r} must be a positive integer")
    return value
