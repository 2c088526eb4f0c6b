"""Test generation scripts: parsing, building and expanding into concrete tests.

A testset is described by structured commands and/or a textual script in the
Polygon mini-language::

    <#list 1..10 as i>
    gen ${i} > $
    </#list>
    gen 100 200 > $

Expansion is a pure transformation. The only filesystem access is the
existence check for manual test files.
"""

from __future__ import annotations

import logging
import os
import re
import shlex
from collections.abc import Iterable, Sequence
from pathlib import Path

from judgekit.errors import ScriptError
from judgekit.models import (
    ConcreteTest,
    GeneratedCommand,
    Generator,
    ManualCommand,
    TestCollection,
    TestCommand,
    Testset,
)
from judgekit.workspace import Workspace

logger = logging.getLogger(__name__)

_LIST_BLOCK = re.compile(
    r"<#list\s+(?P<start>[-\w]+)\s*\.\.\s*(?P<end>[-\w]+)\s+as\s+(?P<var>[A-Za-z_]\w*)\s*>"
    r"(?P<body>.*?)</#list>",
    re.DOTALL,
)
_REDIRECT = re.compile(r"\s*>\s*\$\s*$")
_INT = re.compile(r"-?\d+")
_COMMENT = re.compile(r"<#--.*?-->", re.DOTALL)


def generator_name_map(generators: Iterable[Generator]) -> dict[str, str]:
    """Map every token a script may use for a generator to its configured name.

    Both the configured name and the stem of its source file are accepted.
    """
    mapping: dict[str, str] = {}
    for gen in generators:
        mapping.setdefault(Path(gen.source).stem, gen.name)
    for gen in generators:
        mapping[gen.name] = gen.name
    return mapping


def resolve_generator_token(token: str, name_map: dict[str, str]) -> str:
    if token in name_map:
        return name_map[token]
    lowered = token.lower()
    for key, name in name_map.items():
        if key.lower() == lowered:
            return name
    # Left unresolved; validation reports it with the known names.
    return token


def parse_generation_script(script: str, name_map: dict[str, str] | None = None) -> list[GeneratedCommand]:
    """Parse a textual script into commands, in declaration order.

    Loop blocks with integer literal bounds become range commands when the
    loop variable is the first argument, and are unrolled into single
    commands otherwise. Blocks with symbolic bounds are skipped.
    """
    name_map = name_map or {}
    text = _COMMENT.sub("", script or "")
    commands: list[GeneratedCommand] = []
    pos = 0
    for match in _LIST_BLOCK.finditer(text):
        commands.extend(_parse_lines(text[pos : match.start()], name_map))
        commands.extend(_parse_block(match, name_map))
        pos = match.end()
    commands.extend(_parse_lines(text[pos:], name_map))
    return commands


def _parse_lines(chunk: str, name_map: dict[str, str]) -> list[GeneratedCommand]:
    commands = []
    for raw in chunk.splitlines():
        line = raw.strip()
        if not line:
            continue
        if "<#" in line or "</#" in line:
            raise ScriptError(f"Unsupported script directive: {line}")
        tokens = _split_invocation(line)
        commands.append(
            GeneratedCommand(
                generator=resolve_generator_token(tokens[0], name_map),
                args=shlex.join(tokens[1:]),
            )
        )
    return commands


def _parse_block(match: re.Match, name_map: dict[str, str]) -> list[GeneratedCommand]:
    start, end, var = match.group("start"), match.group("end"), match.group("var")
    if not (_INT.fullmatch(start) and _INT.fullmatch(end)):
        logger.debug("Skipping loop with symbolic bounds %s..%s", start, end)
        return []

    lines = [line.strip() for line in match.group("body").splitlines() if line.strip()]
    if len(lines) != 1:
        raise ScriptError(f"Loop {start}..{end} must contain exactly one generator invocation")
    tokens = _split_invocation(lines[0])
    generator = resolve_generator_token(tokens[0], name_map)
    placeholder = "${" + var + "}"
    args = tokens[1:]

    if args and args[0] == placeholder and placeholder not in args[1:]:
        return [GeneratedCommand(generator=generator, args=shlex.join(args[1:]), range=(int(start), int(end)))]

    # The loop variable is used elsewhere in the arguments: unroll.
    return [
        GeneratedCommand(generator=generator, args=shlex.join(a.replace(placeholder, str(i)) for a in args))
        for i in range(int(start), int(end) + 1)
    ]


def _split_invocation(line: str) -> list[str]:
    if not _REDIRECT.search(line):
        raise ScriptError(f"Script line must redirect to '$': {line}")
    tokens = _REDIRECT.sub("", line).split()
    if not tokens:
        raise ScriptError(f"Script line has no generator: {line}")
    return tokens


def build_generation_script(commands: Sequence[TestCommand]) -> str:
    """Render the range-form generator commands as a textual script.

    Manual and single generator commands are not representable and are left
    out; they travel as structured commands instead.
    """
    blocks = []
    for cmd in commands:
        if not isinstance(cmd, GeneratedCommand) or cmd.range is None:
            continue
        start, end = cmd.range
        invocation = " ".join(part for part in (cmd.generator, "${i}", cmd.args) if part)
        blocks.append(f"<#list {start}..{end} as i>\n{invocation} > $\n</#list>")
    return "\n".join(blocks)


def testset_commands(testset: Testset, name_map: dict[str, str] | None = None) -> list[TestCommand]:
    """Structured commands first, then those parsed from the textual script."""
    return [*testset.commands, *parse_generation_script(testset.script, name_map)]


def validate_commands(
    commands: Sequence[TestCommand], known_generators: Sequence[str], workspace: Workspace
) -> None:
    known = list(known_generators)
    for cmd in commands:
        if isinstance(cmd, ManualCommand):
            path = workspace.resolve(cmd.manual_file)
            if not path.is_file() or not os.access(path, os.R_OK):
                raise ScriptError(f"Manual test file not found: {path}", path=path)
            continue
        if not cmd.generator:
            raise ScriptError("Generator command missing generator name", known_generators=known)
        if cmd.generator not in known:
            raise ScriptError(
                f'Generator "{cmd.generator}" not found in configuration. '
                f"Available generators: {', '.join(known) or '(none)'}",
                generator=cmd.generator,
                known_generators=known,
            )
        try:
            shlex.split(cmd.args)
        except ValueError as e:
            raise ScriptError(
                f"Cannot parse arguments {cmd.args!r} for generator {cmd.generator!r}: {e}",
                generator=cmd.generator,
            ) from e
        if cmd.range is not None and cmd.range[1] < cmd.range[0]:
            raise ScriptError(
                f"Empty range {cmd.range[0]}..{cmd.range[1]} for generator {cmd.generator!r}",
                generator=cmd.generator,
            )


def expand(
    commands: Sequence[TestCommand], known_generators: Sequence[str], workspace: Workspace
) -> list[ConcreteTest]:
    """Validate ``commands`` and turn them into tests numbered from 1.

    Raises ScriptError before producing anything if a command is invalid.
    """
    validate_commands(commands, known_generators, workspace)

    tests: list[ConcreteTest] = []
    for cmd in commands:
        common = {
            "group": cmd.group,
            "points": cmd.points,
            "use_in_statements": cmd.use_in_statements,
        }
        if isinstance(cmd, ManualCommand):
            tests.append(
                ConcreteTest(index=len(tests) + 1, manual_path=workspace.resolve(cmd.manual_file), **common)
            )
        elif cmd.range is not None:
            extra = shlex.split(cmd.args)
            for value in range(cmd.range[0], cmd.range[1] + 1):
                tests.append(
                    ConcreteTest(
                        index=len(tests) + 1,
                        generator=cmd.generator,
                        args=(str(value), *extra),
                        **common,
                    )
                )
        else:
            tests.append(
                ConcreteTest(
                    index=len(tests) + 1,
                    generator=cmd.generator,
                    args=tuple(shlex.split(cmd.args)),
                    **common,
                )
            )
    return tests


def expand_testset(testset: Testset, generators: Sequence[Generator], workspace: Workspace) -> TestCollection:
    commands = testset_commands(testset, generator_name_map(generators))
    tests = expand(commands, [g.name for g in generators], workspace)
    logger.debug("Testset %s expands to %d tests", testset.name, len(tests))
    return TestCollection(name=testset.name, tests=tests)
