"""Tests for generation script parsing, building and expansion."""

from __future__ import annotations

import pytest

from judgekit.errors import ScriptError
from judgekit.models import GeneratedCommand, Generator, ManualCommand, Testset
from judgekit.script import (
    build_generation_script,
    expand,
    expand_testset,
    generator_name_map,
    parse_generation_script,
    resolve_generator_token,
)
from judgekit.workspace import Workspace


@pytest.fixture
def ws(tmp_path):
    return Workspace.at(tmp_path)


class TestParse:
    def test_single_line_loop(self):
        cmds = parse_generation_script("<#list 1..3 as i> gen ${i} > $ </#list>", {"gen": "gen"})
        assert cmds == [GeneratedCommand(generator="gen", range=(1, 3))]

    def test_multi_line_loop_with_extra_args(self):
        script = "<#list 5..9 as k>\n  gen ${k} 100 > $\n</#list>\n"
        [cmd] = parse_generation_script(script, {"gen": "gen"})
        assert cmd.range == (5, 9)
        assert cmd.args == "100"

    def test_declaration_order_preserved(self):
        script = "gen 7 > $\n<#list 1..2 as i>\nrnd ${i} > $\n</#list>\ngen 8 > $"
        cmds = parse_generation_script(script, {"gen": "gen", "rnd": "rnd"})
        assert [(c.generator, c.args, c.range) for c in cmds] == [
            ("gen", "7", None),
            ("rnd", "", (1, 2)),
            ("gen", "8", None),
        ]

    def test_symbolic_bounds_are_skipped(self):
        assert parse_generation_script("<#list 1..n as i>\ngen ${i} > $\n</#list>") == []

    def test_loop_variable_elsewhere_unrolls(self):
        cmds = parse_generation_script("<#list 1..3 as i>\ngen 10 ${i} > $\n</#list>", {"gen": "gen"})
        assert [c.args for c in cmds] == ["10 1", "10 2", "10 3"]
        assert all(c.range is None for c in cmds)

    def test_line_without_redirect_is_rejected(self):
        with pytest.raises(ScriptError, match="redirect"):
            parse_generation_script("gen 1 2 3")

    def test_comments_ignored(self):
        cmds = parse_generation_script("<#-- samples -->\ngen 1 > $", {"gen": "gen"})
        assert len(cmds) == 1


class TestGeneratorTokens:
    def test_exact_match_first(self):
        name_map = {"Gen": "upper", "gen": "lower"}
        assert resolve_generator_token("gen", name_map) == "lower"
        assert resolve_generator_token("Gen", name_map) == "upper"

    def test_case_insensitive_fallback(self):
        assert resolve_generator_token("GEN", {"gen": "gen"}) == "gen"

    def test_unknown_token_passes_through(self):
        assert resolve_generator_token("other", {"gen": "gen"}) == "other"

    def test_source_stem_maps_to_name(self):
        name_map = generator_name_map([Generator(name="random", source="generators/gen_random.cpp")])
        assert resolve_generator_token("gen_random", name_map) == "random"
        assert resolve_generator_token("random", name_map) == "random"


class TestBuild:
    def test_only_range_commands_rendered(self):
        commands = [
            GeneratedCommand(generator="gen", range=(1, 4)),
            ManualCommand(manual_file="manual/1.txt"),
            GeneratedCommand(generator="gen", args="5 6"),
            GeneratedCommand(generator="big", args="max", range=(2, 3)),
        ]
        script = build_generation_script(commands)
        assert "manual" not in script
        assert "5 6" not in script
        assert "<#list 1..4 as i>\ngen ${i} > $\n</#list>" in script
        assert "big ${i} max > $" in script

    def test_range_commands_survive_build_then_parse(self):
        commands = [
            GeneratedCommand(generator="gen", range=(1, 4)),
            GeneratedCommand(generator="big", args="max", range=(2, 3)),
        ]
        reparsed = parse_generation_script(build_generation_script(commands), {"gen": "gen", "big": "big"})
        assert reparsed == commands


class TestExpand:
    def test_script_scenario(self, ws):
        commands = parse_generation_script("<#list 1..3 as i> gen ${i} > $ </#list>", {"gen": "gen"})
        tests = expand(commands, ["gen"], ws)
        assert [t.index for t in tests] == [1, 2, 3]
        assert [t.args for t in tests] == [("1",), ("2",), ("3",)]
        assert all(t.generator == "gen" for t in tests)

    def test_count_is_sum_of_ranges_plus_manual(self, ws, tmp_path):
        (tmp_path / "m1.txt").write_text("1\n")
        (tmp_path / "m2.txt").write_text("2\n")
        commands = [
            ManualCommand(manual_file="m1.txt", group="samples"),
            GeneratedCommand(generator="gen", range=(3, 7), group="main", points=2.0),
            ManualCommand(manual_file="m2.txt"),
            GeneratedCommand(generator="gen", args="1 2"),
        ]
        tests = expand(commands, ["gen"], ws)
        assert len(tests) == 1 + 5 + 1 + 1
        assert [t.index for t in tests] == list(range(1, 9))
        assert tests[0].is_manual and tests[0].group == "samples"
        assert tests[1].args == ("3",) and tests[5].args == ("7",)
        assert all(t.group == "main" and t.points == 2.0 for t in tests[1:6])
        assert tests[6].manual_path == tmp_path.resolve() / "m2.txt"
        assert tests[7].args == ("1", "2")

    def test_manual_missing_names_absolute_path(self, ws, tmp_path):
        with pytest.raises(ScriptError) as exc:
            expand([ManualCommand(manual_file="manual/nope.txt")], ["gen"], ws)
        expected = tmp_path.resolve() / "manual" / "nope.txt"
        assert str(expected) in str(exc.value)
        assert exc.value.path == expected

    def test_unknown_generator_names_known_list(self, ws):
        with pytest.raises(ScriptError) as exc:
            expand([GeneratedCommand(generator="gne", range=(1, 2))], ["gen", "rand"], ws)
        assert '"gne"' in str(exc.value)
        assert "gen, rand" in str(exc.value)
        assert exc.value.generator == "gne"
        assert exc.value.known_generators == ["gen", "rand"]

    def test_validation_happens_before_expansion(self, ws):
        commands = [GeneratedCommand(generator="gen", range=(1, 3)), GeneratedCommand(generator="missing")]
        with pytest.raises(ScriptError):
            expand(commands, ["gen"], ws)

    def test_empty_range_rejected(self, ws):
        with pytest.raises(ScriptError, match="Empty range"):
            expand([GeneratedCommand(generator="gen", range=(5, 4))], ["gen"], ws)

    def test_unbalanced_quote_in_args_rejected(self, ws):
        commands = [GeneratedCommand(generator="gen", range=(1, 2)), GeneratedCommand(generator="gen", args="it's")]
        with pytest.raises(ScriptError) as exc:
            expand(commands, ["gen"], ws)
        assert "\"it's\"" in str(exc.value)
        assert "'gen'" in str(exc.value)
        assert exc.value.generator == "gen"

    def test_unbalanced_quote_in_testset_rejected(self, ws):
        testset = Testset(name="tests", commands=[GeneratedCommand(generator="gen", args="\"10")])
        with pytest.raises(ScriptError, match="Cannot parse arguments"):
            expand_testset(testset, [Generator(name="gen", source="gen.py")], ws)

    def test_expansion_is_stable(self, ws):
        commands = [GeneratedCommand(generator="gen", range=(1, 5)), GeneratedCommand(generator="gen", args="x")]
        assert expand(commands, ["gen"], ws) == expand(commands, ["gen"], ws)

    def test_expand_testset_combines_commands_and_script(self, ws):
        testset = Testset(
            name="tests",
            commands=[GeneratedCommand(generator="random", args="1")],
            script="<#list 1..2 as i>\nGEN_RANDOM ${i} > $\n</#list>",
        )
        collection = expand_testset(testset, [Generator(name="random", source="gen_random.py")], ws)
        assert collection.name == "tests"
        assert len(collection.tests) == 3
        assert [t.generator for t in collection.tests] == ["random"] * 3
