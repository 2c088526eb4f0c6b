"""Tests for the workspace layout."""

from __future__ import annotations

from judgekit.workspace import Workspace


class TestBuildPath:
    def test_source_under_root_mirrors_location(self, tmp_path):
        ws = Workspace.at(tmp_path / "problem")
        source = ws.root / "solutions" / "main.cpp"
        assert ws.build_path(source) == ws.build_dir / "solutions" / "main"

    def test_external_sources_with_same_name_do_not_collide(self, tmp_path):
        ws = Workspace.at(tmp_path / "problem")
        first = ws.build_path(tmp_path / "a" / "gen.cpp")
        second = ws.build_path(tmp_path / "b" / "gen.cpp")
        assert first != second
        assert first.name == second.name == "gen"
        assert first.is_relative_to(ws.build_dir / "external")
        assert second.is_relative_to(ws.build_dir / "external")

    def test_external_path_is_stable(self, tmp_path):
        ws = Workspace.at(tmp_path / "problem")
        source = tmp_path / "shared" / "checker.cpp"
        assert ws.build_path(source) == ws.build_path(source)


class TestLayout:
    def test_output_file(self, tmp_path):
        ws = Workspace.at(tmp_path)
        assert ws.output_file("main", "tests", 3) == ws.root / "solutions-outputs" / "main" / "tests" / "output_test3.txt"

    def test_resolve_relative_against_root(self, tmp_path):
        ws = Workspace.at(tmp_path)
        assert ws.resolve("solutions/main.cpp") == tmp_path.resolve() / "solutions" / "main.cpp"
