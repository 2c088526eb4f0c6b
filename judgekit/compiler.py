"""Turns program sources into runnable command lines."""

from __future__ import annotations

import logging
from pathlib import Path

from judgekit.config import Config
from judgekit.errors import CompilationError
from judgekit.executor_base import BoundedExecutor
from judgekit.workspace import Workspace

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".cpp", ".py", ".java")


class Compiler:
    """Compiles each source at most once and hands out the command to run it."""

    def __init__(self, config: Config, workspace: Workspace, executor: BoundedExecutor):
        self.config = config
        self.workspace = workspace
        self.executor = executor
        self._cache: dict[Path, list[str]] = {}

    def to_runnable_command(self, source: str | Path) -> list[str]:
        path = self.workspace.resolve(source)
        if path in self._cache:
            return list(self._cache[path])

        ext = path.suffix.lower()
        if ext not in SUPPORTED_EXTENSIONS:
            raise CompilationError(
                path,
                f"Unsupported file extension {ext or '(none)'!r}. "
                f"Supported: {', '.join(SUPPORTED_EXTENSIONS)}",
            )
        if not path.is_file():
            raise CompilationError(path, "Source file not found")

        if ext == ".cpp":
            command = self._compile_cpp(path)
        elif ext == ".java":
            command = self._compile_java(path)
        else:
            command = [self.config.python, str(path)]

        self._cache[path] = command
        return list(command)

    def _compile_cpp(self, source: Path) -> list[str]:
        exe = self.workspace.build_path(source)
        exe.parent.mkdir(parents=True, exist_ok=True)
        self._run_compiler(
            source,
            [
                self.config.cxx,
                "-O2",
                f"-std={self.config.cxx_std}",
                "-I",
                str(self.workspace.root),
                "-I",
                str(source.parent),
                "-o",
                str(exe),
                str(source),
            ],
        )
        return [str(exe)]

    def _compile_java(self, source: Path) -> list[str]:
        artifact = self.workspace.build_path(source).relative_to(self.workspace.build_dir)
        out_dir = self.workspace.build_dir / "java" / artifact
        out_dir.mkdir(parents=True, exist_ok=True)
        self._run_compiler(source, [self.config.javac, "-d", str(out_dir), str(source)])
        return [self.config.java, "-cp", str(out_dir), source.stem]

    def _run_compiler(self, source: Path, command: list[str]) -> None:
        logger.debug("Compiling %s", source)
        result = self.executor.execute(command, timeout_ms=self.config.compile_timeout_ms)
        if result.timed_out:
            raise CompilationError(source, f"Compiler timed out after {self.config.compile_timeout_ms}ms")
        if result.exit_code != 0:
            raise CompilationError(source, result.stderr.strip() or f"compiler exited with code {result.exit_code}")
        logger.debug("Compiled %s", source)
