"""On-disk layout of a problem workspace.

Every component receives a ``Workspace`` explicitly; nothing resolves paths
against the process working directory.

    <root>/testsets/<testset>/test<i>.txt                   test inputs
    <root>/solutions-outputs/<solution>/<testset>/output_test<i>.txt
    <root>/build/...                                        compiled artifacts
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Workspace:
    root: Path

    @classmethod
    def at(cls, path: str | Path) -> Workspace:
        return cls(Path(path).expanduser().resolve())

    def resolve(self, relative: str | Path) -> Path:
        path = Path(relative).expanduser()
        if not path.is_absolute():
            path = self.root / path
        return path.resolve()

    @property
    def build_dir(self) -> Path:
        return self.root / "build"

    def build_path(self, source: Path) -> Path:
        """Artifact path for ``source``, mirroring its location under the root."""
        try:
            relative = source.relative_to(self.root)
        except ValueError:
            # Keyed by the parent directory so same-named sources do not collide.
            digest = hashlib.sha1(str(source.parent).encode()).hexdigest()[:10]
            relative = Path("external") / digest / source.name
        return self.build_dir / relative.with_suffix("")

    def testset_dir(self, testset: str) -> Path:
        return self.root / "testsets" / testset

    def test_input(self, testset: str, index: int) -> Path:
        return self.testset_dir(testset) / f"test{index}.txt"

    def output_dir(self, program: str, testset: str) -> Path:
        return self.root / "solutions-outputs" / program / testset

    def output_file(self, program: str, testset: str, index: int) -> Path:
        return self.output_dir(program, testset) / f"output_test{index}.txt"
