"""Configuration for judgekit, loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_TESTLIB_URL = "https://raw.githubusercontent.com/MikeMirzayanov/testlib/master/testlib.h"


@dataclass
class Config:
    workspace: str = "."
    problem_file: str = "Config.json"
    compile_timeout_ms: int = 10000
    tool_timeout_ms: int = 10000  # generators and validators
    tool_memory_mb: int = 1024
    checker_timeout_ms: int | None = None  # None: use the problem's limits
    checker_memory_mb: int | None = None
    cxx: str = "g++"
    cxx_std: str = "c++17"
    python: str = "python3"
    java: str = "java"
    javac: str = "javac"
    checkers_dir: str = "checkers"  # standard (non-custom) checkers, relative to workspace
    testlib_url: str = DEFAULT_TESTLIB_URL
    validate_inputs: bool = True

    @classmethod
    def from_env(cls, **overrides) -> Config:
        kwargs: dict = {}
        env_map: dict[str, tuple[str, type]] = {
            "JUDGEKIT_WORKSPACE": ("workspace", str),
            "JUDGEKIT_PROBLEM_FILE": ("problem_file", str),
            "JUDGEKIT_COMPILE_TIMEOUT_MS": ("compile_timeout_ms", int),
            "JUDGEKIT_TOOL_TIMEOUT_MS": ("tool_timeout_ms", int),
            "JUDGEKIT_TOOL_MEMORY_MB": ("tool_memory_mb", int),
            "JUDGEKIT_CHECKER_TIMEOUT_MS": ("checker_timeout_ms", int),
            "JUDGEKIT_CHECKER_MEMORY_MB": ("checker_memory_mb", int),
            "JUDGEKIT_CXX": ("cxx", str),
            "JUDGEKIT_CXX_STD": ("cxx_std", str),
            "JUDGEKIT_PYTHON": ("python", str),
            "JUDGEKIT_JAVA": ("java", str),
            "JUDGEKIT_JAVAC": ("javac", str),
            "JUDGEKIT_CHECKERS_DIR": ("checkers_dir", str),
            "JUDGEKIT_TESTLIB_URL": ("testlib_url", str),
        }
        for env_var, (field_name, conv) in env_map.items():
            val = os.environ.get(env_var)
            if val is not None:
                kwargs[field_name] = conv(val)
        # JUDGEKIT_CHECK_INPUTS: "0" or "false" skips input validation during verify
        check_val = os.environ.get("JUDGEKIT_CHECK_INPUTS")
        if check_val is not None:
            kwargs["validate_inputs"] = check_val.lower() not in ("0", "false", "no")
        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        config = cls(**kwargs)
        for name in ("compile_timeout_ms", "tool_timeout_ms", "tool_memory_mb"):
            if getattr(config, name) <= 0:
                raise ValueError(f"{name} must be positive")
        return config
