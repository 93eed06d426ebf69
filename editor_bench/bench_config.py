"""Run configuration shared by the fixture generator, runner and compare step."""
from __future__ import annotations

import os
import pathlib
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

BACKEND_AUTO = "auto"
BACKEND_STATISTICAL = "statistical"
BACKEND_MANUAL = "manual"
BACKEND_CHOICES = (BACKEND_AUTO, BACKEND_STATISTICAL, BACKEND_MANUAL)

DEFAULT_TARGET = "nvim"
DEFAULT_EXIT_ARGS = ["+qa!"]

FIXTURE_DIR_NAME = ".test-files"
RESULTS_DIR_NAME = ".benchmark-results"


def project_root() -> pathlib.Path:
    override = os.environ.get("EDITOR_BENCH_HOME")
    if override:
        return pathlib.Path(override).expanduser().resolve()
    return pathlib.Path(__file__).resolve().parents[1]


@dataclass
class FixtureSizes:
    json_target_bytes: int = 2 * 1024 * 1024
    log_target_bytes: int = 2 * 1024 * 1024
    code_target_lines: int = 10_000


@dataclass
class BenchConfig:
    fixture_dir: pathlib.Path
    results_root: pathlib.Path
    run_count: int = 10
    warmup_count: int = 2
    timeout_s: float = 30.0
    backend: str = BACKEND_AUTO
    target: str = DEFAULT_TARGET
    exit_args: List[str] = field(default_factory=lambda: list(DEFAULT_EXIT_ARGS))
    sizes: FixtureSizes = field(default_factory=FixtureSizes)

    @classmethod
    def default(cls, base: Optional[pathlib.Path] = None, **overrides: Any) -> "BenchConfig":
        root = base if base is not None else project_root()
        overrides.setdefault("target", os.environ.get("EDITOR_BENCH_TARGET") or DEFAULT_TARGET)
        return cls(
            fixture_dir=root / FIXTURE_DIR_NAME,
            results_root=root / RESULTS_DIR_NAME,
            **overrides,
        )

    def validate(self) -> None:
        if self.run_count <= 0:
            raise ValueError("run_count must be > 0")
        if self.warmup_count < 0:
            raise ValueError("warmup_count must be >= 0")
        if self.timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")
        if self.backend not in BACKEND_CHOICES:
            raise ValueError(f"unknown backend {self.backend!r} (expected one of {', '.join(BACKEND_CHOICES)})")
        if not self.target:
            raise ValueError("target must not be empty")

    def target_argv(self, path: Optional[pathlib.Path] = None) -> List[str]:
        cmd = [self.target, *self.exit_args]
        if path is not None:
            cmd.append(str(path))
        return cmd

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["fixture_dir"] = str(self.fixture_dir)
        out["results_root"] = str(self.results_root)
        return out
