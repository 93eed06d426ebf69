"""Shared fixtures for editor-bench tests.

For importable helpers, use:
  from helpers import StubBackend, write_run, SCENARIOS
"""

from unittest.mock import patch

import pytest

from editor_bench.bench_config import BenchConfig, FixtureSizes


@pytest.fixture
def small_sizes():
    """Fixture sizes small enough to keep generation fast."""
    return FixtureSizes(json_target_bytes=20_000, log_target_bytes=12_000, code_target_lines=400)


@pytest.fixture
def bench_config(tmp_path, small_sizes):
    return BenchConfig(
        fixture_dir=tmp_path / ".test-files",
        results_root=tmp_path / ".benchmark-results",
        run_count=3,
        warmup_count=1,
        timeout_s=5.0,
        target="fake-editor",
        exit_args=["+qa!"],
        sizes=small_sizes,
    )


@pytest.fixture(autouse=True)
def no_target_version_lookup():
    """Keep manifest metadata from spawning the real editor."""
    with patch("editor_bench.bench_suite.target_version", return_value=None):
        yield
