"""Cold-start and file-open latency benchmarks for terminal text editors."""

__version__ = "0.1.0"
