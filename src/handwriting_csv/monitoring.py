from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import psutil

from .logging import get_logger

# Cgroup v2 paths
_CGROUP_MEM_CURRENT: Path = Path("/sys/fs/cgroup/memory.current")
_CGROUP_MEM_MAX: Path = Path("/sys/fs/cgroup/memory.max")


@dataclass(frozen=True)
class MemoryUsage:
    """Memory usage of the current process against the effective limit."""

    rss_bytes: int
    limit_bytes: int
    percent: float


def _read_cgroup_file(path: Path) -> str:
    return path.read_text(encoding="utf-8").strip()


def _detect_cgroup_limit() -> int | None:
    """Return the cgroup v2 memory limit, or None when unlimited or unavailable."""
    if not (_CGROUP_MEM_CURRENT.exists() and _CGROUP_MEM_MAX.exists()):
        return None
    raw = _read_cgroup_file(_CGROUP_MEM_MAX)
    if raw == "max":
        return None
    return int(raw)


def get_memory_usage() -> MemoryUsage:
    rss = int(psutil.Process(os.getpid()).memory_info().rss)
    limit = _detect_cgroup_limit()
    if limit is None:
        limit = int(psutil.virtual_memory().total)
    pct = (100.0 * rss / limit) if limit > 0 else 0.0
    return MemoryUsage(rss_bytes=rss, limit_bytes=limit, percent=pct)


def log_memory_usage(*, context: str = "") -> None:
    usage = get_memory_usage()
    get_logger().info(
        "memory_usage context=%s rss_mb=%d limit_mb=%d pct=%.1f",
        context or "none",
        usage.rss_bytes // (1024 * 1024),
        usage.limit_bytes // (1024 * 1024),
        usage.percent,
    )


def log_system_info() -> None:
    """Log system CPU and memory information at startup."""
    log = get_logger()
    cpu_logical = int(psutil.cpu_count(logical=True) or 0)
    cpu_physical_val = psutil.cpu_count(logical=False)
    cpu_physical = int(cpu_physical_val) if cpu_physical_val is not None else 0

    limit = _detect_cgroup_limit()
    if limit is not None:
        log.info(
            "system_info "
            f"cpu_logical={cpu_logical} cpu_physical={cpu_physical} "
            f"cgroup_mem_limit_mb={limit // (1024 * 1024)}"
        )
        return
    vm = psutil.virtual_memory()
    log.info(
        "system_info "
        f"cpu_logical={cpu_logical} cpu_physical={cpu_physical} "
        f"system_total_mb={int(vm.total // (1024 * 1024))}"
    )


__all__ = [
    "MemoryUsage",
    "get_memory_usage",
    "log_memory_usage",
    "log_system_info",
]
