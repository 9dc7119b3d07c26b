"""Metric sampling engine for hostwatch."""

import logging
import math
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime

import psutil

from hostwatch.models import Metrics, ProcessInfo

logger = logging.getLogger(__name__)

TOP_N = 5

# Errors raised when a single process vanishes or cannot be read mid-poll
PROCESS_ERRORS = (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess)


def round_half_away(value: float, ndigits: int = 1) -> float:
    """Round to ``ndigits`` decimals, halves away from zero (42.35 -> 42.4)."""
    scale = 10**ndigits
    return math.copysign(math.floor(abs(value) * scale + 0.5), value) / scale


def bytes_to_mb(size: int) -> int:
    """Convert bytes to whole megabytes, truncating."""
    return size // 1024 // 1024


def bytes_to_gb(size: int) -> int:
    """Convert bytes to whole gigabytes, truncating."""
    return size // 1024 // 1024 // 1024


def top_processes(processes: Iterable[ProcessInfo], limit: int = TOP_N) -> list[ProcessInfo]:
    """
    Rank processes by CPU usage, highest first, and keep at most ``limit``.

    Returns every process when fewer than ``limit`` are available.
    """
    ranked = sorted(processes, key=lambda p: p.cpu_percent, reverse=True)
    return ranked[:limit]


class Sampler:
    """
    Collects one Metrics snapshot per call using psutil.

    CPU, memory and disk provider errors propagate to the caller. Errors for
    individual processes never do: unreadable processes are dropped and
    unresolvable names or command lines become empty strings.
    """

    def __init__(
        self,
        cpu_interval: float = 1.0,
        top_n: int = TOP_N,
        disk_path: str = "/",
    ) -> None:
        """
        Initialize the Sampler.

        Args:
            cpu_interval: Seconds to block while measuring aggregate CPU usage.
            top_n: How many processes to keep in the ranking.
            disk_path: Mount point whose usage is reported.
        """
        self._cpu_interval = max(0.0, cpu_interval)
        self._top_n = top_n
        self._disk_path = disk_path

    @property
    def cpu_interval(self) -> float:
        return self._cpu_interval

    @property
    def top_n(self) -> int:
        return self._top_n

    def collect(self, cluster_id: str = "") -> Metrics:
        """Collect a snapshot of the current host state."""
        self.prime_processes()
        # Blocks for the measurement window; per-process counters cover it too
        cpu_percent = psutil.cpu_percent(interval=self._cpu_interval)
        mem = psutil.virtual_memory()
        disk = psutil.disk_usage(self._disk_path)

        ranked = top_processes(self.collect_processes(), self._top_n)
        processes = tuple(
            replace(proc, command_line=self.resolve_command_line(proc.pid)) for proc in ranked
        )

        metrics = Metrics(
            timestamp=datetime.now().astimezone().isoformat(timespec="seconds"),
            cpu_percent=round_half_away(cpu_percent),
            memory_used_mb=bytes_to_mb(mem.used),
            memory_total_mb=bytes_to_mb(mem.total),
            disk_used_gb=bytes_to_gb(disk.used),
            disk_total_gb=bytes_to_gb(disk.total),
            processes=processes,
            cluster_id=cluster_id,
        )
        logger.debug(
            "Sampled cpu=%.1f%% mem=%d/%dMB disk=%d/%dGB processes=%d",
            metrics.cpu_percent,
            metrics.memory_used_mb,
            metrics.memory_total_mb,
            metrics.disk_used_gb,
            metrics.disk_total_gb,
            len(processes),
        )
        return metrics

    def prime_processes(self) -> None:
        """
        Start per-process CPU counters for every visible process.

        psutil returns 0.0 from the first cpu_percent() call on a Process.
        process_iter() caches Process objects, so the reads in
        collect_processes() then measure the time since this call.
        """
        for proc in psutil.process_iter():
            try:
                proc.cpu_percent()
            except psutil.Error:
                continue

    def collect_processes(self) -> list[ProcessInfo]:
        """
        Collect CPU and memory usage for every visible process.

        Each cpu_percent() covers the time since prime_processes() or the
        previous collection. Processes whose CPU or memory usage cannot be
        read are skipped. The result is unsorted and carries no command lines.
        """
        processes: list[ProcessInfo] = []
        skipped = 0

        for proc in psutil.process_iter():
            try:
                with proc.oneshot():
                    try:
                        name = proc.name() or ""
                    except psutil.Error:
                        name = ""
                    cpu_percent = proc.cpu_percent()
                    memory_percent = proc.memory_percent()
            except PROCESS_ERRORS:
                skipped += 1
                continue

            processes.append(
                ProcessInfo(
                    pid=proc.pid,
                    name=name,
                    cpu_percent=cpu_percent,
                    memory_percent=memory_percent,
                )
            )

        if skipped:
            logger.debug("Skipped %d unreadable processes", skipped)
        return processes

    def resolve_command_line(self, pid: int) -> str:
        """Look up a process command line, or "" when it cannot be read."""
        try:
            return " ".join(psutil.Process(pid).cmdline())
        except psutil.Error:
            return ""
