"""Data models for hostwatch."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True, frozen=True)
class ProcessInfo:
    """Immutable snapshot of one process, valid only for the cycle that built it."""

    pid: int
    name: str
    cpu_percent: float  # 0.0 - 100.0 * core_count
    memory_percent: float
    command_line: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "pid": self.pid,
            "name": self.name,
            "cpu": self.cpu_percent,
            "memory": self.memory_percent,
            "commandLine": self.command_line,
        }


@dataclass(slots=True, frozen=True)
class Metrics:
    """Point-in-time snapshot of host resource usage."""

    timestamp: str  # ISO-8601
    cpu_percent: float  # Rounded to one decimal
    memory_used_mb: int
    memory_total_mb: int
    disk_used_gb: int
    disk_total_gb: int
    processes: tuple[ProcessInfo, ...] = field(default_factory=tuple)
    cluster_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the snapshot keyed the way the agent reports it as JSON."""
        return {
            "cid": self.cluster_id,
            "timestamp": self.timestamp,
            "cpuUsagePercent": self.cpu_percent,
            "memoryUsedMb": self.memory_used_mb,
            "memoryTotalMb": self.memory_total_mb,
            "diskUsedGb": self.disk_used_gb,
            "diskTotalGb": self.disk_total_gb,
            "processList": [proc.to_dict() for proc in self.processes],
        }
