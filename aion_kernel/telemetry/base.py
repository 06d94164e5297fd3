"""
Telemetry Port
==============

Abstraction boundary through which health inputs reach the Health Engine.
One read operation per organ family; each returns an organ-specific bundle.

Implementations must return within a bounded time: the scheduler applies
no timeout of its own.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from aion_kernel.models.levels import SimLevel


@dataclass(frozen=True)
class CpuGpuMetrics:
    """CPU / GPU metrics feeding the cortex."""
    cpu_load: float = 0.15           # 0-1
    cpu_temp_c: float = 45.0
    throttling_events: int = 0
    gpu_load: float = 0.10           # 0-1
    gpu_mem_util: float = 0.08       # 0-1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MemoryMetrics:
    """Memory / storage metrics feeding the memory organ."""
    ram_used_ratio: float = 0.30     # 0-1
    swap_used_ratio: float = 0.0     # 0-1
    major_page_faults: float = 0.0   # per second
    disk_latency_ms: float = 2.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class IoMetrics:
    """IO / network metrics feeding the IO bridge."""
    net_packet_loss: float = 0.0     # 0-1
    net_latency_ms: float = 5.0
    io_queue_depth: float = 0.1      # 0-1
    io_error_rate: float = 0.0       # 0-1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TelemetrySnapshot:
    """Last readings seen by the status daemon. Missing families are None."""
    tick: int
    cpu: Optional[CpuGpuMetrics] = None
    memory: Optional[MemoryMetrics] = None
    io: Optional[IoMetrics] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tick": self.tick,
            "cpu": self.cpu.to_dict() if self.cpu else None,
            "memory": self.memory.to_dict() if self.memory else None,
            "io": self.io.to_dict() if self.io else None,
        }


class TelemetryPort(ABC):
    """Source of raw organ signals."""

    name = "telemetry"

    @abstractmethod
    def read_cpu_gpu_metrics(self) -> CpuGpuMetrics:
        """Read cortex inputs. Raises TelemetryUnavailable on failure."""

    @abstractmethod
    def read_memory_metrics(self) -> MemoryMetrics:
        """Read memory inputs. Raises TelemetryUnavailable on failure."""

    @abstractmethod
    def read_io_network_metrics(self) -> IoMetrics:
        """Read IO bridge inputs. Raises TelemetryUnavailable on failure."""

    def set_sim_level(self, level: SimLevel) -> None:
        """Hook for providers whose output depends on simulation intensity."""
        return None
