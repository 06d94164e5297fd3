"""
Telemetry providers.

    sim   - SimulatedTelemetry (default)
    real  - PsutilTelemetry, host metrics via psutil
"""

from __future__ import annotations

from aion_kernel.models.levels import SimLevel
from aion_kernel.telemetry.base import (
    CpuGpuMetrics,
    IoMetrics,
    MemoryMetrics,
    TelemetryPort,
    TelemetrySnapshot,
)
from aion_kernel.telemetry.sim import SimulatedTelemetry

PROVIDERS = ("sim", "real")


def create_telemetry(kind: str = "sim", level: SimLevel = SimLevel.OFF, seed: int = 0) -> TelemetryPort:
    """Build a telemetry provider by name."""
    kind = kind.strip().lower()
    if kind == "sim":
        return SimulatedTelemetry(level=level, seed=seed)
    if kind == "real":
        from aion_kernel.telemetry.real import PsutilTelemetry
        return PsutilTelemetry()
    raise ValueError(f"unknown telemetry provider '{kind}' (expected one of {PROVIDERS})")


__all__ = [
    "CpuGpuMetrics", "MemoryMetrics", "IoMetrics",
    "TelemetryPort", "TelemetrySnapshot",
    "SimulatedTelemetry",
    "create_telemetry",
]
