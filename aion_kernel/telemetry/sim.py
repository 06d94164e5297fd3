"""
Simulated Telemetry
===================

Phase-driven synthetic readings. Each read advances a 60-step phase; the
shape of the curves depends on the current simulation level:

    off   - flat nominal readings
    low   - mild oscillation, no adverse signals
    high  - hot CPU, heavy RAM, occasional throttling and packet loss

A seeded numpy generator adds small jitter so runs are reproducible.
"""

from __future__ import annotations

import numpy as np

from aion_kernel.models.levels import SimLevel
from aion_kernel.telemetry.base import (
    CpuGpuMetrics,
    IoMetrics,
    MemoryMetrics,
    TelemetryPort,
)

PHASE_STEPS = 60


class SimulatedTelemetry(TelemetryPort):
    """Synthetic telemetry provider."""

    name = "sim"

    def __init__(self, level: SimLevel = SimLevel.OFF, seed: int = 0, jitter: float = 0.01):
        self.level = level
        self.jitter = jitter
        self._rng = np.random.default_rng(seed)
        self._step = 0

    def set_sim_level(self, level: SimLevel) -> None:
        self.level = level

    def _next_phase(self) -> float:
        self._step += 1
        return (self._step % PHASE_STEPS) / PHASE_STEPS

    def _noise(self) -> float:
        if self.jitter <= 0:
            return 0.0
        return float(self._rng.normal(0.0, self.jitter))

    @staticmethod
    def _ratio(value: float) -> float:
        return float(np.clip(value, 0.0, 1.0))

    def read_cpu_gpu_metrics(self) -> CpuGpuMetrics:
        p = self._next_phase()
        if self.level is SimLevel.OFF:
            return CpuGpuMetrics()
        if self.level is SimLevel.LOW:
            return CpuGpuMetrics(
                cpu_load=self._ratio(0.2 + 0.25 * abs(p - 0.5) + self._noise()),
                cpu_temp_c=45.0 + p * 10.0,
                throttling_events=0,
                gpu_load=self._ratio(0.15 + 0.2 * p + self._noise()),
                gpu_mem_util=self._ratio(0.10 + 0.15 * (1.0 - p)),
            )
        cpu_temp = 55.0 + p * 25.0
        return CpuGpuMetrics(
            cpu_load=self._ratio(0.4 + 0.5 * p + self._noise()),
            cpu_temp_c=cpu_temp,
            throttling_events=1 if cpu_temp > 75.0 else 0,
            gpu_load=self._ratio(0.5 + 0.45 * (1.0 - p) + self._noise()),
            gpu_mem_util=self._ratio(0.4 + 0.4 * p),
        )

    def read_memory_metrics(self) -> MemoryMetrics:
        p = self._next_phase()
        if self.level is SimLevel.OFF:
            return MemoryMetrics()
        if self.level is SimLevel.LOW:
            return MemoryMetrics(
                ram_used_ratio=self._ratio(0.35 + 0.15 * p + self._noise()),
                swap_used_ratio=0.0,
                major_page_faults=0.5,
                disk_latency_ms=3.0 + 2.0 * p,
            )
        return MemoryMetrics(
            ram_used_ratio=self._ratio(0.6 + 0.35 * p + self._noise()),
            swap_used_ratio=0.0,
            major_page_faults=2.0 + 5.0 * p,
            disk_latency_ms=5.0 + 12.0 * p,
        )

    def read_io_network_metrics(self) -> IoMetrics:
        p = self._next_phase()
        if self.level is not SimLevel.HIGH:
            return IoMetrics()
        return IoMetrics(
            net_packet_loss=self._ratio(0.02 * p + abs(self._noise()) * 0.1),
            net_latency_ms=5.0 + 40.0 * p,
            io_queue_depth=self._ratio(0.1 + 0.6 * p),
            io_error_rate=0.0,
        )
