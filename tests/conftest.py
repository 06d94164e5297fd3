"""
AION Kernel Test Configuration
==============================

Shared fixtures and test doubles.
"""

import logging
from typing import Optional, Set

import numpy as np
import pytest

from aion_kernel.bus import Bus
from aion_kernel.commands import CommandHandler
from aion_kernel.config import HealthLimits, KernelConfig, PersistenceConfig, SchedulerConfig
from aion_kernel.errors import TelemetryUnavailable
from aion_kernel.health import HealthEngine
from aion_kernel.memory import WorkingMemory
from aion_kernel.models.topology import OrganKind, sample_topology
from aion_kernel.telemetry.base import CpuGpuMetrics, IoMetrics, MemoryMetrics, TelemetryPort

logger = logging.getLogger(__name__)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "scenario: end-to-end health scenarios")
    config.addinivalue_line("markers", "threaded: tests that run the scheduler on a thread")


class StaticTelemetry(TelemetryPort):
    """Returns fixed readings; families listed in `failing` raise."""

    name = "static"

    def __init__(
        self,
        cpu: Optional[CpuGpuMetrics] = None,
        memory: Optional[MemoryMetrics] = None,
        io: Optional[IoMetrics] = None,
    ):
        self.cpu = cpu or CpuGpuMetrics()
        self.memory = memory or MemoryMetrics()
        self.io = io or IoMetrics()
        self.failing: Set[OrganKind] = set()
        self.reads = 0

    def _check(self, kind: OrganKind) -> None:
        self.reads += 1
        if kind in self.failing:
            raise TelemetryUnavailable(kind.value, "sensor offline")

    def read_cpu_gpu_metrics(self) -> CpuGpuMetrics:
        self._check(OrganKind.CORTEX)
        return self.cpu

    def read_memory_metrics(self) -> MemoryMetrics:
        self._check(OrganKind.MEMORY)
        return self.memory

    def read_io_network_metrics(self) -> IoMetrics:
        self._check(OrganKind.IO_BRIDGE)
        return self.io


HOT_CPU = CpuGpuMetrics(cpu_load=1.0, cpu_temp_c=100.0, throttling_events=10, gpu_load=1.0, gpu_mem_util=1.0)


@pytest.fixture
def rng():
    """Reproducible random number generator."""
    return np.random.default_rng(42)


@pytest.fixture
def topology():
    return sample_topology()


@pytest.fixture
def bus():
    return Bus()


@pytest.fixture
def engine():
    return HealthEngine()


@pytest.fixture
def memory():
    return WorkingMemory()


@pytest.fixture
def telemetry():
    return StaticTelemetry()


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / "aion_state.txt"


@pytest.fixture
def handler(topology, bus, engine, memory, state_path):
    return CommandHandler(topology, bus, engine, memory=memory, state_path=state_path)


@pytest.fixture
def fast_config(state_path):
    """Every daemon due every tick, no pacing, no passive recovery."""
    return KernelConfig(
        scheduler=SchedulerConfig(
            tick_interval_sec=0.0,
            heartbeat_interval=1,
            status_interval=1,
            ai_interval=1,
            simulation_interval=1,
        ),
        health=HealthLimits(recovery_step=0.0),
        persistence=PersistenceConfig(state_path=state_path),
    )
