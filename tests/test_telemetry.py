"""
Tests for telemetry providers.
"""

import psutil
import pytest

from aion_kernel.errors import TelemetryUnavailable
from aion_kernel.models.levels import SimLevel
from aion_kernel.telemetry import SimulatedTelemetry, create_telemetry
from aion_kernel.telemetry.base import CpuGpuMetrics, IoMetrics, MemoryMetrics, TelemetrySnapshot
from aion_kernel.telemetry.real import PsutilTelemetry


class TestSimulatedTelemetry:
    """Test the phase-driven simulator."""

    def test_off_is_nominal(self):
        sim = SimulatedTelemetry(SimLevel.OFF)
        assert sim.read_cpu_gpu_metrics() == CpuGpuMetrics()
        assert sim.read_memory_metrics() == MemoryMetrics()
        assert sim.read_io_network_metrics() == IoMetrics()

    def test_high_throttles_somewhere_in_phase(self):
        sim = SimulatedTelemetry(SimLevel.HIGH, seed=1)
        readings = [sim.read_cpu_gpu_metrics() for _ in range(60)]
        assert any(r.throttling_events > 0 for r in readings)
        assert max(r.cpu_temp_c for r in readings) > 75.0

    def test_ratios_bounded(self):
        sim = SimulatedTelemetry(SimLevel.HIGH, seed=2, jitter=0.5)
        for _ in range(120):
            cpu = sim.read_cpu_gpu_metrics()
            mem = sim.read_memory_metrics()
            io = sim.read_io_network_metrics()
            for value in (cpu.cpu_load, cpu.gpu_load, mem.ram_used_ratio, io.net_packet_loss):
                assert 0.0 <= value <= 1.0

    def test_seeded_reproducible(self):
        a = SimulatedTelemetry(SimLevel.LOW, seed=9)
        b = SimulatedTelemetry(SimLevel.LOW, seed=9)
        assert [a.read_cpu_gpu_metrics() for _ in range(10)] == [b.read_cpu_gpu_metrics() for _ in range(10)]

    def test_set_sim_level(self):
        sim = SimulatedTelemetry()
        sim.set_sim_level(SimLevel.HIGH)
        assert sim.level is SimLevel.HIGH


class TestFactory:

    def test_sim(self):
        assert isinstance(create_telemetry("sim", SimLevel.LOW), SimulatedTelemetry)

    def test_real(self):
        assert isinstance(create_telemetry(" REAL "), PsutilTelemetry)

    def test_unknown(self):
        with pytest.raises(ValueError, match="unknown telemetry provider"):
            create_telemetry("quantum")


class TestPsutilTelemetry:
    """Test the host adapter."""

    def test_memory_ratios(self):
        metrics = PsutilTelemetry().read_memory_metrics()
        assert 0.0 <= metrics.ram_used_ratio <= 1.0
        assert 0.0 <= metrics.swap_used_ratio <= 1.0

    def test_cpu_fallback_temperature(self, monkeypatch):
        monkeypatch.setattr(psutil, "sensors_temperatures", lambda: {}, raising=False)
        metrics = PsutilTelemetry(fallback_temp_c=42.0).read_cpu_gpu_metrics()
        assert metrics.cpu_temp_c == 42.0
        assert 0.0 <= metrics.cpu_load <= 1.0

    def test_failure_wrapped(self, monkeypatch):
        def broken():
            raise OSError("no /proc")

        monkeypatch.setattr(psutil, "virtual_memory", broken)
        with pytest.raises(TelemetryUnavailable) as excinfo:
            PsutilTelemetry().read_memory_metrics()
        assert excinfo.value.organ == "memory"

    def test_missing_net_counters(self, monkeypatch):
        monkeypatch.setattr(psutil, "net_io_counters", lambda: None)
        with pytest.raises(TelemetryUnavailable):
            PsutilTelemetry().read_io_network_metrics()


class TestSnapshot:

    def test_to_dict(self):
        snap = TelemetrySnapshot(tick=3, cpu=CpuGpuMetrics())
        data = snap.to_dict()
        assert data["tick"] == 3
        assert data["cpu"]["cpu_temp_c"] == 45.0
        assert data["memory"] is None
