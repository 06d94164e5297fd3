"""
Tests for the kernel daemons.
"""

from concurrent.futures import Future

import pytest

from aion_kernel.commands import CommandOp, CommandRequest
from aion_kernel.config import SimIntensity, SimulationConfig
from aion_kernel.daemons import (
    AiCortexDaemon,
    CommandDaemon,
    HeartbeatDaemon,
    SimulationDaemon,
    StatusDaemon,
    decide_policy,
)
from aion_kernel.memory import GLOBAL_SCOPE, MemoryScope
from aion_kernel.models.levels import Policy, SimLevel
from aion_kernel.models.pulse import PulseKind
from aion_kernel.models.topology import OrganKind
from aion_kernel.telemetry.base import MemoryMetrics

from conftest import HOT_CPU, StaticTelemetry


class TestDaemonBase:
    """Test interval bookkeeping."""

    def test_due(self):
        daemon = HeartbeatDaemon(interval=3)
        assert not daemon.due(1)
        assert not daemon.due(2)
        assert daemon.due(3)
        daemon.mark_run(3)
        assert not daemon.due(5)
        assert daemon.due(6)
        assert daemon.get_stats()["runs"] == 1

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            HeartbeatDaemon(interval=0)


class TestHeartbeat:

    def test_beats_numbered(self, topology, bus):
        daemon = HeartbeatDaemon(interval=1)
        daemon.tick(topology, bus, 1)
        daemon.tick(topology, bus, 2)
        assert [p.message for p in bus.pending()] == ["beat #1", "beat #2"]


class TestStatusDaemon:
    """Test telemetry ingestion."""

    def test_nominal_cycle(self, topology, bus, engine, telemetry):
        daemon = StatusDaemon(telemetry, engine, interval=1)
        daemon.tick(topology, bus, 1)
        kinds = [p.kind for p in bus.pending()]
        assert kinds == [PulseKind.STATUS]
        assert daemon.last_snapshot.tick == 1
        assert bus.current_awareness() == pytest.approx(1.0)

    def test_hot_cpu_lowers_cortex(self, topology, bus, engine):
        daemon = StatusDaemon(StaticTelemetry(cpu=HOT_CPU), engine, interval=1)
        for t in range(1, 5):
            daemon.tick(topology, bus, t)
        cortex = topology.get_organ(OrganKind.CORTEX).health
        assert cortex == pytest.approx(0.80)
        assert topology.get_organ(OrganKind.MEMORY).health == 1.0
        assert bus.current_awareness() == pytest.approx(0.4 * 0.80 + 0.6)

    def test_transition_publishes_alert(self, topology, bus, engine):
        daemon = StatusDaemon(StaticTelemetry(cpu=HOT_CPU), engine, interval=1)
        topology.set_health(OrganKind.CORTEX, 0.87)
        daemon.tick(topology, bus, 1)
        alerts = [p for p in bus.pending() if p.kind is PulseKind.ALERT]
        assert len(alerts) == 1
        assert alerts[0].payload["subject"] == "cortex"
        assert alerts[0].payload["tier"] == "degraded"

        daemon.tick(topology, bus, 2)
        assert len([p for p in bus.pending() if p.kind is PulseKind.ALERT]) == 1

    def test_unavailable_family_keeps_health(self, topology, bus, engine):
        """A failed read leaves that organ alone and publishes a warning."""
        telemetry = StaticTelemetry(cpu=HOT_CPU)
        telemetry.failing.add(OrganKind.CORTEX)
        topology.set_health(OrganKind.CORTEX, 0.9)
        topology.set_health(OrganKind.MEMORY, 0.5)

        daemon = StatusDaemon(telemetry, engine, interval=1)
        daemon.tick(topology, bus, 1)

        assert topology.get_organ(OrganKind.CORTEX).health == 0.9
        assert topology.get_organ(OrganKind.MEMORY).health == pytest.approx(0.505)
        warnings = [p for p in bus.pending() if p.kind is PulseKind.WARNING]
        assert [w.payload["organ"] for w in warnings] == ["cortex"]

    def test_non_finite_reading_keeps_health(self, topology, bus, engine):
        telemetry = StaticTelemetry(memory=MemoryMetrics(ram_used_ratio=float("nan")))
        topology.set_health(OrganKind.MEMORY, 0.5)

        daemon = StatusDaemon(telemetry, engine, interval=1)
        daemon.tick(topology, bus, 1)

        assert topology.get_organ(OrganKind.MEMORY).health == 0.5
        assert daemon.last_snapshot is None
        warnings = [p for p in bus.pending() if p.kind is PulseKind.WARNING]
        assert [w.payload["organ"] for w in warnings] == ["memory"]
        assert daemon.last_snapshot is None

    def test_sim_level_forwarded(self, topology, bus, engine, telemetry):
        levels = []
        telemetry.set_sim_level = levels.append
        bus.set_sim_level(SimLevel.LOW)
        StatusDaemon(telemetry, engine).tick(topology, bus, 1)
        assert levels == [SimLevel.LOW]


class TestAiCortex:
    """Test the awareness-to-policy mapping."""

    @pytest.mark.parametrize("awareness,policy", [
        (1.0, Policy.PUSH_CAPACITY),
        (0.85, Policy.PUSH_CAPACITY),
        (0.84, Policy.MAINTAIN_LOAD),
        (0.60, Policy.MAINTAIN_LOAD),
        (0.59, Policy.REDUCE_LOAD),
        (0.35, Policy.REDUCE_LOAD),
        (0.34, Policy.PROTECT_CORE),
        (0.0, Policy.PROTECT_CORE),
    ])
    def test_decide_policy(self, awareness, policy):
        assert decide_policy(awareness) is policy

    def test_writes_bus_and_memory(self, topology, bus, memory):
        bus.set_awareness(0.7)
        AiCortexDaemon(memory, interval=1).tick(topology, bus, 1)
        assert bus.policy() is Policy.MAINTAIN_LOAD
        assert memory.get(GLOBAL_SCOPE, "ai.policy") == "maintain_load"
        assert memory.get(GLOBAL_SCOPE, "ai.awareness") == 0.7
        assert [p.kind for p in bus.pending()] == [PulseKind.AI]

    def test_protect_core_disables_simulation(self, topology, bus):
        bus.set_sim_level(SimLevel.HIGH)
        bus.set_awareness(0.2)
        AiCortexDaemon(interval=1).tick(topology, bus, 1)
        assert bus.policy() is Policy.PROTECT_CORE
        assert bus.sim_level() is SimLevel.OFF


def _sim_config(probability):
    intensity = SimIntensity(fault_probability=probability, damage_min=0.05, damage_max=0.10, recovery=0.02)
    return SimulationConfig(seed=3, low=intensity, high=intensity)


class TestSimulation:
    """Test the synthetic fault generator."""

    def test_idle_when_off(self, topology, bus, engine):
        SimulationDaemon(engine, _sim_config(1.0), interval=1).tick(topology, bus, 1)
        assert bus.pending() == []
        assert topology.min_health() == 1.0

    def test_fault_damages_one_organ(self, topology, bus, engine, memory):
        bus.set_sim_level(SimLevel.HIGH)
        SimulationDaemon(engine, _sim_config(1.0), memory, interval=1).tick(topology, bus, 1)

        damaged = [o for o in topology.organs() if o.health < 1.0]
        assert len(damaged) == 1
        assert 0.90 <= damaged[0].health <= 0.95
        assert memory.get(MemoryScope.organ(damaged[0].id), "sim.last_fault") == pytest.approx(
            1.0 - damaged[0].health
        )
        pulse = bus.pending()[0]
        assert pulse.kind is PulseKind.SIMULATION
        assert pulse.payload["organ"] == damaged[0].kind.value

    def test_recovery_when_no_fault(self, bus, engine):
        from aion_kernel.models.topology import sample_topology

        topology = sample_topology(health=0.5)
        bus.set_sim_level(SimLevel.LOW)
        SimulationDaemon(engine, _sim_config(0.0), interval=1).tick(topology, bus, 1)
        assert all(h == pytest.approx(0.52) for h in topology.healths().values())

    def test_seeded(self, bus, engine):
        from aion_kernel.models.topology import sample_topology

        bus.set_sim_level(SimLevel.HIGH)
        runs = []
        for _ in range(2):
            topology = sample_topology()
            daemon = SimulationDaemon(engine, _sim_config(0.5), interval=1)
            for t in range(1, 20):
                daemon.tick(topology, bus, t)
            runs.append(topology.healths())
        assert runs[0] == runs[1]


class TestCommandDaemon:
    """Test queue draining."""

    def test_resolves_futures(self, topology, bus, handler):
        daemon = CommandDaemon(handler)
        future = daemon.submit(CommandRequest.build("damage", organ="cortex", amount=0.1))
        assert not future.done()

        daemon.tick(topology, bus, 1)
        result = future.result(timeout=1)
        assert result.ok
        assert topology.get_organ(OrganKind.CORTEX).health == pytest.approx(0.9)
        assert daemon.executed == 1

    def test_failed_command_resolves_with_error(self, topology, bus, handler):
        daemon = CommandDaemon(handler)
        future = daemon.submit(CommandRequest.build("set_logs", level="loud"))
        daemon.tick(topology, bus, 1)
        result = future.result(timeout=1)
        assert not result.ok
        assert result.error == "InvalidRequest"

    def test_cancelled_request_skipped(self, topology, bus, handler):
        daemon = CommandDaemon(handler)
        future = daemon.submit(CommandRequest(op=CommandOp.STATUS))
        assert future.cancel()
        daemon.tick(topology, bus, 1)
        assert daemon.executed == 0
        assert isinstance(future, Future)

    def test_fifo(self, topology, bus, handler):
        daemon = CommandDaemon(handler)
        first = daemon.submit(CommandRequest.build("damage", organ="memory", amount=0.5))
        second = daemon.submit(CommandRequest.build("heal", organ="memory", amount=0.2))
        daemon.tick(topology, bus, 1)
        assert first.result().data["health"] == pytest.approx(0.5)
        assert second.result().data["health"] == pytest.approx(0.7)
