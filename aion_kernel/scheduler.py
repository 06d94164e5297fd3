"""
Daemon Scheduler
================

Drives the organism one logical tick at a time:

    1. advance the logical clock and deliver last tick's pulses
    2. run due daemons in fixed order (heartbeat, status, ai, simulation)
    3. drain externally submitted commands
    4. rebuild the read-only snapshot

The tick loop runs on a single thread. Other threads interact only through
submit() and latest_snapshot().
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from typing import Any, Dict, List, Optional

from aion_kernel.bus import Bus
from aion_kernel.commands import CommandHandler, CommandRequest
from aion_kernel.config import KernelConfig
from aion_kernel.daemons import (
    AiCortexDaemon,
    CommandDaemon,
    Daemon,
    HeartbeatDaemon,
    SimulationDaemon,
    StatusDaemon,
)
from aion_kernel.health import HealthEngine
from aion_kernel.memory import WorkingMemory
from aion_kernel.models.capability import CapabilityRegistry
from aion_kernel.models.pulse import PulseKind
from aion_kernel.models.topology import Topology, sample_topology
from aion_kernel.snapshot import OrganismSnapshot, build_snapshot
from aion_kernel.telemetry import TelemetryPort, create_telemetry

logger = logging.getLogger(__name__)


class Scheduler:
    """Cooperative tick loop over a fixed set of daemons."""

    def __init__(
        self,
        topology: Topology,
        bus: Bus,
        daemons: List[Daemon],
        commands: CommandDaemon,
        tick_interval_sec: float = 0.05,
    ):
        self.topology = topology
        self.bus = bus
        self.daemons = list(daemons)
        self.commands = commands
        self.tick_interval_sec = tick_interval_sec

        self._clock = 0
        self._errors = 0
        self._started_at: Optional[float] = None

        self._snapshot_lock = threading.Lock()
        self._snapshot = build_snapshot(topology, bus, 0)

        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @property
    def logical_time(self) -> int:
        return self._clock

    def get_daemon(self, name: str) -> Optional[Daemon]:
        for daemon in self.daemons + [self.commands]:
            if daemon.name == name:
                return daemon
        return None

    # ─────────────────────────────────────────────────────────────────
    # Tick loop
    # ─────────────────────────────────────────────────────────────────

    def step(self) -> int:
        """Run exactly one tick. Returns the new logical time."""
        self._clock += 1
        t = self._clock
        self.bus.advance(t)

        for daemon in self.daemons:
            if daemon.due(t):
                self._run_daemon(daemon, t)
        self._run_daemon(self.commands, t)

        snapshot = build_snapshot(self.topology, self.bus, t)
        with self._snapshot_lock:
            self._snapshot = snapshot
        return t

    def _run_daemon(self, daemon: Daemon, t: int) -> None:
        try:
            daemon.tick(self.topology, self.bus, t)
        except Exception as e:
            daemon.errors += 1
            self._errors += 1
            logger.exception(f"Daemon {daemon.name} failed at tick {t}: {e}")
            self.bus.publish(
                PulseKind.WARNING, "scheduler",
                f"daemon {daemon.name} failed: {e}",
                daemon=daemon.name, error=type(e).__name__,
            )
        finally:
            daemon.mark_run(t)

    def run(self, max_ticks: Optional[int] = None) -> int:
        """Run ticks until stop() or `max_ticks` ticks have elapsed."""
        self._stop.clear()
        self._started_at = self._started_at or time.time()
        logger.info(f"Scheduler running (tick {self.tick_interval_sec}s)")

        count = 0
        while not self._stop.is_set():
            if max_ticks is not None and count >= max_ticks:
                break
            self.step()
            count += 1
            if self.tick_interval_sec > 0:
                self._stop.wait(timeout=self.tick_interval_sec)

        logger.info(f"Scheduler stopped after {count} tick(s) (logical time {self._clock})")
        return count

    def start(self, max_ticks: Optional[int] = None) -> None:
        """Run the tick loop on a background thread."""
        if self.is_running():
            logger.warning("Scheduler already running")
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self.run,
            kwargs={"max_ticks": max_ticks},
            daemon=True,
            name="AionScheduler",
        )
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ─────────────────────────────────────────────────────────────────
    # Cross-thread API
    # ─────────────────────────────────────────────────────────────────

    def submit(self, request: CommandRequest) -> Future:
        """Queue a command for the next tick. The future resolves to a CommandResult."""
        return self.commands.submit(request)

    def latest_snapshot(self) -> OrganismSnapshot:
        with self._snapshot_lock:
            return self._snapshot

    def get_stats(self) -> Dict[str, Any]:
        uptime = time.time() - self._started_at if self._started_at else 0.0
        return {
            "logical_time": self._clock,
            "uptime_sec": uptime,
            "errors": self._errors,
            "commands_executed": self.commands.executed,
            "daemons": {d.name: d.get_stats() for d in self.daemons},
        }


def build_scheduler(
    config: Optional[KernelConfig] = None,
    telemetry: Optional[TelemetryPort] = None,
    topology: Optional[Topology] = None,
) -> Scheduler:
    """Wire the default organism, daemons and command handler from config."""
    config = config or KernelConfig()
    topology = topology if topology is not None else sample_topology()
    telemetry = telemetry or create_telemetry(
        config.telemetry, config.sim_level, config.simulation.seed
    )

    bus = Bus(
        log_filter=config.log_filter,
        sim_level=config.sim_level,
        history_size=config.scheduler.history_size,
    )
    engine = HealthEngine(config.health)
    memory = WorkingMemory()
    bus.set_awareness(engine.compute_awareness(topology))

    s = config.scheduler
    status = StatusDaemon(telemetry, engine, interval=s.status_interval)
    handler = CommandHandler(
        topology,
        bus,
        engine,
        memory=memory,
        capabilities=CapabilityRegistry.from_topology(topology),
        state_path=config.persistence.state_path,
        metrics_provider=lambda: status.last_snapshot,
    )

    daemons: List[Daemon] = [
        HeartbeatDaemon(interval=s.heartbeat_interval),
        status,
        AiCortexDaemon(memory, interval=s.ai_interval),
        SimulationDaemon(engine, config.simulation, memory, interval=s.simulation_interval),
    ]
    return Scheduler(topology, bus, daemons, CommandDaemon(handler), s.tick_interval_sec)
