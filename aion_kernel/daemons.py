"""
Kernel Daemons
==============

Periodic agents driven by the scheduler. Each daemon declares an interval
in ticks and a tick() that receives the topology and the bus by reference.

    HeartbeatDaemon   - liveness pulse
    StatusDaemon      - telemetry -> health -> awareness -> alerts
    AiCortexDaemon    - maps awareness to a policy label
    SimulationDaemon  - synthetic faults and recovery while sim is on
    CommandDaemon     - drains the external mutation queue every tick
"""

from __future__ import annotations

import logging
import queue
from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Dict, List, Optional, Tuple

import numpy as np

from aion_kernel.bus import Bus
from aion_kernel.commands import CommandHandler, CommandRequest, CommandResult
from aion_kernel.config import SimulationConfig
from aion_kernel.errors import TelemetryUnavailable
from aion_kernel.health import HealthEngine
from aion_kernel.memory import GLOBAL_SCOPE, MemoryScope, WorkingMemory
from aion_kernel.models.alerts import (
    DEGRADED_THRESHOLD,
    IMPAIRED_THRESHOLD,
    OK_THRESHOLD,
    describe_awareness,
    describe_health,
)
from aion_kernel.models.levels import Policy, SimLevel
from aion_kernel.models.pulse import PulseKind
from aion_kernel.models.topology import OrganKind, Topology
from aion_kernel.telemetry.base import TelemetryPort, TelemetrySnapshot

logger = logging.getLogger(__name__)


class Daemon(ABC):
    """Base class for scheduled daemons."""

    name: str = "daemon"

    def __init__(self, interval: int = 1):
        if interval < 1:
            raise ValueError(f"{self.name}: interval must be >= 1")
        self.interval = interval
        self.last_run = 0
        self.runs = 0
        self.errors = 0

    def due(self, logical_time: int) -> bool:
        return logical_time - self.last_run >= self.interval

    def mark_run(self, logical_time: int) -> None:
        self.last_run = logical_time
        self.runs += 1

    @abstractmethod
    def tick(self, topology: Topology, bus: Bus, logical_time: int) -> None:
        ...

    def get_stats(self) -> Dict[str, int]:
        return {
            "interval": self.interval,
            "last_run": self.last_run,
            "runs": self.runs,
            "errors": self.errors,
        }


class HeartbeatDaemon(Daemon):
    """Publishes a numbered beat."""

    name = "heartbeat"

    def __init__(self, interval: int = 20):
        super().__init__(interval)
        self.beats = 0

    def tick(self, topology: Topology, bus: Bus, logical_time: int) -> None:
        self.beats += 1
        bus.publish(PulseKind.HEARTBEAT, self.name, f"beat #{self.beats}", beat=self.beats)


class StatusDaemon(Daemon):
    """
    Reads telemetry and feeds the health engine.

    A telemetry family that cannot be read leaves its organ's health
    untouched for this cycle and produces a warning pulse.
    """

    name = "status"

    def __init__(
        self,
        telemetry: TelemetryPort,
        engine: HealthEngine,
        interval: int = 100,
    ):
        super().__init__(interval)
        self.telemetry = telemetry
        self.engine = engine
        self.last_snapshot: Optional[TelemetrySnapshot] = None

    def _unavailable(self, bus: Bus, kind: OrganKind, e: TelemetryUnavailable) -> None:
        logger.warning(f"Telemetry unavailable for {kind.value}: {e.reason or e}")
        bus.publish(PulseKind.WARNING, self.name, str(e), organ=kind.value)

    def _read(self, bus: Bus, kind: OrganKind, reader):
        try:
            return reader()
        except TelemetryUnavailable as e:
            self._unavailable(bus, kind, e)
            return None

    def tick(self, topology: Topology, bus: Bus, logical_time: int) -> None:
        self.telemetry.set_sim_level(bus.sim_level())

        readings = {
            OrganKind.CORTEX: self._read(bus, OrganKind.CORTEX, self.telemetry.read_cpu_gpu_metrics),
            OrganKind.MEMORY: self._read(bus, OrganKind.MEMORY, self.telemetry.read_memory_metrics),
            OrganKind.IO_BRIDGE: self._read(bus, OrganKind.IO_BRIDGE, self.telemetry.read_io_network_metrics),
        }

        for kind, metrics in readings.items():
            if metrics is None or not topology.has_organ(kind):
                continue
            try:
                result = self.engine.apply_metrics(topology, kind, metrics)
            except TelemetryUnavailable as e:
                self._unavailable(bus, kind, e)
                readings[kind] = None
                continue
            logger.debug(f"{kind.value}: {result.previous:.3f} -> {result.health:.3f}")

        if all(m is not None for m in readings.values()):
            self.last_snapshot = TelemetrySnapshot(
                tick=logical_time,
                cpu=readings[OrganKind.CORTEX],
                memory=readings[OrganKind.MEMORY],
                io=readings[OrganKind.IO_BRIDGE],
            )

        awareness = self.engine.compute_awareness(topology)
        bus.set_awareness(awareness)

        for alert in self.engine.evaluate_alerts(topology, bus):
            bus.publish(
                PulseKind.ALERT,
                self.name,
                f"{alert.subject} -> {alert.label} ({alert.value:.2f})",
                **alert.to_dict(),
            )

        min_health = topology.min_health()
        bus.publish(
            PulseKind.STATUS,
            self.name,
            f"{topology.describe()} :: min health {min_health:.2f} ({describe_health(min_health)}) "
            f":: awareness {awareness:.2f} ({describe_awareness(awareness)})",
            min_health=min_health,
            awareness=awareness,
        )


def decide_policy(awareness: float) -> Policy:
    """Policy label for an awareness score."""
    if awareness >= OK_THRESHOLD:
        return Policy.PUSH_CAPACITY
    if awareness >= DEGRADED_THRESHOLD:
        return Policy.MAINTAIN_LOAD
    if awareness >= IMPAIRED_THRESHOLD:
        return Policy.REDUCE_LOAD
    return Policy.PROTECT_CORE


class AiCortexDaemon(Daemon):
    """Fixed awareness-to-policy mapping. protect_core switches simulation off."""

    name = "ai_cortex"

    def __init__(self, memory: Optional[WorkingMemory] = None, interval: int = 40):
        super().__init__(interval)
        self.memory = memory

    def tick(self, topology: Topology, bus: Bus, logical_time: int) -> None:
        awareness = bus.current_awareness()
        policy = decide_policy(awareness)

        if policy is not bus.policy():
            logger.info(f"Policy {bus.policy().value} -> {policy.value} (awareness {awareness:.2f})")
        bus.set_policy(policy)

        if policy is Policy.PROTECT_CORE and bus.sim_level() is not SimLevel.OFF:
            bus.set_sim_level(SimLevel.OFF)

        if self.memory is not None:
            self.memory.set(GLOBAL_SCOPE, "ai.policy", policy.value)
            self.memory.set(GLOBAL_SCOPE, "ai.awareness", awareness)

        bus.publish(
            PulseKind.AI,
            self.name,
            f"awareness {awareness:.2f} ({describe_awareness(awareness)}) -> {policy.value}",
            policy=policy.value,
            awareness=awareness,
        )


class SimulationDaemon(Daemon):
    """Synthetic fault generator; idle while the sim level is off."""

    name = "simulation"

    def __init__(
        self,
        engine: HealthEngine,
        config: Optional[SimulationConfig] = None,
        memory: Optional[WorkingMemory] = None,
        interval: int = 20,
    ):
        super().__init__(interval)
        self.engine = engine
        self.config = config or SimulationConfig()
        self.memory = memory
        self._rng = np.random.default_rng(self.config.seed)

    def tick(self, topology: Topology, bus: Bus, logical_time: int) -> None:
        intensity = self.config.intensity(bus.sim_level())
        if intensity is None:
            return

        organs = topology.organs()
        if self._rng.random() < intensity.fault_probability:
            organ = organs[int(self._rng.integers(len(organs)))]
            amount = float(self._rng.uniform(intensity.damage_min, intensity.damage_max))
            result = self.engine.apply_damage(topology, organ.kind, amount)
            message = f"fault on {organ.kind.value}: -{amount:.3f} (health {result.health:.2f})"
            if self.memory is not None:
                self.memory.set(MemoryScope.organ(organ.id), "sim.last_fault", amount)
            payload = {"organ": organ.kind.value, "amount": amount}
        else:
            self.engine.apply_recovery(topology, intensity.recovery)
            message = f"recovery +{intensity.recovery:.3f} on all organs"
            payload = {"amount": intensity.recovery}

        bus.set_awareness(self.engine.compute_awareness(topology))
        bus.publish(PulseKind.SIMULATION, self.name, message, level=bus.sim_level().value, **payload)


class CommandDaemon(Daemon):
    """
    Executes externally submitted commands.

    Runs at the end of every tick. Each queued request is paired with a
    Future that receives the CommandResult.
    """

    name = "command"

    def __init__(self, handler: CommandHandler, requests: Optional[queue.Queue] = None):
        super().__init__(1)
        self.handler = handler
        self.requests: queue.Queue = requests if requests is not None else queue.Queue()
        self.executed = 0

    def submit(self, request: CommandRequest) -> Future:
        future: Future = Future()
        self.requests.put((request, future))
        return future

    def drain(self) -> List[Tuple[CommandRequest, Future]]:
        items = []
        while True:
            try:
                items.append(self.requests.get_nowait())
            except queue.Empty:
                return items

    def tick(self, topology: Topology, bus: Bus, logical_time: int) -> None:
        for request, future in self.drain():
            if not future.set_running_or_notify_cancel():
                continue
            try:
                result: CommandResult = self.handler.handle(request)
            except Exception as e:
                logger.exception(f"Command {request.op.value} crashed: {e}")
                future.set_exception(e)
                continue
            self.executed += 1
            future.set_result(result)
