"""
Command Entry Point
===================

The single external mutation entry point of the kernel. Shells and
introspection surfaces build a CommandRequest, submit it to the scheduler,
and receive a CommandResult once the command daemon has executed it inside
the tick loop.

Vocabulary:
    queries    help, status, topology, nodes, organs, peripherals, health,
               alerts, awareness, metrics, capabilities, memory
    mutations  damage(organ, amount), heal(organ, amount),
               set_sim(level), set_logs(level), save, load
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from aion_kernel import persistence
from aion_kernel.bus import Bus
from aion_kernel.errors import AionError, InvalidRequest
from aion_kernel.health import HealthEngine
from aion_kernel.memory import WorkingMemory
from aion_kernel.models.alerts import AlertTier, describe_awareness
from aion_kernel.models.capability import CapabilityRegistry
from aion_kernel.models.levels import LogFilter, SimLevel
from aion_kernel.models.pulse import PulseKind
from aion_kernel.models.topology import OrganKind, Topology
from aion_kernel.telemetry.base import TelemetrySnapshot

logger = logging.getLogger(__name__)


class CommandOp(str, Enum):
    HELP = "help"
    STATUS = "status"
    TOPOLOGY = "topology"
    NODES = "nodes"
    ORGANS = "organs"
    PERIPHERALS = "peripherals"
    HEALTH = "health"
    ALERTS = "alerts"
    AWARENESS = "awareness"
    METRICS = "metrics"
    CAPABILITIES = "capabilities"
    MEMORY = "memory"
    DAMAGE = "damage"
    HEAL = "heal"
    SET_SIM = "set_sim"
    SET_LOGS = "set_logs"
    SAVE = "save"
    LOAD = "load"


_NEEDS_ORGAN = {CommandOp.DAMAGE, CommandOp.HEAL}
_NEEDS_LEVEL = {CommandOp.SET_SIM, CommandOp.SET_LOGS}


class CommandRequest(BaseModel):
    """A validated request for the command daemon."""

    op: CommandOp
    organ: Optional[OrganKind] = None
    amount: Optional[float] = None
    level: Optional[str] = None
    path: Optional[str] = None          # save/load override of the state file

    @field_validator("organ", mode="before")
    @classmethod
    def _parse_organ(cls, value: Any) -> Any:
        if isinstance(value, str):
            return OrganKind.parse(value)
        return value

    @field_validator("amount")
    @classmethod
    def _finite_amount(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and not math.isfinite(value):
            raise ValueError("amount must be a finite number")
        return value

    @model_validator(mode="after")
    def _required_fields(self) -> CommandRequest:
        if self.op in _NEEDS_ORGAN and (self.organ is None or self.amount is None):
            raise ValueError(f"usage: {self.op.value} <organ> <amount>")
        if self.op in _NEEDS_LEVEL and not self.level:
            raise ValueError(f"usage: {self.op.value} <level>")
        return self

    @classmethod
    def build(cls, op: Any, **fields: Any) -> CommandRequest:
        """Construct a request, turning validation failures into InvalidRequest."""
        try:
            return cls(op=op, **fields)
        except ValidationError as e:
            messages = "; ".join(err["msg"] for err in e.errors())
            raise InvalidRequest(messages) from e


class CommandResult(BaseModel):
    """Structured outcome of a command."""

    ok: bool
    op: str
    message: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None         # exception type name on failure

    @classmethod
    def failure(cls, op: str, exc: BaseException) -> CommandResult:
        return cls(ok=False, op=op, message=str(exc), error=type(exc).__name__)


HELP_TEXT = (
    "commands: help, status, topology, nodes, organs, peripherals, health, "
    "awareness, alerts, metrics, capabilities, memory, save, load, "
    "damage <organ> <amount>, heal <organ> <amount>, sim <off|low|high>, "
    "logs <all|commands|silent>"
)


class CommandHandler:
    """
    Executes CommandRequests against the topology and bus.

    Must only be called from the scheduler thread.
    """

    source = "command"

    def __init__(
        self,
        topology: Topology,
        bus: Bus,
        engine: HealthEngine,
        memory: Optional[WorkingMemory] = None,
        capabilities: Optional[CapabilityRegistry] = None,
        state_path: Path = Path("aion_state.txt"),
        metrics_provider: Optional[Callable[[], Optional[TelemetrySnapshot]]] = None,
    ):
        self.topology = topology
        self.bus = bus
        self.engine = engine
        self.memory = memory if memory is not None else WorkingMemory()
        self.capabilities = (
            capabilities if capabilities is not None else CapabilityRegistry.from_topology(topology)
        )
        self.state_path = Path(state_path)
        self.metrics_provider = metrics_provider

        self._handlers: Dict[CommandOp, Callable[[CommandRequest], CommandResult]] = {
            CommandOp.HELP: self.cmd_help,
            CommandOp.STATUS: self.cmd_status,
            CommandOp.TOPOLOGY: self.cmd_topology,
            CommandOp.NODES: self.cmd_nodes,
            CommandOp.ORGANS: self.cmd_organs,
            CommandOp.PERIPHERALS: self.cmd_peripherals,
            CommandOp.HEALTH: self.cmd_health,
            CommandOp.ALERTS: self.cmd_alerts,
            CommandOp.AWARENESS: self.cmd_awareness,
            CommandOp.METRICS: self.cmd_metrics,
            CommandOp.CAPABILITIES: self.cmd_capabilities,
            CommandOp.MEMORY: self.cmd_memory,
            CommandOp.DAMAGE: self.cmd_damage,
            CommandOp.HEAL: self.cmd_heal,
            CommandOp.SET_SIM: self.cmd_set_sim,
            CommandOp.SET_LOGS: self.cmd_set_logs,
            CommandOp.SAVE: self.cmd_save,
            CommandOp.LOAD: self.cmd_load,
        }

    def execute(self, request: CommandRequest) -> CommandResult:
        """Run one request. Raises AionError subclasses on failure."""
        result = self._handlers[request.op](request)
        self.bus.publish(PulseKind.COMMAND, self.source, result.message, op=request.op.value)
        return result

    def handle(self, request: CommandRequest) -> CommandResult:
        """Run one request, reporting kernel errors as a failed result."""
        try:
            return self.execute(request)
        except AionError as e:
            logger.warning(f"Command {request.op.value} failed: {e}")
            self.bus.publish(PulseKind.COMMAND, self.source, f"{request.op.value} failed: {e}",
                             op=request.op.value, error=type(e).__name__)
            return CommandResult.failure(request.op.value, e)

    def _refresh_awareness(self) -> float:
        awareness = self.engine.compute_awareness(self.topology)
        self.bus.set_awareness(awareness)
        return awareness

    def _ok(self, request: CommandRequest, message: str, **data: Any) -> CommandResult:
        return CommandResult(ok=True, op=request.op.value, message=message, data=data)

    # ─────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────

    def cmd_help(self, request: CommandRequest) -> CommandResult:
        return self._ok(request, HELP_TEXT, ops=[op.value for op in CommandOp])

    def cmd_status(self, request: CommandRequest) -> CommandResult:
        awareness = self._refresh_awareness()
        min_health = self.topology.min_health()
        label = AlertTier(max(self.topology.list_alerts().values())).health_label
        return self._ok(
            request,
            f"{self.topology.describe()} :: health {min_health:.2f} ({label}) :: awareness {awareness:.2f}",
            min_health=min_health,
            health_label=label,
            awareness=awareness,
            awareness_label=describe_awareness(awareness),
            policy=self.bus.policy().value,
            sim_level=self.bus.sim_level().value,
        )

    def cmd_topology(self, request: CommandRequest) -> CommandResult:
        lines = ["Topology detail:"]
        for node in self.topology.nodes():
            lines.append(f" - Node {node.id} [{node.label}]: {node.role}")
            for organ in self.topology.find_organs_on_node(node.id):
                lines.append(f"   - Organ {organ.kind.value} (health {organ.health:.2f})")
        return self._ok(request, "\n".join(lines), **self.topology.to_dict())

    def cmd_nodes(self, request: CommandRequest) -> CommandResult:
        nodes = [n.to_dict() for n in self.topology.nodes()]
        lines = ["Nodes:"] + [f" - Node {n['id']} [{n['label']}]: {n['role']}" for n in nodes]
        return self._ok(request, "\n".join(lines), nodes=nodes)

    def cmd_organs(self, request: CommandRequest) -> CommandResult:
        organs = [o.to_dict() for o in self.topology.organs()]
        lines = ["Organs:"] + [
            f" - Organ {o['kind']} on Node {o['node_id']} (health {o['health']:.2f})" for o in organs
        ]
        return self._ok(request, "\n".join(lines), organs=organs)

    def cmd_peripherals(self, request: CommandRequest) -> CommandResult:
        by_organ = self.topology.peripherals()
        lines = ["Peripherals by organ:"]
        for kind, devices in by_organ.items():
            lines.append(f" - Organ {kind.value}:")
            lines.extend(f"    - {p.kind.value}: {p.id} ({p.status.value})" for p in devices)
        if not by_organ:
            lines.append(" (no peripherals registered)")
        data = {k.value: [p.to_dict() for p in v] for k, v in by_organ.items()}
        return self._ok(request, "\n".join(lines), peripherals=data)

    def cmd_health(self, request: CommandRequest) -> CommandResult:
        organs = {o.kind.value: o.health for o in self.topology.organs()}
        lines = ["Organ health:"] + [
            f" - {o.kind.value}: {o.health:.2f} ({o.tier.health_label})" for o in self.topology.organs()
        ]
        return self._ok(request, "\n".join(lines), health=organs)

    def cmd_alerts(self, request: CommandRequest) -> CommandResult:
        tiers = self.topology.list_alerts()
        active = {k.value: t.health_label for k, t in tiers.items() if t.is_alert}
        worst = AlertTier(max(tiers.values()))
        if active:
            lines = ["Alerts:"] + [
                f" - {kind}: {self.topology.get_organ(OrganKind(kind)).health:.2f} [{label}]"
                for kind, label in active.items()
            ]
            lines.append(f"overall: {worst.health_label}")
        else:
            lines = ["Alerts:", " (no active alerts; all organs healthy)"]
        return self._ok(request, "\n".join(lines), alerts=active, overall=worst.health_label)

    def cmd_awareness(self, request: CommandRequest) -> CommandResult:
        score = self._refresh_awareness()
        label = describe_awareness(score)
        return self._ok(request, f"awareness index: {score:.2f} :: {label}", awareness=score, label=label)

    def cmd_metrics(self, request: CommandRequest) -> CommandResult:
        snapshot = self.metrics_provider() if self.metrics_provider else None
        if snapshot is None:
            return CommandResult(ok=False, op=request.op.value, message="metrics not yet available",
                                 error="TelemetryUnavailable")
        return self._ok(request, f"metrics from tick {snapshot.tick}", **snapshot.to_dict())

    def cmd_capabilities(self, request: CommandRequest) -> CommandResult:
        caps = [c.to_dict() for c in self.capabilities.all()]
        lines = ["Capabilities:"] + [
            f" - #{c['id']} organ={c['organ']} kind={c['kind']} "
            f"[{'enabled' if c['enabled'] else 'disabled'}] prio={c['priority']:.2f} :: {c['label']}"
            for c in caps
        ]
        return self._ok(request, "\n".join(lines), capabilities=caps)

    def cmd_memory(self, request: CommandRequest) -> CommandResult:
        return self._ok(request, self.memory.dump(), memory=self.memory.to_dict())

    # ─────────────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────────────

    def cmd_damage(self, request: CommandRequest) -> CommandResult:
        result = self.engine.apply_damage(self.topology, request.organ, request.amount)
        awareness = self._refresh_awareness()
        return self._ok(
            request,
            f"damaged {result.kind.value} by {abs(request.amount):.2f}, "
            f"new health {result.health:.2f} (awareness {awareness:.2f})",
            organ=result.kind.value, health=result.health, awareness=awareness,
        )

    def cmd_heal(self, request: CommandRequest) -> CommandResult:
        (result,) = self.engine.apply_recovery(self.topology, request.amount, [request.organ])
        awareness = self._refresh_awareness()
        return self._ok(
            request,
            f"healed {result.kind.value} by {abs(request.amount):.2f}, "
            f"new health {result.health:.2f} (awareness {awareness:.2f})",
            organ=result.kind.value, health=result.health, awareness=awareness,
        )

    def cmd_set_sim(self, request: CommandRequest) -> CommandResult:
        try:
            level = SimLevel(request.level.strip().lower())
        except ValueError as e:
            raise InvalidRequest(f"invalid sim level '{request.level}'") from e
        self.bus.set_sim_level(level)
        return self._ok(request, f"simulation: {level.value}", sim_level=level.value)

    def cmd_set_logs(self, request: CommandRequest) -> CommandResult:
        try:
            log_filter = LogFilter.parse(request.level)
        except ValueError as e:
            raise InvalidRequest(f"invalid log filter '{request.level}'") from e
        self.bus.set_log_filter(log_filter)
        return self._ok(request, f"logging: {log_filter.value}", log_filter=log_filter.value)

    def cmd_save(self, request: CommandRequest) -> CommandResult:
        path = Path(request.path) if request.path else self.state_path
        persistence.save_file(self.topology, path)
        return self._ok(request, f"state saved to {path}", path=str(path))

    def cmd_load(self, request: CommandRequest) -> CommandResult:
        path = Path(request.path) if request.path else self.state_path
        applied = persistence.load_file(path, self.topology)
        awareness = self._refresh_awareness()
        if applied is None:
            return self._ok(request, f"no saved state at {path}; keeping current health",
                            path=str(path), loaded=False, awareness=awareness)
        return self._ok(
            request,
            f"state loaded from {path} (awareness {awareness:.2f})",
            path=str(path), loaded=True, awareness=awareness,
            health={k.value: v for k, v in applied.items()},
        )
