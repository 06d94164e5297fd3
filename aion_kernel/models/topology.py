"""
Topology Model
==============

Nodes, organs, peripherals and capabilities of the modeled organism.

The organ set is fixed once a Topology is built: organs are never created
or destroyed at runtime, and every health write is clamped to [0, 1].
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Any

from aion_kernel.models.alerts import AlertTier, tier_for


class CapabilityKind(str, Enum):
    """Functional abilities an organ can offer."""
    COMPUTE = "compute"
    STORAGE = "storage"
    PERCEPTION = "perception"
    NETWORKING = "networking"
    ACTUATION = "actuation"
    PLANNING = "planning"
    LEARNING = "learning"


class OrganKind(str, Enum):
    """Functional subsystems of the organism."""
    CORTEX = "cortex"
    MEMORY = "memory"
    IO_BRIDGE = "io_bridge"

    @classmethod
    def parse(cls, name: str) -> OrganKind:
        """Resolve an organ name, accepting the usual shell aliases."""
        key = name.strip().lower().replace("-", "_")
        kind = _ORGAN_ALIASES.get(key)
        if kind is None:
            raise ValueError(f"unknown organ '{name}'")
        return kind


_ORGAN_ALIASES = {
    "cortex": OrganKind.CORTEX,
    "memory": OrganKind.MEMORY,
    "io": OrganKind.IO_BRIDGE,
    "io_bridge": OrganKind.IO_BRIDGE,
    "iobridge": OrganKind.IO_BRIDGE,
}

# Stable iteration order for reports and persisted state.
ORGAN_ORDER = (OrganKind.CORTEX, OrganKind.MEMORY, OrganKind.IO_BRIDGE)


class PeripheralKind(str, Enum):
    """Device categories."""
    CPU = "cpu"
    GPU = "gpu"
    NIC = "nic"
    DISK = "disk"
    USB = "usb"
    SENSOR = "sensor"
    MOTOR = "motor"
    DISPLAY = "display"
    UNKNOWN = "unknown"


class PeripheralStatus(str, Enum):
    """Operational status of a peripheral."""
    ONLINE = "online"
    DEGRADED = "degraded"
    OFFLINE = "offline"


def clamp01(value: float) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"expected a finite value, got {value}")
    return max(0.0, min(1.0, value))


@dataclass
class Peripheral:
    """A concrete device bound to one organ."""
    id: str
    kind: PeripheralKind
    status: PeripheralStatus = PeripheralStatus.ONLINE
    organ_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "status": self.status.value,
            "organ_id": self.organ_id,
        }


class Organ:
    """
    A functional subsystem with a normalized health value.

    `kind` is fixed at construction. `observed_tier` is the tier last seen by
    alert evaluation and is what edge detection compares against.
    """

    def __init__(
        self,
        organ_id: int,
        kind: OrganKind,
        node_id: int,
        capabilities: Iterable[CapabilityKind] = (),
        health: float = 1.0,
    ):
        self._id = organ_id
        self._kind = kind
        self.node_id = node_id
        self.capabilities: FrozenSet[CapabilityKind] = frozenset(capabilities)
        self._health = clamp01(health)
        self.peripherals: List[Peripheral] = []
        self.observed_tier = tier_for(self._health)

    @property
    def id(self) -> int:
        return self._id

    @property
    def kind(self) -> OrganKind:
        return self._kind

    @property
    def health(self) -> float:
        return self._health

    @health.setter
    def health(self, value: float) -> None:
        self._health = clamp01(value)

    @property
    def tier(self) -> AlertTier:
        return tier_for(self._health)

    def attach(self, peripheral: Peripheral) -> None:
        """Bind a peripheral to this organ."""
        if peripheral.organ_id is not None and peripheral.organ_id != self._id:
            raise ValueError(
                f"peripheral {peripheral.id} already belongs to organ {peripheral.organ_id}"
            )
        peripheral.organ_id = self._id
        if peripheral not in self.peripherals:
            self.peripherals.append(peripheral)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self._id,
            "kind": self._kind.value,
            "node_id": self.node_id,
            "health": self._health,
            "tier": self.tier.name.lower(),
            "capabilities": sorted(c.value for c in self.capabilities),
            "peripherals": [p.to_dict() for p in self.peripherals],
        }

    def __repr__(self) -> str:
        return f"Organ({self._kind.value}, health={self._health:.3f})"


@dataclass
class Node:
    """A logical machine or location hosting organs."""
    id: int
    label: str
    role: str = ""
    organ_ids: List[int] = field(default_factory=list)

    @property
    def active(self) -> bool:
        return bool(self.organ_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "role": self.role,
            "organ_ids": list(self.organ_ids),
        }


@dataclass(frozen=True)
class DeltaResult:
    """Outcome of a health mutation."""
    kind: OrganKind
    previous: float
    health: float
    crossed: bool

    @property
    def delta(self) -> float:
        return self.health - self.previous


class Topology:
    """
    The whole modeled system: nodes and their organs.

    Owned by the scheduler; daemons receive it by reference each tick.
    """

    def __init__(self, nodes: Iterable[Node], organs: Iterable[Organ]):
        self._nodes: Dict[int, Node] = {}
        self._organs: Dict[OrganKind, Organ] = {}

        for node in nodes:
            if node.id in self._nodes:
                raise ValueError(f"duplicate node id {node.id}")
            self._nodes[node.id] = node

        for organ in organs:
            if organ.kind in self._organs:
                raise ValueError(f"duplicate organ kind {organ.kind.value}")
            node = self._nodes.get(organ.node_id)
            if node is None:
                raise ValueError(f"organ {organ.kind.value} references unknown node {organ.node_id}")
            if organ.id not in node.organ_ids:
                node.organ_ids.append(organ.id)
            self._organs[organ.kind] = organ

    # ─────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────

    def get_organ(self, kind: OrganKind) -> Organ:
        """Get organ by kind. Raises KeyError if the topology has none."""
        return self._organs[kind]

    def has_organ(self, kind: OrganKind) -> bool:
        return kind in self._organs

    def organs(self) -> List[Organ]:
        """Organs in stable order."""
        ordered = [self._organs[k] for k in ORGAN_ORDER if k in self._organs]
        return ordered + [o for k, o in self._organs.items() if k not in ORGAN_ORDER]

    def nodes(self) -> List[Node]:
        return [self._nodes[i] for i in sorted(self._nodes)]

    def get_node(self, node_id: int) -> Optional[Node]:
        return self._nodes.get(node_id)

    def find_organs_on_node(self, node_id: int) -> List[Organ]:
        return [o for o in self.organs() if o.node_id == node_id]

    def peripherals(self) -> Dict[OrganKind, List[Peripheral]]:
        return {o.kind: list(o.peripherals) for o in self.organs() if o.peripherals}

    def healths(self) -> Dict[OrganKind, float]:
        return {o.kind: o.health for o in self.organs()}

    def min_health(self) -> float:
        return min((o.health for o in self._organs.values()), default=1.0)

    def list_alerts(self) -> Dict[OrganKind, AlertTier]:
        """Current tier of each organ."""
        return {o.kind: o.tier for o in self.organs()}

    def describe(self) -> str:
        """Compact summary for status reports."""
        labels = ", ".join(f"{n.label} ({n.role})" for n in self.nodes())
        return f"{len(self._nodes)} node(s), {len(self._organs)} organ(s) :: {labels}"

    # ─────────────────────────────────────────────────────────────────
    # Mutators
    # ─────────────────────────────────────────────────────────────────

    def apply_delta(self, kind: OrganKind, delta: float) -> DeltaResult:
        """Add a signed delta to an organ's health, clamped to [0, 1]."""
        organ = self.get_organ(kind)
        return self._write(organ, organ.health + delta)

    def set_health(self, kind: OrganKind, value: float) -> DeltaResult:
        """Overwrite an organ's health, clamped to [0, 1]."""
        return self._write(self.get_organ(kind), value)

    def _write(self, organ: Organ, value: float) -> DeltaResult:
        previous = organ.health
        organ.health = value
        return DeltaResult(
            kind=organ.kind,
            previous=previous,
            health=organ.health,
            crossed=tier_for(previous) != tier_for(organ.health),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes()],
            "organs": [o.to_dict() for o in self.organs()],
        }


def sample_topology(health: float = 1.0) -> Topology:
    """
    The default two-node organism.

    core-0 hosts the cortex and memory, io-0 hosts the IO bridge.
    """
    core = Node(id=1, label="core-0", role="primary brain")
    io = Node(id=2, label="io-0", role="peripheral bridge")

    cortex = Organ(
        1, OrganKind.CORTEX, core.id,
        [CapabilityKind.COMPUTE, CapabilityKind.PLANNING, CapabilityKind.LEARNING],
        health,
    )
    cortex.attach(Peripheral("Sim-CPU-0", PeripheralKind.CPU))
    cortex.attach(Peripheral("Sim-GPU-0", PeripheralKind.GPU))

    memory = Organ(2, OrganKind.MEMORY, core.id, [CapabilityKind.STORAGE], health)
    memory.attach(Peripheral("Sim-NVMe-0", PeripheralKind.DISK))

    io_bridge = Organ(
        3, OrganKind.IO_BRIDGE, io.id,
        [CapabilityKind.PERCEPTION, CapabilityKind.ACTUATION, CapabilityKind.NETWORKING],
        health,
    )
    io_bridge.attach(Peripheral("Sim-10G-NIC-0", PeripheralKind.NIC))
    io_bridge.attach(Peripheral("Sim-USB-Hub-0", PeripheralKind.USB))
    io_bridge.attach(Peripheral("Sim-Display-0", PeripheralKind.DISPLAY))

    return Topology(nodes=[core, io], organs=[cortex, memory, io_bridge])
