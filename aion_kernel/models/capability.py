"""
Capability Registry
===================

Per-organ capability records the AI cortex can reason about.
Each record carries a survival priority and an enabled flag.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Dict, List, Optional, Any

from aion_kernel.models.topology import CapabilityKind, OrganKind, Topology, clamp01


# Survival priority per capability kind, used when seeding from a topology.
DEFAULT_PRIORITIES: Dict[CapabilityKind, float] = {
    CapabilityKind.COMPUTE: 1.0,
    CapabilityKind.STORAGE: 0.9,
    CapabilityKind.PLANNING: 0.7,
    CapabilityKind.NETWORKING: 0.6,
    CapabilityKind.PERCEPTION: 0.5,
    CapabilityKind.ACTUATION: 0.4,
    CapabilityKind.LEARNING: 0.3,
}


@dataclass
class Capability:
    """A capability instance attached to an organ."""
    id: int
    organ: OrganKind
    kind: CapabilityKind
    label: str
    description: str = ""
    enabled: bool = True
    priority: float = 0.5

    def __post_init__(self):
        self.priority = clamp01(self.priority)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "organ": self.organ.value,
            "kind": self.kind.value,
            "label": self.label,
            "description": self.description,
            "enabled": self.enabled,
            "priority": self.priority,
        }


class CapabilityRegistry:
    """In-memory registry of known capabilities."""

    def __init__(self):
        self._by_id: Dict[int, Capability] = {}
        self._by_organ: Dict[OrganKind, List[int]] = {}
        self._ids = itertools.count()

    @classmethod
    def from_topology(cls, topology: Topology) -> CapabilityRegistry:
        """Seed one record per organ capability."""
        registry = cls()
        for organ in topology.organs():
            for kind in sorted(organ.capabilities, key=lambda k: k.value):
                registry.register(
                    organ.kind,
                    kind,
                    label=f"{organ.kind.value}.{kind.value}",
                    priority=DEFAULT_PRIORITIES.get(kind, 0.5),
                )
        return registry

    def register(
        self,
        organ: OrganKind,
        kind: CapabilityKind,
        label: str,
        description: str = "",
        priority: float = 0.5,
    ) -> int:
        """Register a capability and return its id."""
        cap_id = next(self._ids)
        self._by_id[cap_id] = Capability(cap_id, organ, kind, label, description, priority=priority)
        self._by_organ.setdefault(organ, []).append(cap_id)
        return cap_id

    def get(self, cap_id: int) -> Optional[Capability]:
        return self._by_id.get(cap_id)

    def for_organ(self, organ: OrganKind) -> List[Capability]:
        return [self._by_id[i] for i in self._by_organ.get(organ, [])]

    def by_kind(self, kind: CapabilityKind) -> List[Capability]:
        return [c for c in self._by_id.values() if c.kind == kind]

    def set_enabled(self, cap_id: int, enabled: bool) -> bool:
        cap = self._by_id.get(cap_id)
        if cap is None:
            return False
        cap.enabled = enabled
        return True

    def all(self) -> List[Capability]:
        return [self._by_id[i] for i in sorted(self._by_id)]

    def __len__(self) -> int:
        return len(self._by_id)
