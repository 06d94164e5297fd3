"""
Organism Snapshot
=================

Read-only view of the organism rebuilt by the scheduler after every tick.
External readers (shell, dashboards) consume this instead of touching the
live topology.
"""

from __future__ import annotations

import time
from typing import Dict, List

from pydantic import BaseModel, Field

from aion_kernel.bus import Bus
from aion_kernel.models.alerts import describe_awareness
from aion_kernel.models.topology import Topology


class OrganSnapshot(BaseModel):
    kind: str
    node_id: int
    health: float
    tier: str
    label: str
    peripherals: List[str] = Field(default_factory=list)


class OrganismSnapshot(BaseModel):
    """Point-in-time state of the whole organism."""
    tick: int
    organs: List[OrganSnapshot]
    awareness: float
    awareness_label: str
    policy: str
    sim_level: str
    log_filter: str
    timestamp: float = Field(default_factory=time.time)

    def health(self) -> Dict[str, float]:
        return {o.kind: o.health for o in self.organs}


def build_snapshot(topology: Topology, bus: Bus, tick: int) -> OrganismSnapshot:
    organs = [
        OrganSnapshot(
            kind=o.kind.value,
            node_id=o.node_id,
            health=o.health,
            tier=o.tier.name.lower(),
            label=o.tier.health_label,
            peripherals=[p.id for p in o.peripherals],
        )
        for o in topology.organs()
    ]
    awareness = bus.current_awareness()
    return OrganismSnapshot(
        tick=tick,
        organs=organs,
        awareness=awareness,
        awareness_label=describe_awareness(awareness),
        policy=bus.policy().value,
        sim_level=bus.sim_level().value,
        log_filter=bus.log_filter().value,
    )
