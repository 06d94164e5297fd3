"""Data models for the AION kernel."""

from aion_kernel.models.topology import (
    CapabilityKind, OrganKind, PeripheralKind, PeripheralStatus,
    Peripheral, Organ, Node, DeltaResult, Topology, sample_topology,
)
from aion_kernel.models.alerts import (
    AlertTier, Alert, tier_for, describe_awareness, describe_health,
)
from aion_kernel.models.pulse import Pulse, PulseKind
from aion_kernel.models.levels import SimLevel, LogFilter, Policy
from aion_kernel.models.capability import Capability, CapabilityRegistry

__all__ = [
    "CapabilityKind", "OrganKind", "PeripheralKind", "PeripheralStatus",
    "Peripheral", "Organ", "Node", "DeltaResult", "Topology", "sample_topology",
    "AlertTier", "Alert", "tier_for", "describe_awareness", "describe_health",
    "Pulse", "PulseKind",
    "SimLevel", "LogFilter", "Policy",
    "Capability", "CapabilityRegistry",
]
