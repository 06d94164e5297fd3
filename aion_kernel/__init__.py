"""
AION Kernel
===========

A machine modeled as a small organism: organs with normalized health,
combined into an awareness index, driven by periodic daemons that talk
over a shared pulse bus.

Architecture:
    Topology   - nodes, organs, peripherals and their health
    Bus        - deferred pulse delivery plus shared scalar state
    Health     - telemetry -> health, awareness and edge-triggered alerts
    Scheduler  - fixed-order tick loop over the daemons
    Commands   - the single external mutation entry point
"""

from aion_kernel.models.topology import (
    OrganKind, Organ, Node, Peripheral, Topology, sample_topology,
)
from aion_kernel.models.alerts import AlertTier, Alert
from aion_kernel.models.pulse import Pulse, PulseKind
from aion_kernel.models.levels import SimLevel, LogFilter, Policy

from aion_kernel.errors import (
    AionError, TelemetryUnavailable, InvalidRequest,
    PersistenceError, ParseError, PersistenceWriteError, PersistenceReadError,
)
from aion_kernel.config import KernelConfig
from aion_kernel.bus import Bus
from aion_kernel.memory import WorkingMemory, MemoryScope
from aion_kernel.health import HealthEngine, compute_awareness
from aion_kernel.commands import CommandOp, CommandRequest, CommandResult, CommandHandler
from aion_kernel.scheduler import Scheduler, build_scheduler
from aion_kernel.snapshot import OrganismSnapshot

__all__ = [
    # Models
    "OrganKind", "Organ", "Node", "Peripheral", "Topology", "sample_topology",
    "AlertTier", "Alert",
    "Pulse", "PulseKind",
    "SimLevel", "LogFilter", "Policy",
    # Errors
    "AionError", "TelemetryUnavailable", "InvalidRequest",
    "PersistenceError", "ParseError", "PersistenceWriteError", "PersistenceReadError",
    # Core
    "KernelConfig",
    "Bus",
    "WorkingMemory", "MemoryScope",
    "HealthEngine", "compute_awareness",
    "CommandOp", "CommandRequest", "CommandResult", "CommandHandler",
    "Scheduler", "build_scheduler",
    "OrganismSnapshot",
]

__version__ = "0.1.0"
