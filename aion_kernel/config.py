"""
Kernel Configuration
====================

Dataclass configuration for the AION kernel, loadable from YAML.

Example (aion.yaml):

    telemetry: sim
    sim_level: low
    scheduler:
      tick_interval_sec: 0.05
      status_interval: 100
    health:
      max_step: 0.05
    persistence:
      state_path: aion_state.txt
      autoload: true
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

import yaml

from aion_kernel.models.levels import LogFilter, SimLevel

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class SchedulerConfig:
    """Tick pacing and per-daemon intervals (in ticks)."""
    tick_interval_sec: float = 0.05
    heartbeat_interval: int = 20
    status_interval: int = 100
    ai_interval: int = 40
    simulation_interval: int = 20
    history_size: int = 256


@dataclass
class HealthLimits:
    """Rate limits for the health engine."""
    max_step: float = 0.05          # max health change per organ per tick
    recovery_step: float = 0.005    # recovery when no adverse signal is present
    max_penalties: Dict[str, float] = field(default_factory=dict)  # per-signal overrides


@dataclass
class SimIntensity:
    """Synthetic fault schedule for one simulation level."""
    fault_probability: float
    damage_min: float
    damage_max: float
    recovery: float


@dataclass
class SimulationConfig:
    """
    Synthetic event generator settings.

    Injected faults bypass the health engine, so damage_max is not bounded
    by HealthLimits.max_step.
    """
    seed: int = 7
    low: SimIntensity = field(default_factory=lambda: SimIntensity(0.3, 0.01, 0.04, 0.01))
    high: SimIntensity = field(default_factory=lambda: SimIntensity(0.6, 0.03, 0.10, 0.02))

    def intensity(self, level: SimLevel) -> Optional[SimIntensity]:
        if level is SimLevel.LOW:
            return self.low
        if level is SimLevel.HIGH:
            return self.high
        return None


@dataclass
class PersistenceConfig:
    """Where and when organ health is persisted."""
    state_path: Path = field(default_factory=lambda: Path("aion_state.txt"))
    autoload: bool = False
    autosave: bool = False


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    file: Optional[Path] = None


@dataclass
class KernelConfig:
    """Complete kernel configuration."""
    telemetry: str = "sim"
    sim_level: SimLevel = SimLevel.OFF
    log_filter: LogFilter = LogFilter.COMMANDS
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    health: HealthLimits = field(default_factory=HealthLimits)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self):
        # YAML 1.1 reads a bare `off` as False
        if self.sim_level is False:
            self.sim_level = SimLevel.OFF
        if self.log_filter is False:
            self.log_filter = LogFilter.SILENT
        self.sim_level = SimLevel(self.sim_level)
        self.log_filter = LogFilter.parse(self.log_filter) if isinstance(self.log_filter, str) else LogFilter(self.log_filter)
        self.persistence.state_path = Path(self.persistence.state_path)
        if self.logging.file is not None:
            self.logging.file = Path(self.logging.file)
        self.validate()

    def validate(self) -> None:
        """Raise ValueError on out-of-range settings."""
        s = self.scheduler
        if s.tick_interval_sec < 0:
            raise ValueError("scheduler.tick_interval_sec must be >= 0")
        for name in ("heartbeat_interval", "status_interval", "ai_interval", "simulation_interval"):
            if getattr(s, name) < 1:
                raise ValueError(f"scheduler.{name} must be >= 1")
        if not 0.0 < self.health.max_step <= 1.0:
            raise ValueError("health.max_step must be in (0, 1]")
        if not 0.0 <= self.health.recovery_step <= self.health.max_step:
            raise ValueError("health.recovery_step must be in [0, max_step]")
        for level in ("low", "high"):
            intensity: SimIntensity = getattr(self.simulation, level)
            if not 0.0 <= intensity.fault_probability <= 1.0:
                raise ValueError(f"simulation.{level}.fault_probability must be in [0, 1]")
            if not 0.0 <= intensity.damage_min <= intensity.damage_max <= 1.0:
                raise ValueError(f"simulation.{level} damage range is invalid")

    # ─────────────────────────────────────────────────────────────────
    # Loading
    # ─────────────────────────────────────────────────────────────────

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> KernelConfig:
        data = dict(data or {})
        nested = {
            "scheduler": SchedulerConfig,
            "health": HealthLimits,
            "persistence": PersistenceConfig,
            "logging": LoggingConfig,
        }
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key in nested:
                kwargs[key] = _build(nested[key], value or {}, key)
            elif key == "simulation":
                kwargs[key] = _build_simulation(value or {})
            elif key in _field_names(cls):
                kwargs[key] = value
            else:
                raise ValueError(f"unknown config key '{key}'")
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: Path) -> KernelConfig:
        """Load config from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: top level must be a mapping")
        config = cls.from_dict(data)
        logger.info(f"Loaded kernel config from {path}")
        return config

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> KernelConfig:
        """
        Build config from environment.

        AION_CONFIG      - YAML file to load
        AION_TELEMETRY   - provider override (sim / real)
        AION_STATE_FILE  - persisted state path override
        """
        env = os.environ if environ is None else environ
        config_path = env.get("AION_CONFIG")
        config = cls.from_yaml(Path(config_path)) if config_path else cls()
        if env.get("AION_TELEMETRY"):
            config.telemetry = env["AION_TELEMETRY"].strip().lower()
        if env.get("AION_STATE_FILE"):
            config.persistence.state_path = Path(env["AION_STATE_FILE"])
        return config

    def to_dict(self) -> Dict[str, Any]:
        data = dataclasses.asdict(self)
        data["sim_level"] = self.sim_level.value
        data["log_filter"] = self.log_filter.value
        data["persistence"]["state_path"] = str(self.persistence.state_path)
        if self.logging.file is not None:
            data["logging"]["file"] = str(self.logging.file)
        return data


def _field_names(cls: Type[Any]) -> Tuple[str, ...]:
    return tuple(f.name for f in dataclasses.fields(cls))


def _build(cls: Type[T], data: Dict[str, Any], section: str) -> T:
    if not isinstance(data, dict):
        raise ValueError(f"config section '{section}' must be a mapping")
    unknown = set(data) - set(_field_names(cls))
    if unknown:
        raise ValueError(f"unknown keys in '{section}': {', '.join(sorted(unknown))}")
    return cls(**data)


def _build_simulation(data: Dict[str, Any]) -> SimulationConfig:
    data = dict(data)
    defaults = SimulationConfig()
    for level in ("low", "high"):
        if level in data:
            merged = {**dataclasses.asdict(getattr(defaults, level)), **(data[level] or {})}
            data[level] = _build(SimIntensity, merged, f"simulation.{level}")
    return _build(SimulationConfig, data, "simulation")
