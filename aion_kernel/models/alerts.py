"""
Alert Tiers
===========

Severity classification derived from a health or awareness value.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Any


# Lower-inclusive thresholds for each tier above FAILED.
OK_THRESHOLD = 0.85
DEGRADED_THRESHOLD = 0.60
IMPAIRED_THRESHOLD = 0.35


class AlertTier(IntEnum):
    """Severity tiers, ordered from healthy to failed."""
    OK = 0
    DEGRADED = 1
    IMPAIRED = 2
    CRITICAL = 3
    FAILED = 4

    @property
    def health_label(self) -> str:
        return _HEALTH_LABELS[self]

    @property
    def awareness_label(self) -> str:
        return _AWARENESS_LABELS[self]

    @property
    def is_alert(self) -> bool:
        return self is not AlertTier.OK


_HEALTH_LABELS = {
    AlertTier.OK: "ok",
    AlertTier.DEGRADED: "degraded",
    AlertTier.IMPAIRED: "impaired",
    AlertTier.CRITICAL: "critical",
    AlertTier.FAILED: "failed",
}

_AWARENESS_LABELS = {
    AlertTier.OK: "optimal",
    AlertTier.DEGRADED: "stable",
    AlertTier.IMPAIRED: "impaired",
    AlertTier.CRITICAL: "critical",
    AlertTier.FAILED: "unconscious",
}


def tier_for(value: float) -> AlertTier:
    """Classify a value in [0, 1]."""
    if value >= OK_THRESHOLD:
        return AlertTier.OK
    if value >= DEGRADED_THRESHOLD:
        return AlertTier.DEGRADED
    if value >= IMPAIRED_THRESHOLD:
        return AlertTier.IMPAIRED
    if value > 0.0:
        return AlertTier.CRITICAL
    return AlertTier.FAILED


def describe_awareness(score: float) -> str:
    """Human label for an awareness score."""
    return tier_for(score).awareness_label


def describe_health(health: float) -> str:
    """Human label for an organ health value."""
    return tier_for(health).health_label


AWARENESS_SUBJECT = "awareness"


@dataclass(frozen=True)
class Alert:
    """A tier transition observed for an organ or for awareness."""
    subject: str               # organ kind value, or "awareness"
    previous: AlertTier
    tier: AlertTier
    value: float

    @property
    def label(self) -> str:
        if self.subject == AWARENESS_SUBJECT:
            return self.tier.awareness_label
        return self.tier.health_label

    @property
    def escalating(self) -> bool:
        return self.tier > self.previous

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "previous": self.previous.name.lower(),
            "tier": self.tier.name.lower(),
            "label": self.label,
            "value": self.value,
        }
