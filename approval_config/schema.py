"""
Configuration schema -- frozen dataclasses parsed from YAML.

Every value the engine treats as policy (SLA table, due-soon horizon,
gating mode) lives here so that nothing in the algorithms hard-codes it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

VALID_UNITS = frozenset({"calendar_days", "business_days"})
VALID_GATING_MODES = frozenset({"serial", "parallel"})


@dataclass(frozen=True)
class DeadlineConfig:
    unit: str = "calendar_days"
    default_sla_days: int | None = 3
    step_sla_days: dict[int, int] = field(default_factory=dict)
    role_sla_days: dict[str, int] = field(default_factory=dict)
    holidays: tuple[date, ...] = ()
    cumulative: bool = False


@dataclass(frozen=True)
class ScannerConfig:
    due_soon_horizon_days: float = 3


@dataclass(frozen=True)
class WorkflowConfig:
    gating: str = "serial"


@dataclass(frozen=True)
class ApprovalEngineConfig:
    """The complete, validated engine configuration."""

    config_id: str
    version: int
    deadlines: DeadlineConfig
    scanner: ScannerConfig
    workflow: WorkflowConfig
    checksum: str
    description: str | None = None
