"""
YAML loader: parses a configuration file into ``ApprovalEngineConfig``.

Validation happens while parsing; a returned config is always usable.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any

import yaml

from approval_config.schema import (
    VALID_GATING_MODES,
    VALID_UNITS,
    ApprovalEngineConfig,
    DeadlineConfig,
    ScannerConfig,
    WorkflowConfig,
)
from approval_kernel.utils.hashing import hash_payload


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root must be a mapping: {path}")
    return data


def parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def _non_negative_int(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{label} must be a non-negative integer, got {value!r}")
    return value


def parse_deadlines(data: dict[str, Any]) -> DeadlineConfig:
    unit = data.get("unit", "calendar_days")
    if unit not in VALID_UNITS:
        raise ValueError(f"Unknown SLA unit {unit!r}, expected one of {sorted(VALID_UNITS)}")

    default = data.get("default_sla_days", 3)
    if default is not None:
        default = _non_negative_int(default, "default_sla_days")

    step_sla: dict[int, int] = {}
    for step, days in (data.get("step_sla_days") or {}).items():
        step_number = int(step)
        if step_number < 1:
            raise ValueError(f"step_sla_days keys must be positive, got {step!r}")
        step_sla[step_number] = _non_negative_int(days, f"step_sla_days[{step}]")

    role_sla = {
        str(role): _non_negative_int(days, f"role_sla_days[{role}]")
        for role, days in (data.get("role_sla_days") or {}).items()
    }

    return DeadlineConfig(
        unit=unit,
        default_sla_days=default,
        step_sla_days=step_sla,
        role_sla_days=role_sla,
        holidays=tuple(sorted(parse_date(h) for h in data.get("holidays") or ())),
        cumulative=bool(data.get("cumulative", False)),
    )


def parse_scanner(data: dict[str, Any]) -> ScannerConfig:
    horizon = data.get("due_soon_horizon_days", 3)
    if isinstance(horizon, bool) or not isinstance(horizon, (int, float)) or horizon <= 0:
        raise ValueError(f"due_soon_horizon_days must be positive, got {horizon!r}")
    return ScannerConfig(due_soon_horizon_days=horizon)


def parse_workflow(data: dict[str, Any]) -> WorkflowConfig:
    gating = data.get("gating", "serial")
    if gating not in VALID_GATING_MODES:
        raise ValueError(
            f"Unknown gating mode {gating!r}, expected one of {sorted(VALID_GATING_MODES)}"
        )
    return WorkflowConfig(gating=gating)


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form; identical data, identical checksum."""
    return hash_payload(data)


def parse_config(data: dict[str, Any]) -> ApprovalEngineConfig:
    """
    Raises:
        ValueError: on any schema violation.
    """
    config_id = data.get("config_id")
    if not config_id:
        raise ValueError("config_id is required")
    version = data.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise ValueError(f"version must be a positive integer, got {version!r}")

    return ApprovalEngineConfig(
        config_id=str(config_id),
        version=version,
        description=data.get("description"),
        deadlines=parse_deadlines(data.get("deadlines") or {}),
        scanner=parse_scanner(data.get("scanner") or {}),
        workflow=parse_workflow(data.get("workflow") or {}),
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> ApprovalEngineConfig:
    return parse_config(load_yaml_file(path))
