"""
Approval engine configuration.

Public API:
    get_active_config(config_path=None) -> ApprovalEngineConfig
    build_deadline_policy(config) -> DeadlinePolicy
    build_gating_policy(config) -> GatingPolicy
    due_soon_horizon(config) -> timedelta
    build_workflow_engine(config, session_factory, clock=None, emitters=None) -> WorkflowEngine
"""

from __future__ import annotations

from pathlib import Path

from approval_config.bridges import (
    build_deadline_policy,
    build_gating_policy,
    build_workflow_engine,
    due_soon_horizon,
)
from approval_config.loader import load_config_file
from approval_config.schema import (
    ApprovalEngineConfig,
    DeadlineConfig,
    ScannerConfig,
    WorkflowConfig,
)
from approval_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
DEFAULT_CONFIG_PATH = _DEFAULT_CONFIG_DIR / "default.yaml"

__all__ = [
    "ApprovalEngineConfig",
    "DeadlineConfig",
    "ScannerConfig",
    "WorkflowConfig",
    "DEFAULT_CONFIG_PATH",
    "get_active_config",
    "build_deadline_policy",
    "build_gating_policy",
    "due_soon_horizon",
    "build_workflow_engine",
]


def get_active_config(config_path: Path | None = None) -> ApprovalEngineConfig:
    """
    Load the engine configuration.

    Args:
        config_path: YAML file to load.  Defaults to the packaged
            ``sets/default.yaml``.

    Returns:
        A validated, frozen ApprovalEngineConfig.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the file fails validation.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = load_config_file(path)

    _logger.info(
        "APPROVAL_CONFIG_TRACE",
        extra={
            "trace_type": "APPROVAL_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "gating": config.workflow.gating,
            "sla_unit": config.deadlines.unit,
            "source": str(path),
        },
    )
    return config
