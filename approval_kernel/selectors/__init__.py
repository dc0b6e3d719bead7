"""Read-only selectors."""

from approval_kernel.selectors.approval_selector import ApprovalFilter, ApprovalSelector
from approval_kernel.selectors.approval_stats_selector import (
    ApprovalStats,
    ApprovalStatsSelector,
    MonthlyTimeline,
    RecentActivity,
    StepBottleneck,
    TimelineReport,
)
from approval_kernel.selectors.base import BaseSelector
from approval_kernel.selectors.deadline_scanner import DeadlineItem, DeadlineScanner

__all__ = [
    "BaseSelector",
    "ApprovalFilter",
    "ApprovalSelector",
    "DeadlineItem",
    "DeadlineScanner",
    "ApprovalStats",
    "ApprovalStatsSelector",
    "RecentActivity",
    "StepBottleneck",
    "MonthlyTimeline",
    "TimelineReport",
]
