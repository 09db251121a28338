"""Grouping and balance KPIs."""

from reco_engine.kpi.grouping import (
    GroupingIndex,
    compute_grouping,
    counterparts,
    group_kpis,
    group_transactions,
)

__all__ = ["GroupingIndex", "compute_grouping", "counterparts", "group_kpis", "group_transactions"]
