"""
Partner hierarchy services.

Contains the services that keep the partner hierarchy consistent:
- traversal: visited-set guarded upline/downline walks
- resolver: upline/downline queries over users and the cache
- cache_builder: derives partner_hierarchy rows from parent links
- writer: the single code path that writes parent_partner_id
- reconciliation: drift diagnosis and administrative repair
"""

from app.services.hierarchy.cache_builder import (
    HierarchyCacheBuilder,
    RebuildResult,
    RebuildSummary,
)
from app.services.hierarchy.reconciliation import (
    DriftReport,
    HierarchyReconciler,
    LevelFinding,
    LevelStatus,
    RepairResult,
    classify_levels,
)
from app.services.hierarchy.resolver import (
    DownlineTree,
    HierarchyResolver,
    Upline,
)
from app.services.hierarchy.writer import HierarchyWriter, RelinkResult


__all__ = [
    # Resolver
    "HierarchyResolver",
    "Upline",
    "DownlineTree",
    # Cache builder
    "HierarchyCacheBuilder",
    "RebuildResult",
    "RebuildSummary",
    # Writer
    "HierarchyWriter",
    "RelinkResult",
    # Reconciliation
    "HierarchyReconciler",
    "DriftReport",
    "LevelFinding",
    "LevelStatus",
    "RepairResult",
    "classify_levels",
]
