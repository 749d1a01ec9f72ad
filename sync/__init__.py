"""
Local/remote reconciliation: the pure engine, the store boundary and the
service that ties them together.
"""

from .reconciliation import (
    DiagnosticReport,
    IdPartition,
    IssueKind,
    MissingDiagnosis,
    PlannedAction,
    ReconcileMode,
    ReconciliationEngine,
    SyncAction,
    SyncStatus,
    same_content
)
from .executor import EntitySyncResult, RecordFailure, SyncExecutor
from .service import (
    EntityReport,
    ReconciliationReport,
    ReportStatus,
    SyncService,
    require_user,
    wrap_config
)

__all__ = [
    "DiagnosticReport",
    "IdPartition",
    "IssueKind",
    "MissingDiagnosis",
    "PlannedAction",
    "ReconcileMode",
    "ReconciliationEngine",
    "SyncAction",
    "SyncStatus",
    "same_content",
    "EntitySyncResult",
    "RecordFailure",
    "SyncExecutor",
    "EntityReport",
    "ReconciliationReport",
    "ReportStatus",
    "SyncService",
    "require_user",
    "wrap_config"
]
