"""
Voter identity reconciliation engine.

Exposes the orchestrator, its components and the read-side query service.
"""

from __future__ import annotations

from .assignments import AssignmentManager
from .audit import ArchiveService, AuditTrail
from .capture_store import CaptureStore
from .errors import (
    AlreadyAssigned,
    Conflict,
    ExactDuplicate,
    NotAssigned,
    NotFound,
    ReconciliationError,
    StorageError,
    Undeletable,
    ValidationError,
)
from .incidents import IncidentDetector
from .orchestrator import BatchSummary, CaptureOutcome, CaptureState, ReconciliationOrchestrator, transaction
from .query_service import CaptureFilters, IncidentFilters, Page, ReconciliationQueryService, VariantFilters
from .renames import IdentifierRenamer, RenameResult
from .resolver import CanonicalResolver
from .variants import VariantOutcome, VariantRecorder

__all__ = [
    "ReconciliationOrchestrator",
    "CaptureOutcome",
    "CaptureState",
    "BatchSummary",
    "transaction",
    "CaptureStore",
    "CanonicalResolver",
    "VariantRecorder",
    "VariantOutcome",
    "AssignmentManager",
    "IncidentDetector",
    "AuditTrail",
    "ArchiveService",
    "IdentifierRenamer",
    "RenameResult",
    "ReconciliationQueryService",
    "Page",
    "CaptureFilters",
    "VariantFilters",
    "IncidentFilters",
    # Errors
    "ReconciliationError",
    "ValidationError",
    "NotFound",
    "ExactDuplicate",
    "AlreadyAssigned",
    "NotAssigned",
    "Conflict",
    "Undeletable",
    "StorageError",
]
