# canvass_app/models/__init__.py
"""
Database models package
"""

from .archive import ArchivedLeader, ArchivedSponsor, ArchivedVoter
from .audit import ActionLog
from .base import BaseModel, db, model_snapshot
from .enums import ActionType, CaptureStatus, EntityKind, IncidentKind
from .people import IDENTIFIER_LENGTH, CanonicalVoter, Leader, Sponsor
from .reconciliation import Assignment, Capture, Incident, Variant

__all__ = [
    "db",
    "BaseModel",
    "model_snapshot",
    "IDENTIFIER_LENGTH",
    # People
    "Sponsor",
    "Leader",
    "CanonicalVoter",
    # Reconciliation tables
    "Capture",
    "Variant",
    "Assignment",
    "Incident",
    # Archive and audit
    "ArchivedSponsor",
    "ArchivedLeader",
    "ArchivedVoter",
    "ActionLog",
    # Enums
    "ActionType",
    "CaptureStatus",
    "EntityKind",
    "IncidentKind",
]
