# canvass_app/models/enums.py
"""
Enums shared by the reconciliation models.
"""

import enum


class CaptureStatus(str, enum.Enum):
    """Processing outcome stored on each capture log row."""

    PROCESSED = "PROCESSED"
    REJECTED_DUPLICATE = "REJECTED_DUPLICATE"
    ERROR = "ERROR"


class IncidentKind(str, enum.Enum):
    """Duplicate and conflict taxonomy."""

    EXACT_DUPLICATE = "EXACT_DUPLICATE"
    DUPLICATE_ACROSS_LEADERS = "DUPLICATE_ACROSS_LEADERS"
    DATA_CONFLICT = "DATA_CONFLICT"
    MANUAL = "MANUAL"


class EntityKind(str, enum.Enum):
    """Entity kinds that can be soft-deleted or referenced by the action log."""

    SPONSOR = "sponsor"
    LEADER = "leader"
    VOTER = "voter"
    ASSIGNMENT = "assignment"
    CAPTURE = "capture"
    INCIDENT = "incident"


class ActionType(str, enum.Enum):
    """Mutations recorded in the action log."""

    CAPTURE = "CAPTURE"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    RENAME = "RENAME"
    ASSIGN = "ASSIGN"
    UNASSIGN = "UNASSIGN"
    REASSIGN = "REASSIGN"
    DELETE = "DELETE"
