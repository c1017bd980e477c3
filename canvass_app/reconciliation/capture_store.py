"""Append-only capture log."""

from __future__ import annotations

from typing import Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from canvass_app.models import Capture, CaptureStatus, EntityKind, db

from .history import RenameHistory


class CaptureStore:
    """Persists raw leader reports and answers exact-duplicate lookups."""

    def __init__(self, session: Session | None = None, history: RenameHistory | None = None) -> None:
        self.session: Session = session or db.session
        self.history = history or RenameHistory(self.session)

    def find_processed(self, leader_identifier: str, reported_identifier: str, content_hash: str) -> Capture | None:
        """Processed capture with the same hash, including ones filed under the leader's earlier ids."""

        stmt = select(Capture).where(
            self.history.matches(EntityKind.LEADER, leader_identifier, Capture.leader_identifier, Capture.created_at),
            Capture.reported_identifier == reported_identifier,
            Capture.content_hash == content_hash,
            Capture.status == CaptureStatus.PROCESSED,
        )
        return self.session.execute(stmt.order_by(Capture.id.asc()).limit(1)).scalar_one_or_none()

    def append(
        self,
        *,
        leader_identifier: str,
        reported_identifier: str,
        payload: Mapping[str, object] | None,
        normalized: Mapping[str, object] | None,
        content_hash: str,
        status: CaptureStatus = CaptureStatus.PROCESSED,
        actor: str | None = None,
        source: str = "api",
        canonical_identifier: str | None = None,
        error_detail: str | None = None,
    ) -> Capture:
        capture = Capture(
            leader_identifier=leader_identifier,
            reported_identifier=reported_identifier,
            payload_json=dict(payload) if payload is not None else None,
            normalized_json=dict(normalized) if normalized is not None else None,
            content_hash=content_hash,
            status=status,
            actor=actor,
            source=source,
            canonical_identifier=canonical_identifier,
            error_detail=error_detail,
        )
        self.session.add(capture)
        self.session.flush()
        return capture
