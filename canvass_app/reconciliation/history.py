"""
Identifier history from the action log.

Captures and incidents keep the identifiers that were in force when they were
written. Reads that filter by a current identifier expand it to every earlier
identifier of the same entity, each bounded by the moment it was renamed away.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from canvass_app.models import ActionLog, ActionType, EntityKind, db

LIKE_ESCAPE = "\\"


@dataclass(frozen=True)
class IdentifierAlias:
    identifier: str
    until: datetime | None = None


def _escape_like(value: str) -> str:
    return value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", LIKE_ESCAPE + "%").replace("_", LIKE_ESCAPE + "_")


def list_member(column, value: str):
    """Exact membership of ``value`` in a comma-joined identifier column."""

    escaped = _escape_like(value)
    return or_(
        column == value,
        column.like(f"{escaped},%", escape=LIKE_ESCAPE),
        column.like(f"%,{escaped}", escape=LIKE_ESCAPE),
        column.like(f"%,{escaped},%", escape=LIKE_ESCAPE),
    )


class RenameHistory:
    """Resolves earlier identifiers of an entity through RENAME entries."""

    def __init__(self, session: Session | None = None) -> None:
        self.session: Session = session or db.session

    def aliases(self, kind: EntityKind, identifier: str) -> list[IdentifierAlias]:
        resolved = [IdentifierAlias(identifier)]
        seen = {identifier}
        frontier = [IdentifierAlias(identifier)]
        while frontier:
            current = frontier.pop()
            stmt = select(ActionLog).where(
                ActionLog.entity_kind == kind.value,
                ActionLog.entity_id == current.identifier,
                ActionLog.action == ActionType.RENAME,
            )
            if current.until is not None:
                stmt = stmt.where(ActionLog.created_at <= current.until)
            for entry in self.session.execute(stmt.order_by(ActionLog.id.asc())).scalars():
                previous = (entry.detail_json or {}).get("from")
                if not previous or previous in seen:
                    continue
                seen.add(previous)
                alias = IdentifierAlias(previous, until=entry.created_at)
                resolved.append(alias)
                frontier.append(alias)
        return resolved

    def matches(self, kind: EntityKind, identifier: str, column, timestamp_column):
        """SQL predicate selecting rows written under ``identifier`` or any earlier one."""

        return or_(*(_alias_clause(alias, column == alias.identifier, timestamp_column)
                     for alias in self.aliases(kind, identifier)))

    def list_matches(self, kind: EntityKind, identifier: str, column, timestamp_column):
        """Like ``matches`` for comma-joined identifier columns."""

        return or_(*(_alias_clause(alias, list_member(column, alias.identifier), timestamp_column)
                     for alias in self.aliases(kind, identifier)))


def _alias_clause(alias: IdentifierAlias, clause, timestamp_column):
    if alias.until is None:
        return clause
    return and_(clause, timestamp_column <= alias.until)
