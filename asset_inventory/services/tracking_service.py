from __future__ import annotations

import logging

from sqlmodel import Session, col, select

from asset_inventory.domain.errors import NotFoundError, ValidationError
from asset_inventory.domain.models import (
    Asset,
    AssetTrackingHistory,
    TrackingEntryRead,
    TrackingEntryView,
    User,
)
from asset_inventory.infra.db import commit_or_raise, get_engine

logger = logging.getLogger(__name__)

UNKNOWN_USER = "Unknown user"


class TrackingHistoryLog:
    """Append-only change history per asset.

    Entries are never updated or removed here; they go away only when the
    asset itself is deleted. Reads resolve the acting user's display identity
    at query time, falling back to ``UNKNOWN_USER`` once the user is gone.
    """

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def stage(self, session: Session, entry: AssetTrackingHistory) -> AssetTrackingHistory:
        """Add ``entry`` to a transaction owned by the caller."""
        session.add(entry)
        return entry

    def append(self, entry: AssetTrackingHistory) -> AssetTrackingHistory:
        with self._session() as session:
            if session.get(Asset, entry.asset_id) is None:
                raise NotFoundError("asset not found")
            self.stage(session, entry)
            commit_or_raise(session, "tracking history append failed")
            session.refresh(entry)
        return entry

    def list_for_asset(self, asset_id: str, limit: int | None = None) -> list[TrackingEntryView]:
        if limit is not None and limit < 1:
            raise ValidationError("limit must be a positive integer")
        with self._session() as session:
            return self.list_in_session(session, asset_id, limit)

    def list_in_session(
        self,
        session: Session,
        asset_id: str,
        limit: int | None = None,
    ) -> list[TrackingEntryView]:
        statement = (
            select(AssetTrackingHistory)
            .where(AssetTrackingHistory.asset_id == asset_id)
            .order_by(col(AssetTrackingHistory.created_at).desc(), col(AssetTrackingHistory.id).desc())
        )
        if limit is not None:
            statement = statement.limit(limit)
        rows = list(session.exec(statement).all())
        return self._enrich(session, rows)

    def _enrich(self, session: Session, rows: list[AssetTrackingHistory]) -> list[TrackingEntryView]:
        user_ids = {row.changed_by for row in rows}
        users: dict[str, User] = {}
        if user_ids:
            found = session.exec(select(User).where(col(User.id).in_(user_ids))).all()
            users = {user.id: user for user in found}

        views: list[TrackingEntryView] = []
        for row in rows:
            base = TrackingEntryRead.model_validate(row).model_dump()
            changer = users.get(row.changed_by)
            views.append(
                TrackingEntryView(
                    **base,
                    changer_email=changer.email if changer is not None else UNKNOWN_USER,
                    changer_full_name=changer.full_name if changer is not None else None,
                )
            )
        return views
