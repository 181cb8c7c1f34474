"""SQLAlchemy-backed salt store."""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from upsuider.db.time import utcnow
from upsuider.models.salt import ViewerSalt

__all__ = ["SqlSaltStore"]


class SqlSaltStore:
    """``SaltStore`` implementation over the ``viewer_salts`` table.

    Writes are flushed, not committed; the caller owns the transaction.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_record(self, subject: str) -> ViewerSalt | None:
        """Return the full salt record for a subject."""
        result = self.session.execute(select(ViewerSalt).where(ViewerSalt.twitch_id == subject))
        return result.scalars().first()

    def get(self, subject: str) -> str | None:
        record = self.get_record(subject)
        return record.salt if record is not None else None

    def put(self, subject: str, salt: str) -> bool:
        record = self.get_record(subject)
        if record is None:
            self.session.add(ViewerSalt(twitch_id=subject, salt=salt))
            self.session.flush()
            return True
        record.salt = salt
        record.updated_at = utcnow()
        self.session.flush()
        return False
