from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow


class DocumentSequence(db.Model):
    """
    Counter behind daily document numbers.

    One row per sequence key (e.g. "ORD 261017"). next_number is bumped
    in place with a single UPDATE, so two tills never draw the same number.
    """
    __tablename__ = "document_sequences"

    id = db.Column(db.String(32), primary_key=True)
    sequence_key = db.Column(db.String(64), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<DocumentSequence {self.sequence_key} next={self.next_number}>"
