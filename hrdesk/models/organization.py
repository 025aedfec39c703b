"""
HR Desk — Organization domain models.

Models:
    - WorkUnit: organizational unit; the first review tier is scoped to one unit
    - UserDocument: per-user document repository entry, reused to pre-fill
      request checklists at submission time
"""

from datetime import datetime, timezone

from hrdesk.models import db


class WorkUnit(db.Model):
    """Organizational unit (directorate, training centre, …)."""

    __tablename__ = "work_units"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), unique=True, nullable=False)
    name = db.Column(db.String(200), nullable=False)
    admin_unit_id = db.Column(
        db.String(64), nullable=True,
        comment="Unit reviewer nominally in charge; initial consultation handler",
    )
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "admin_unit_id": self.admin_unit_id,
        }

    def __repr__(self):
        return f"<WorkUnit {self.id}: {self.code}>"


class UserDocument(db.Model):
    """
    A previously uploaded piece of evidence in a user's document repository.

    Keyed by a repository key (e.g. ``sk_pns``); see
    ``hrdesk.services.document_catalog.repository_key_for``.
    """

    __tablename__ = "user_documents"
    __table_args__ = (
        db.UniqueConstraint("user_id", "key", name="uq_user_documents_user_key"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    key = db.Column(db.String(80), nullable=False)
    name = db.Column(db.String(300), nullable=False)
    url = db.Column(db.String(1000), nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "key": self.key,
            "name": self.name,
            "url": self.url,
        }

    def __repr__(self):
        return f"<UserDocument {self.user_id}/{self.key}>"
