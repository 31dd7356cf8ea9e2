from datetime import datetime
from ..extensions import db
from .user import _uuid


class Notification(db.Model):
    __tablename__ = "notification"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey("user.id"), nullable=False)
    project_id = db.Column(db.String(36), db.ForeignKey("project.id"))
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text)
    read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.Index("ix_notification_user_read", "user_id", "read"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "read": self.read,
            "project_id": self.project_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
