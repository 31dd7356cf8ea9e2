# portal/models/project.py
from datetime import datetime
from ..extensions import db
from .user import _uuid

PROJECT_STATUSES = ("discovery", "in-progress", "testing", "ready", "completed")


class Project(db.Model):
    __tablename__ = "project"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    client_id = db.Column(db.String(36), db.ForeignKey("user.id"), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)

    # discovery|in-progress|testing|ready|completed
    status = db.Column(db.String(20), nullable=False, default="discovery", index=True)
    progress = db.Column(db.Integer, nullable=False, default=0)  # 0..100
    estimated_delivery = db.Column(db.Date)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = db.relationship("User", back_populates="projects")
    invoices = db.relationship(
        "Invoice",
        back_populates="project",
        order_by="Invoice.created_at.desc()",
        cascade="all, delete-orphan",
    )

    def to_dict(self, with_invoices: bool = False) -> dict:
        out = {
            "id": self.id,
            "client_id": self.client_id,
            "client_name": self.client.name if self.client else None,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "progress": self.progress,
            "estimated_delivery": self.estimated_delivery.isoformat() if self.estimated_delivery else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if with_invoices:
            out["invoices"] = [inv.to_dict() for inv in self.invoices]
        return out
