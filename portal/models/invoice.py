from datetime import datetime
from ..extensions import db
from .user import _uuid

# draft|pending|paid|overdue|cancelled
INVOICE_STATUSES = ("draft", "pending", "paid", "overdue", "cancelled")


class Invoice(db.Model):
    __tablename__ = "invoice"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(db.String(36), db.ForeignKey("project.id"), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    amount = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="USD")
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    due_date = db.Column(db.Date)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    # optional external link an admin can attach instead of gateway checkout
    payment_link = db.Column(db.String(500))

    # gateway linkage; set only through services.invoice_store
    gateway = db.Column(db.String(32), default="razorpay")
    gateway_order_id = db.Column(db.String(64), unique=True, index=True)
    gateway_payment_id = db.Column(db.String(64))
    paid_at = db.Column(db.DateTime)

    project = db.relationship("Project", back_populates="invoices")

    @property
    def is_paid(self) -> bool:
        return self.status == "paid"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "amount": str(self.amount) if self.amount is not None else None,
            "currency": self.currency,
            "status": self.status,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "payment_link": self.payment_link,
            "gateway_order_id": self.gateway_order_id,
            "gateway_payment_id": self.gateway_payment_id,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
        }
