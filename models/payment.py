from datetime import datetime
from models.db import db

READY = "ready"
PAID = "paid"
CANCELLED = "cancelled"
PARTIAL_CANCELLED = "partial_cancelled"
FAILED = "failed"

class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)

    # Stripe PaymentIntent id
    payment_key = db.Column(db.String(255), nullable=False, unique=True, index=True)
    order_id = db.Column(db.String(64), nullable=False, unique=True, index=True)

    reservation_id = db.Column(db.Integer, db.ForeignKey("reservations.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    provider = db.Column(db.String(20), nullable=False, default="stripe")
    method = db.Column(db.String(20), nullable=False, default="card")
    amount = db.Column(db.Integer, nullable=False)   # smallest unit (KRW has no minor unit)
    currency = db.Column(db.String(10), nullable=False, default="krw")

    status = db.Column(db.String(20), nullable=False, default=READY)
    # ready, paid, cancelled, partial_cancelled, failed

    receipt_url = db.Column(db.String(500), nullable=True)
    raw_response = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)
    failed_at = db.Column(db.DateTime, nullable=True)
    fail_reason = db.Column(db.String(255), nullable=True)

    cancels = db.relationship(
        "PaymentCancel",
        backref="payment",
        order_by="PaymentCancel.id",
        cascade="all, delete-orphan",
        lazy=True,
    )

    @property
    def cancelled_total(self) -> int:
        return sum(c.amount for c in self.cancels if c.refund_status != "failed")

    def to_dict(self):
        return {
            "id": self.id,
            "paymentKey": self.payment_key,
            "orderId": self.order_id,
            "reservationId": self.reservation_id,
            "amount": self.amount,
            "currency": self.currency,
            "method": self.method,
            "status": self.status,
            "receiptUrl": self.receipt_url,
            "paidAt": self.paid_at.isoformat() if self.paid_at else None,
            "failedAt": self.failed_at.isoformat() if self.failed_at else None,
            "failReason": self.fail_reason,
            "cancels": [c.to_dict() for c in self.cancels],
        }


class PaymentCancel(db.Model):
    __tablename__ = "payment_cancels"

    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=False, index=True)

    amount = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    refund_status = db.Column(db.String(20), nullable=False, default="completed")  # pending, completed, failed
    transaction_key = db.Column(db.String(255), nullable=True)  # Stripe refund id

    cancelled_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "amount": self.amount,
            "reason": self.reason,
            "refundStatus": self.refund_status,
            "transactionKey": self.transaction_key,
            "cancelledAt": self.cancelled_at.isoformat(),
        }
