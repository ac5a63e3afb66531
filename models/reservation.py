from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.orm import composite

from models.db import db

PENDING = "pending"
CONFIRMED = "confirmed"
COMPLETED = "completed"
CANCELLED = "cancelled"
NO_SHOW = "no_show"

RESERVATION_STATUSES = (PENDING, CONFIRMED, COMPLETED, CANCELLED, NO_SHOW)

# statuses that occupy a slot
ACTIVE_STATUSES = (PENDING, CONFIRMED)


@dataclass(frozen=True)
class PatientInfo:
    """Patient details captured at booking time, never re-read from the user profile."""

    name: str
    phone: str
    birth_date: date
    gender: str  # male | female

    def to_dict(self):
        return {
            "name": self.name,
            "phone": self.phone,
            "birthDate": self.birth_date.isoformat() if self.birth_date else None,
            "gender": self.gender,
        }


class Reservation(db.Model):
    __tablename__ = "reservations"

    id = db.Column(db.Integer, primary_key=True)
    reservation_number = db.Column(db.String(32), nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    package_id = db.Column(db.Integer, db.ForeignKey("packages.id"), nullable=False)

    reservation_date = db.Column(db.Date, nullable=False)
    reservation_time = db.Column(db.String(5), nullable=False)  # "HH:MM"

    patient_name = db.Column(db.String(60), nullable=False)
    patient_phone = db.Column(db.String(30), nullable=False)
    patient_birth_date = db.Column(db.Date, nullable=False)
    patient_gender = db.Column(db.String(10), nullable=False)
    patient = composite(PatientInfo, patient_name, patient_phone, patient_birth_date, patient_gender)

    total_amount = db.Column(db.Integer, nullable=False)
    discount_amount = db.Column(db.Integer, nullable=False, default=0)
    final_amount = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(20), nullable=False, default=PENDING)
    payment_id = db.Column(db.Integer, nullable=True)  # back-reference to the paid Payment row

    memo = db.Column(db.Text, nullable=True)           # customer note at booking
    special_notes = db.Column(db.Text, nullable=True)  # customer-editable later
    admin_memo = db.Column(db.Text, nullable=True)     # never shown to the customer

    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)
    refund_amount = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    package = db.relationship("Package", lazy="joined", innerjoin=True)

    __table_args__ = (
        db.UniqueConstraint("reservation_number", name="uq_reservations_reservation_number"),
        db.Index("ix_reservations_cell", "package_id", "reservation_date", "reservation_time", "status"),
        db.Index("ix_reservations_user_status", "user_id", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def to_dict(self, include_admin=False):
        out = {
            "id": self.id,
            "reservationNumber": self.reservation_number,
            "userId": self.user_id,
            "packageId": self.package_id,
            "packageName": self.package.name if self.package else None,
            "reservationDate": self.reservation_date.isoformat(),
            "reservationTime": self.reservation_time,
            "patientInfo": self.patient.to_dict(),
            "totalAmount": self.total_amount,
            "discountAmount": self.discount_amount,
            "finalAmount": self.final_amount,
            "status": self.status,
            "paymentId": self.payment_id,
            "memo": self.memo,
            "specialNotes": self.special_notes,
            "cancelledAt": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "cancelReason": self.cancel_reason,
            "refundAmount": self.refund_amount,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if include_admin:
            out["adminMemo"] = self.admin_memo
        return out
