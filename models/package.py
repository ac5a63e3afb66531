from datetime import datetime
from models.db import db

DEFAULT_AVAILABLE_DAYS = [1, 2, 3, 4, 5, 6]  # Monday..Saturday, 0=Sunday

class Package(db.Model):
    __tablename__ = "packages"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    category = db.Column(db.String(20), nullable=False, default="basic")
    # basic, standard, premium, specialized, custom

    price = db.Column(db.Integer, nullable=False)  # KRW
    discount_price = db.Column(db.Integer, nullable=True)
    duration = db.Column(db.Integer, nullable=False, default=120)  # minutes

    available_days = db.Column(db.JSON, nullable=False, default=lambda: list(DEFAULT_AVAILABLE_DAYS))
    max_reservations_per_slot = db.Column(db.Integer, nullable=False, default=10)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    display_order = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint("max_reservations_per_slot >= 1", name="ck_packages_capacity_positive"),
    )

    @property
    def capacity(self) -> int:
        return self.max_reservations_per_slot

    @property
    def effective_price(self) -> int:
        if self.discount_price is not None:
            return self.discount_price
        return self.price

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "price": self.price,
            "discountPrice": self.discount_price,
            "duration": self.duration,
            "availableDays": list(self.available_days or []),
            "maxReservationsPerSlot": self.max_reservations_per_slot,
            "isActive": self.is_active,
        }
