from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from models.db import db


@dataclass(frozen=True)
class AllPackages:
    """Block applies to every package."""


@dataclass(frozen=True)
class SpecificPackage:
    package_id: int


BlockScope = Union[AllPackages, SpecificPackage]


def scope_for(package_id: Optional[int]) -> BlockScope:
    if package_id is None:
        return AllPackages()
    return SpecificPackage(int(package_id))


class BlockedSlot(db.Model):
    __tablename__ = "blocked_slots"

    id = db.Column(db.Integer, primary_key=True)

    date = db.Column(db.Date, nullable=False)
    time = db.Column(db.String(5), nullable=False)  # "HH:MM"
    # null means every package; read it through .scope
    package_id = db.Column(db.Integer, db.ForeignKey("packages.id"), nullable=True)

    reason = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        # lookup index only, duplicates are harmless
        db.Index("ix_blocked_slots_cell", "date", "time", "package_id"),
    )

    @property
    def scope(self) -> BlockScope:
        return scope_for(self.package_id)

    @scope.setter
    def scope(self, value: BlockScope):
        self.package_id = value.package_id if isinstance(value, SpecificPackage) else None

    def to_dict(self):
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "time": self.time,
            "packageId": self.package_id,
            "allPackages": isinstance(self.scope, AllPackages),
            "reason": self.reason,
            "createdBy": self.created_by,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
