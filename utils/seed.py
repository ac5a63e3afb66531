from models import db
from models.user import Role
from models.package import Package
from security.rbac import ROLE_NAMES


SAMPLE_PACKAGES = [
    {"name": "Basic Checkup", "category": "basic", "price": 150000, "discount_price": 120000,
     "duration": 90, "max_reservations_per_slot": 5},
    {"name": "Standard Checkup", "category": "standard", "price": 350000,
     "duration": 120, "max_reservations_per_slot": 3},
    {"name": "Premium Checkup", "category": "premium", "price": 900000, "discount_price": 800000,
     "duration": 240, "max_reservations_per_slot": 2, "available_days": [1, 2, 3, 4, 5]},
]

def seed_roles():
    existing = {r.name for r in Role.query.all()}
    for name in ROLE_NAMES:
        if name not in existing:
            db.session.add(Role(name=name))
    db.session.commit()

def seed_packages():
    existing = {p.name for p in Package.query.all()}
    added = 0
    for data in SAMPLE_PACKAGES:
        if data["name"] in existing:
            continue
        db.session.add(Package(description=f"{data['name']} package", **data))
        added += 1
    db.session.commit()
    return added
