from flask import Blueprint, request, jsonify

from models import db
from models.package import Package
from services.availability import available_slots
from services.errors import NotFound
from utils.parsing import parse_date

packages_bp = Blueprint("packages", __name__, url_prefix="/packages")


def _active_package(package_id: int) -> Package:
    pkg = db.session.get(Package, package_id)
    if not pkg or not pkg.is_active:
        raise NotFound("Package not found")
    return pkg


@packages_bp.get("")
def list_packages():
    q = Package.query.filter_by(is_active=True)
    category = request.args.get("category")
    if category:
        q = q.filter_by(category=category)
    rows = q.order_by(Package.display_order.asc(), Package.created_at.desc()).all()
    return jsonify([p.to_dict() for p in rows]), 200


@packages_bp.get("/<int:package_id>")
def get_package(package_id: int):
    return jsonify(_active_package(package_id).to_dict()), 200


# ---------- availability for one day ----------
@packages_bp.get("/<int:package_id>/slots")
def package_slots(package_id: int):
    pkg = _active_package(package_id)
    day = parse_date(request.args.get("date"))
    return jsonify(date=day.isoformat(), packageId=pkg.id, slots=available_slots(pkg, day)), 200
