from datetime import date, datetime

from models.reservation import PatientInfo
from services.errors import ValidationError


def parse_date(value, field: str = "date") -> date:
    # Expect "YYYY-MM-DD"; a full ISO datetime is truncated to its date
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required (YYYY-MM-DD)")
    try:
        return datetime.fromisoformat(value.strip()[:10]).date()
    except ValueError:
        raise ValidationError(f"Invalid {field}. Use YYYY-MM-DD")


def parse_optional_date(value, field: str = "date"):
    if value in (None, ""):
        return None
    return parse_date(value, field)


def parse_int(value, field: str, default=None):
    if value in (None, ""):
        if default is not None:
            return default
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")


def parse_patient(data) -> PatientInfo:
    if not isinstance(data, dict):
        raise ValidationError("patientInfo is required")
    return PatientInfo(
        name=data.get("name") or "",
        phone=data.get("phone") or "",
        birth_date=parse_date(data.get("birthDate"), "patientInfo.birthDate"),
        gender=data.get("gender"),
    )
