from datetime import date
from typing import Iterable, List, Optional, Set

from sqlalchemy import or_

from models import db
from models.blocked_slot import BlockedSlot, BlockScope, AllPackages, SpecificPackage
from models.package import Package
from services.errors import NotFound, ValidationError
from services.slot_calendar import parse_time_label


def _cell_filter(day: date, package_id: int):
    # a block for this package, or a wildcard block
    return (
        BlockedSlot.date == day,
        or_(BlockedSlot.package_id == package_id, BlockedSlot.package_id.is_(None)),
    )


def is_blocked(package_id: int, day: date, time: str) -> bool:
    return (
        BlockedSlot.query
        .filter(*_cell_filter(day, package_id), BlockedSlot.time == time)
        .first()
        is not None
    )


def blocked_times(package_id: int, day: date) -> Set[str]:
    rows = BlockedSlot.query.filter(*_cell_filter(day, package_id)).all()
    return {b.time for b in rows}


def _validate_time(time: str) -> str:
    try:
        hour, minute = parse_time_label(time)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid time '{time}'. Use HH:MM")
    return f"{hour:02d}:{minute:02d}"


def _check_scope(scope: BlockScope):
    if isinstance(scope, SpecificPackage) and db.session.get(Package, scope.package_id) is None:
        raise NotFound("Package not found")


def _find_existing(day: date, time: str, scope: BlockScope) -> Optional[BlockedSlot]:
    q = BlockedSlot.query.filter(BlockedSlot.date == day, BlockedSlot.time == time)
    if isinstance(scope, SpecificPackage):
        q = q.filter(BlockedSlot.package_id == scope.package_id)
    else:
        q = q.filter(BlockedSlot.package_id.is_(None))
    return q.first()


def bulk_create_blocks(day: date, times: Iterable[str], scope: BlockScope = AllPackages(),
                       reason: Optional[str] = None, created_by: Optional[int] = None) -> List[BlockedSlot]:
    """Block every time in `times` on `day`.

    Re-blocking a cell returns the existing row instead of adding a duplicate.
    """
    normalized = []
    for t in times or []:
        label = _validate_time(t)
        if label not in normalized:
            normalized.append(label)
    if not normalized:
        raise ValidationError("At least one time is required")
    _check_scope(scope)

    rows = []
    for label in normalized:
        existing = _find_existing(day, label, scope)
        if existing:
            rows.append(existing)
            continue
        block = BlockedSlot(date=day, time=label, reason=reason[:255] if reason else None, created_by=created_by)
        block.scope = scope
        db.session.add(block)
        rows.append(block)

    db.session.commit()
    return rows


def delete_block(block_id: int) -> None:
    block = db.session.get(BlockedSlot, block_id)
    if not block:
        raise NotFound("Blocked slot not found")
    db.session.delete(block)
    db.session.commit()


def clear_blocks(day: date, package_id: Optional[int] = None) -> int:
    """Remove all blocks on `day`; with `package_id`, only that package's own blocks."""
    q = BlockedSlot.query.filter(BlockedSlot.date == day)
    if package_id is not None:
        q = q.filter(BlockedSlot.package_id == package_id)
    removed = q.delete(synchronize_session=False)
    db.session.commit()
    return removed


def list_blocks(start: date, end: date, package_id: Optional[int] = None) -> List[BlockedSlot]:
    q = BlockedSlot.query.filter(BlockedSlot.date >= start, BlockedSlot.date <= end)
    if package_id is not None:
        q = q.filter(BlockedSlot.package_id == package_id)
    return q.order_by(BlockedSlot.date.asc(), BlockedSlot.time.asc()).all()
