"""Read and write access for every stored entity.

Nothing in this module commits. Mutations are flushed so ids are available,
and callers group them with :func:`allotment_manager.db.write_batch`.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy import and_, delete, extract, or_, select
from sqlalchemy.orm import Session

from allotment_manager.eligibility import validate_allotment
from allotment_manager.errors import RecordNotFound, ValidationFailed
from allotment_manager.models import (
    ATTENDANCE_STATUSES,
    DEFAULT_SHIFT,
    LEAVE_STATUSES,
    Allotment,
    AttendanceRecord,
    Doctor,
    Leave,
    Role,
    RolePermission,
    Station,
    StationRestriction,
    utcnow,
)

logger = logging.getLogger(__name__)


def _required_name(value: str | None, label: str) -> str:
    name = (value or "").strip()
    if not name:
        raise ValidationFailed(f"{label} name is required")
    return name


# Roles


def list_roles(db: Session) -> list[Role]:
    return list(db.scalars(select(Role).order_by(Role.name, Role.id)).all())


def get_role(db: Session, role_id: int) -> Role:
    role = db.get(Role, role_id)
    if role is None:
        raise RecordNotFound("Role not found")
    return role


def create_role(db: Session, *, name: str, description: str | None = None) -> Role:
    name = _required_name(name, "Role")
    if db.scalar(select(Role.id).where(Role.name == name)) is not None:
        raise ValidationFailed("Role name already exists")
    role = Role(name=name, description=description)
    db.add(role)
    db.flush()
    return role


def role_stations(db: Session, role_id: int) -> list[Station]:
    get_role(db, role_id)
    stmt = (
        select(Station)
        .join(RolePermission, RolePermission.station_id == Station.id)
        .where(RolePermission.role_id == role_id, Station.is_active.is_(True))
        .order_by(Station.name, Station.id)
    )
    return list(db.scalars(stmt).all())


def replace_role_stations(db: Session, role_id: int, station_ids: Iterable[int]) -> list[Station]:
    get_role(db, role_id)
    unique_ids = _existing_station_ids(db, station_ids)
    db.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
    for station_id in unique_ids:
        db.add(RolePermission(role_id=role_id, station_id=station_id))
    db.flush()
    return role_stations(db, role_id)


# Stations


def list_stations(db: Session, include_inactive: bool = False) -> list[Station]:
    stmt = select(Station).order_by(Station.name, Station.id)
    if not include_inactive:
        stmt = stmt.where(Station.is_active.is_(True))
    return list(db.scalars(stmt).all())


def get_station(db: Session, station_id: int) -> Station:
    station = db.get(Station, station_id)
    if station is None:
        raise RecordNotFound("Station not found")
    return station


def _ensure_station_name_free(db: Session, name: str, station_id: int | None = None) -> None:
    stmt = select(Station.id).where(Station.name == name)
    if station_id is not None:
        stmt = stmt.where(Station.id != station_id)
    if db.scalar(stmt) is not None:
        raise ValidationFailed("Station name already exists")


def create_station(db: Session, *, name: str, description: str | None = None, is_active: bool = True) -> Station:
    name = _required_name(name, "Station")
    _ensure_station_name_free(db, name)
    station = Station(name=name, description=description, is_active=is_active)
    db.add(station)
    db.flush()
    return station


def update_station(db: Session, station_id: int, **changes: Any) -> Station:
    """Apply only the fields present in ``changes``.

    A ``description`` of ``None`` clears it. ``None`` for ``name`` or
    ``is_active`` leaves the current value.
    """
    station = get_station(db, station_id)
    if changes.get("name") is not None:
        name = _required_name(changes["name"], "Station")
        _ensure_station_name_free(db, name, station_id)
        station.name = name
    if "description" in changes:
        station.description = changes["description"]
    if changes.get("is_active") is not None:
        station.is_active = changes["is_active"]
    db.flush()
    return station


def deactivate_station(db: Session, station_id: int) -> Station:
    return update_station(db, station_id, is_active=False)


def _existing_station_ids(db: Session, station_ids: Iterable[int]) -> list[int]:
    unique_ids = list(dict.fromkeys(station_ids))
    if not unique_ids:
        return []
    found = set(db.scalars(select(Station.id).where(Station.id.in_(unique_ids))).all())
    missing = [station_id for station_id in unique_ids if station_id not in found]
    if missing:
        raise RecordNotFound(f"Station not found: {missing[0]}")
    return unique_ids


# Doctors


def list_doctors(db: Session, include_inactive: bool = False) -> list[Doctor]:
    stmt = select(Doctor).order_by(Doctor.name, Doctor.id)
    if not include_inactive:
        stmt = stmt.where(Doctor.is_active.is_(True))
    return list(db.scalars(stmt).all())


def get_doctor(db: Session, doctor_id: int) -> Doctor:
    doctor = db.get(Doctor, doctor_id)
    if doctor is None:
        raise RecordNotFound("Doctor not found")
    return doctor


def restrictions_by_doctor(db: Session, doctor_ids: Iterable[int] | None = None) -> dict[int, list[Station]]:
    stmt = (
        select(StationRestriction.doctor_id, Station)
        .join(Station, StationRestriction.station_id == Station.id)
        .order_by(Station.name, Station.id)
    )
    if doctor_ids is not None:
        stmt = stmt.where(StationRestriction.doctor_id.in_(list(doctor_ids)))
    out: dict[int, list[Station]] = defaultdict(list)
    for doctor_id, station in db.execute(stmt).all():
        out[doctor_id].append(station)
    return out


def _ensure_role_exists(db: Session, role_id: int | None) -> None:
    if role_id is not None:
        get_role(db, role_id)


def _replace_restrictions(db: Session, doctor_id: int, station_ids: list[int]) -> None:
    db.execute(delete(StationRestriction).where(StationRestriction.doctor_id == doctor_id))
    for station_id in station_ids:
        db.add(StationRestriction(doctor_id=doctor_id, station_id=station_id))


def create_doctor(
    db: Session,
    *,
    name: str,
    role_id: int | None = None,
    restriction_ids: Iterable[int] = (),
) -> Doctor:
    name = _required_name(name, "Doctor")
    _ensure_role_exists(db, role_id)
    station_ids = _existing_station_ids(db, restriction_ids)
    doctor = Doctor(name=name, role_id=role_id, is_active=True)
    db.add(doctor)
    db.flush()
    _replace_restrictions(db, doctor.id, station_ids)
    db.flush()
    return doctor


def update_doctor(
    db: Session,
    doctor_id: int,
    *,
    name: str,
    role_id: int | None = None,
    restriction_ids: Iterable[int] = (),
    is_active: bool | None = None,
) -> Doctor:
    """Overwrite a doctor, replacing the whole restriction list."""
    doctor = get_doctor(db, doctor_id)
    name = _required_name(name, "Doctor")
    _ensure_role_exists(db, role_id)
    station_ids = _existing_station_ids(db, restriction_ids)
    doctor.name = name
    doctor.role_id = role_id
    if is_active is not None:
        doctor.is_active = is_active
    _replace_restrictions(db, doctor.id, station_ids)
    db.flush()
    db.refresh(doctor)
    return doctor


def deactivate_doctor(db: Session, doctor_id: int) -> Doctor:
    doctor = get_doctor(db, doctor_id)
    doctor.is_active = False
    db.flush()
    return doctor


# Attendance


@dataclass
class AttendanceSheetRow:
    doctor: Doctor
    attendance: AttendanceRecord | None
    leave: Leave | None
    restrictions: list[Station] = field(default_factory=list)

    @property
    def has_leave(self) -> bool:
        return self.leave is not None


def mark_attendance(
    db: Session,
    *,
    doctor_id: int,
    on_date: date,
    status: str,
    notes: str | None = None,
) -> AttendanceRecord:
    if status not in ATTENDANCE_STATUSES:
        raise ValidationFailed(f"Invalid attendance status: {status}")
    get_doctor(db, doctor_id)
    record = db.scalar(
        select(AttendanceRecord).where(AttendanceRecord.doctor_id == doctor_id, AttendanceRecord.date == on_date)
    )
    if record is None:
        record = AttendanceRecord(doctor_id=doctor_id, date=on_date, status=status, notes=notes, marked_at=utcnow())
        db.add(record)
    else:
        record.status = status
        record.notes = notes
        record.marked_at = utcnow()
    db.flush()
    return record


def mark_attendance_many(
    db: Session,
    on_date: date,
    entries: Iterable[tuple[int, str, str | None]],
) -> int:
    count = 0
    for doctor_id, status, notes in entries:
        mark_attendance(db, doctor_id=doctor_id, on_date=on_date, status=status, notes=notes)
        count += 1
    logger.info("Marked attendance for %d doctor(s) on %s", count, on_date.isoformat())
    return count


def approved_leaves_on(db: Session, on_date: date) -> dict[int, Leave]:
    stmt = (
        select(Leave)
        .where(Leave.status == "approved", Leave.start_date <= on_date, Leave.end_date >= on_date)
        .order_by(Leave.start_date, Leave.id)
    )
    out: dict[int, Leave] = {}
    for leave in db.scalars(stmt).all():
        out.setdefault(leave.doctor_id, leave)
    return out


def attendance_sheet(db: Session, on_date: date) -> list[AttendanceSheetRow]:
    doctors = list_doctors(db)
    records = db.scalars(select(AttendanceRecord).where(AttendanceRecord.date == on_date)).all()
    by_doctor = {record.doctor_id: record for record in records}
    leaves = approved_leaves_on(db, on_date)
    restrictions = restrictions_by_doctor(db, [doctor.id for doctor in doctors])
    return [
        AttendanceSheetRow(
            doctor=doctor,
            attendance=by_doctor.get(doctor.id),
            leave=leaves.get(doctor.id),
            restrictions=restrictions.get(doctor.id, []),
        )
        for doctor in doctors
    ]


# Leaves


def _check_leave(start_date: date, end_date: date, status: str) -> None:
    if start_date > end_date:
        raise ValidationFailed("Leave end date must be on or after start date")
    if status not in LEAVE_STATUSES:
        raise ValidationFailed(f"Invalid leave status: {status}")


def list_leaves(
    db: Session,
    *,
    doctor_id: int | None = None,
    month: int | None = None,
    year: int | None = None,
) -> list[Leave]:
    stmt = select(Leave).order_by(Leave.start_date.desc(), Leave.id.desc())
    if doctor_id is not None:
        stmt = stmt.where(Leave.doctor_id == doctor_id)
    if month is not None and year is not None:
        # Matches on either endpoint only; a leave covering the whole month is not returned.
        stmt = stmt.where(
            or_(
                and_(extract("month", Leave.start_date) == month, extract("year", Leave.start_date) == year),
                and_(extract("month", Leave.end_date) == month, extract("year", Leave.end_date) == year),
            )
        )
    return list(db.scalars(stmt).all())


def get_leave(db: Session, leave_id: int) -> Leave:
    leave = db.get(Leave, leave_id)
    if leave is None:
        raise RecordNotFound("Leave not found")
    return leave


def create_leave(
    db: Session,
    *,
    doctor_id: int,
    start_date: date,
    end_date: date,
    reason: str | None = None,
    status: str = "approved",
) -> Leave:
    _check_leave(start_date, end_date, status)
    get_doctor(db, doctor_id)
    leave = Leave(doctor_id=doctor_id, start_date=start_date, end_date=end_date, reason=reason, status=status)
    db.add(leave)
    db.flush()
    return leave


def update_leave(
    db: Session,
    leave_id: int,
    *,
    start_date: date,
    end_date: date,
    reason: str | None,
    status: str,
) -> Leave:
    leave = get_leave(db, leave_id)
    _check_leave(start_date, end_date, status)
    leave.start_date = start_date
    leave.end_date = end_date
    leave.reason = reason
    leave.status = status
    db.flush()
    return leave


def delete_leave(db: Session, leave_id: int) -> None:
    db.delete(get_leave(db, leave_id))
    db.flush()


# Allotments


def list_allotments(
    db: Session,
    *,
    on_date: date | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[Allotment]:
    stmt = select(Allotment).join(Station, Allotment.station_id == Station.id)
    if on_date is not None:
        stmt = stmt.where(Allotment.date == on_date)
    elif start_date is not None and end_date is not None:
        stmt = stmt.where(Allotment.date.between(start_date, end_date))
    stmt = stmt.order_by(Allotment.date, Station.name, Allotment.id)
    return list(db.scalars(stmt).all())


def get_allotment(db: Session, allotment_id: int) -> Allotment:
    allotment = db.get(Allotment, allotment_id)
    if allotment is None:
        raise RecordNotFound("Allotment not found")
    return allotment


def create_allotment(
    db: Session,
    *,
    doctor_id: int,
    station_id: int,
    on_date: date,
    shift: str = DEFAULT_SHIFT,
    notes: str | None = None,
) -> Allotment:
    doctor = get_doctor(db, doctor_id)
    get_station(db, station_id)
    validate_allotment(db, doctor, station_id, on_date, shift)
    allotment = Allotment(doctor_id=doctor_id, station_id=station_id, date=on_date, shift=shift, notes=notes)
    db.add(allotment)
    db.flush()
    return allotment


def update_allotment(
    db: Session,
    allotment_id: int,
    *,
    doctor_id: int,
    station_id: int,
    on_date: date,
    shift: str = DEFAULT_SHIFT,
    notes: str | None = None,
) -> Allotment:
    allotment = get_allotment(db, allotment_id)
    doctor = get_doctor(db, doctor_id)
    get_station(db, station_id)
    validate_allotment(db, doctor, station_id, on_date, shift, ignore_allotment_id=allotment.id)
    allotment.doctor_id = doctor_id
    allotment.station_id = station_id
    allotment.date = on_date
    allotment.shift = shift
    allotment.notes = notes
    db.flush()
    db.refresh(allotment)
    return allotment


def delete_allotment(db: Session, allotment_id: int) -> None:
    db.delete(get_allotment(db, allotment_id))
    db.flush()
