from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from allotment_manager.models import DEFAULT_SHIFT, Allotment, AttendanceRecord, Doctor, Leave, Role, Station
from allotment_manager.records import AttendanceSheetRow

AttendanceStatus = Literal["present", "absent", "leave"]
LeaveStatus = Literal["pending", "approved", "rejected"]


class RolePayload(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None


class RoleStationsPayload(BaseModel):
    station_ids: list[int] = Field(default_factory=list)


class RoleOut(BaseModel):
    id: int
    name: str
    description: str | None = None

    @classmethod
    def from_record(cls, role: Role) -> "RoleOut":
        return cls(id=role.id, name=role.name, description=role.description)


class StationPayload(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    is_active: bool = True


class StationPatchPayload(BaseModel):
    name: str | None = None
    description: str | None = None
    is_active: bool | None = None


class StationOut(BaseModel):
    id: int
    name: str
    description: str | None = None
    is_active: bool

    @classmethod
    def from_record(cls, station: Station) -> "StationOut":
        return cls(id=station.id, name=station.name, description=station.description, is_active=station.is_active)


class StationRef(BaseModel):
    id: int
    name: str


class DoctorPayload(BaseModel):
    name: str = Field(min_length=1)
    role_id: int | None = None
    restrictions: list[int] = Field(default_factory=list)
    is_active: bool | None = None


class DoctorOut(BaseModel):
    id: int
    name: str
    role_id: int | None = None
    role_name: str | None = None
    is_active: bool
    restrictions: list[StationRef] = Field(default_factory=list)

    @classmethod
    def from_record(cls, doctor: Doctor, restrictions: list[Station]) -> "DoctorOut":
        return cls(
            id=doctor.id,
            name=doctor.name,
            role_id=doctor.role_id,
            role_name=doctor.role.name if doctor.role is not None else None,
            is_active=doctor.is_active,
            restrictions=[StationRef(id=station.id, name=station.name) for station in restrictions],
        )


class AttendancePayload(BaseModel):
    doctor_id: int
    date: date
    status: AttendanceStatus
    notes: str | None = None


class BulkAttendanceEntry(BaseModel):
    doctor_id: int
    status: AttendanceStatus
    notes: str | None = None


class BulkAttendancePayload(BaseModel):
    date: date
    attendance: list[BulkAttendanceEntry]


class AttendanceOut(BaseModel):
    id: int
    doctor_id: int
    date: date
    status: AttendanceStatus
    notes: str | None = None
    marked_at: datetime

    @classmethod
    def from_record(cls, record: AttendanceRecord) -> "AttendanceOut":
        return cls(
            id=record.id,
            doctor_id=record.doctor_id,
            date=record.date,
            status=record.status,
            notes=record.notes,
            marked_at=record.marked_at,
        )


class LeavePayload(BaseModel):
    doctor_id: int
    start_date: date
    end_date: date
    reason: str | None = None
    status: LeaveStatus = "approved"

    @model_validator(mode="after")
    def validate_range(self) -> "LeavePayload":
        if self.start_date > self.end_date:
            raise ValueError("Leave end date must be on or after start date")
        return self


class LeaveUpdatePayload(BaseModel):
    start_date: date
    end_date: date
    reason: str | None = None
    status: LeaveStatus


class LeaveOut(BaseModel):
    id: int
    doctor_id: int
    doctor_name: str
    start_date: date
    end_date: date
    reason: str | None = None
    status: LeaveStatus
    created_at: datetime

    @classmethod
    def from_record(cls, leave: Leave) -> "LeaveOut":
        return cls(
            id=leave.id,
            doctor_id=leave.doctor_id,
            doctor_name=leave.doctor.name,
            start_date=leave.start_date,
            end_date=leave.end_date,
            reason=leave.reason,
            status=leave.status,
            created_at=leave.created_at,
        )


class AttendanceSheetOut(DoctorOut):
    attendance: AttendanceOut | None = None
    has_leave: bool = False
    leave: LeaveOut | None = None

    @classmethod
    def from_row(cls, row: AttendanceSheetRow) -> "AttendanceSheetOut":
        base = DoctorOut.from_record(row.doctor, row.restrictions)
        return cls(
            **base.model_dump(),
            attendance=AttendanceOut.from_record(row.attendance) if row.attendance is not None else None,
            has_leave=row.has_leave,
            leave=LeaveOut.from_record(row.leave) if row.leave is not None else None,
        )


class AllotmentPayload(BaseModel):
    doctor_id: int
    station_id: int
    date: date
    shift: str = Field(default=DEFAULT_SHIFT, min_length=1)
    notes: str | None = None


class AllotmentOut(BaseModel):
    id: int
    doctor_id: int
    doctor_name: str
    role_name: str | None = None
    station_id: int
    station_name: str
    date: date
    shift: str
    notes: str | None = None
    created_at: datetime

    @classmethod
    def from_record(cls, allotment: Allotment) -> "AllotmentOut":
        doctor = allotment.doctor
        return cls(
            id=allotment.id,
            doctor_id=allotment.doctor_id,
            doctor_name=doctor.name,
            role_name=doctor.role.name if doctor.role is not None else None,
            station_id=allotment.station_id,
            station_name=allotment.station.name,
            date=allotment.date,
            shift=allotment.shift,
            notes=allotment.notes,
            created_at=allotment.created_at,
        )
