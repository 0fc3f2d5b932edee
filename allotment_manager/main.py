from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from datetime import date
from pathlib import Path

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from allotment_manager import records
from allotment_manager.db import Store, get_db, write_batch
from allotment_manager.eligibility import allowed_stations
from allotment_manager.errors import AllotmentManagerError, EligibilityError, ValidationFailed
from allotment_manager.models import Doctor
from allotment_manager.schemas import (
    AllotmentOut,
    AllotmentPayload,
    AttendanceOut,
    AttendancePayload,
    AttendanceSheetOut,
    BulkAttendancePayload,
    DoctorOut,
    DoctorPayload,
    LeaveOut,
    LeavePayload,
    LeaveUpdatePayload,
    RoleOut,
    RolePayload,
    RoleStationsPayload,
    StationOut,
    StationPatchPayload,
    StationPayload,
)
from allotment_manager.seed import seed_defaults

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent


def seeding_enabled() -> bool:
    return os.getenv("SEED_DEFAULTS", "1").strip().lower() not in {"0", "false", "no", "off"}


def cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = Store()
    store.create_schema()
    if seeding_enabled():
        with store.session() as db, write_batch(db):
            seed_defaults(db)
    app.state.store = store
    logger.info("Allotment manager started with %s", store.url)
    yield
    store.dispose()


app = FastAPI(title="Allotment Manager", lifespan=lifespan)
app.mount("/static", StaticFiles(directory=BASE_DIR / "static"), name="static")
templates = Jinja2Templates(directory=BASE_DIR / "templates")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def disable_cache_for_api(request: Request, call_next):
    response = await call_next(request)
    if request.url.path.startswith("/api/"):
        response.headers["Cache-Control"] = "no-store, no-cache, max-age=0, must-revalidate"
        response.headers["Pragma"] = "no-cache"
    return response


@app.exception_handler(AllotmentManagerError)
async def handle_domain_error(request: Request, exc: AllotmentManagerError) -> JSONResponse:
    content: dict[str, str] = {"error": exc.message}
    if isinstance(exc, EligibilityError):
        content["kind"] = exc.kind.value
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "; ".join(messages)})


@app.exception_handler(IntegrityError)
async def handle_integrity_error(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Integrity conflict on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": f"Conflicting record: {exc.orig}"})


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(exc)})


def serialize_doctor(db: Session, doctor: Doctor) -> DoctorOut:
    restrictions = records.restrictions_by_doctor(db, [doctor.id])
    return DoctorOut.from_record(doctor, restrictions.get(doctor.id, []))


# Doctors


@app.get("/api/doctors", response_model=list[DoctorOut])
def list_doctors(db: Session = Depends(get_db)) -> list[DoctorOut]:
    doctors = records.list_doctors(db)
    restrictions = records.restrictions_by_doctor(db, [doctor.id for doctor in doctors])
    return [DoctorOut.from_record(doctor, restrictions.get(doctor.id, [])) for doctor in doctors]


@app.get("/api/doctors/{doctor_id}", response_model=DoctorOut)
def get_doctor(doctor_id: int, db: Session = Depends(get_db)) -> DoctorOut:
    return serialize_doctor(db, records.get_doctor(db, doctor_id))


@app.post("/api/doctors", response_model=DoctorOut, status_code=status.HTTP_201_CREATED)
def create_doctor(payload: DoctorPayload, db: Session = Depends(get_db)) -> DoctorOut:
    with write_batch(db):
        doctor = records.create_doctor(db, name=payload.name, role_id=payload.role_id, restriction_ids=payload.restrictions)
    return serialize_doctor(db, doctor)


@app.put("/api/doctors/{doctor_id}", response_model=DoctorOut)
def update_doctor(doctor_id: int, payload: DoctorPayload, db: Session = Depends(get_db)) -> DoctorOut:
    with write_batch(db):
        doctor = records.update_doctor(
            db,
            doctor_id,
            name=payload.name,
            role_id=payload.role_id,
            restriction_ids=payload.restrictions,
            is_active=payload.is_active,
        )
    return serialize_doctor(db, doctor)


@app.delete("/api/doctors/{doctor_id}")
def deactivate_doctor(doctor_id: int, db: Session = Depends(get_db)) -> dict[str, bool]:
    with write_batch(db):
        records.deactivate_doctor(db, doctor_id)
    return {"ok": True}


@app.get("/api/doctors/{doctor_id}/allowed-stations", response_model=list[StationOut])
def get_allowed_stations(doctor_id: int, db: Session = Depends(get_db)) -> list[StationOut]:
    doctor = records.get_doctor(db, doctor_id)
    return [StationOut.from_record(station) for station in allowed_stations(db, doctor)]


# Stations


@app.get("/api/stations", response_model=list[StationOut])
def list_stations(include_inactive: bool = False, db: Session = Depends(get_db)) -> list[StationOut]:
    return [StationOut.from_record(station) for station in records.list_stations(db, include_inactive=include_inactive)]


@app.post("/api/stations", response_model=StationOut, status_code=status.HTTP_201_CREATED)
def create_station(payload: StationPayload, db: Session = Depends(get_db)) -> StationOut:
    with write_batch(db):
        station = records.create_station(db, name=payload.name, description=payload.description, is_active=payload.is_active)
    return StationOut.from_record(station)


@app.put("/api/stations/{station_id}", response_model=StationOut)
def update_station(station_id: int, payload: StationPatchPayload, db: Session = Depends(get_db)) -> StationOut:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationFailed("No updates were provided")
    with write_batch(db):
        station = records.update_station(db, station_id, **changes)
    return StationOut.from_record(station)


@app.delete("/api/stations/{station_id}")
def deactivate_station(station_id: int, db: Session = Depends(get_db)) -> dict[str, bool]:
    with write_batch(db):
        records.deactivate_station(db, station_id)
    return {"ok": True}


# Roles


@app.get("/api/roles", response_model=list[RoleOut])
def list_roles(db: Session = Depends(get_db)) -> list[RoleOut]:
    return [RoleOut.from_record(role) for role in records.list_roles(db)]


@app.post("/api/roles", response_model=RoleOut, status_code=status.HTTP_201_CREATED)
def create_role(payload: RolePayload, db: Session = Depends(get_db)) -> RoleOut:
    with write_batch(db):
        role = records.create_role(db, name=payload.name, description=payload.description)
    return RoleOut.from_record(role)


@app.get("/api/roles/{role_id}/stations", response_model=list[StationOut])
def get_role_stations(role_id: int, db: Session = Depends(get_db)) -> list[StationOut]:
    return [StationOut.from_record(station) for station in records.role_stations(db, role_id)]


@app.put("/api/roles/{role_id}/stations", response_model=list[StationOut])
def put_role_stations(role_id: int, payload: RoleStationsPayload, db: Session = Depends(get_db)) -> list[StationOut]:
    with write_batch(db):
        stations = records.replace_role_stations(db, role_id, payload.station_ids)
    return [StationOut.from_record(station) for station in stations]


# Attendance


@app.get("/api/attendance", response_model=list[AttendanceSheetOut])
def get_attendance(
    on_date: date | None = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
) -> list[AttendanceSheetOut]:
    if on_date is None:
        raise ValidationFailed("Date is required")
    return [AttendanceSheetOut.from_row(row) for row in records.attendance_sheet(db, on_date)]


@app.post("/api/attendance", response_model=AttendanceOut)
def mark_attendance(payload: AttendancePayload, db: Session = Depends(get_db)) -> AttendanceOut:
    with write_batch(db):
        record = records.mark_attendance(
            db,
            doctor_id=payload.doctor_id,
            on_date=payload.date,
            status=payload.status,
            notes=payload.notes,
        )
    return AttendanceOut.from_record(record)


@app.post("/api/attendance/bulk")
def mark_attendance_bulk(payload: BulkAttendancePayload, db: Session = Depends(get_db)) -> dict[str, int | bool]:
    with write_batch(db):
        count = records.mark_attendance_many(
            db,
            payload.date,
            [(entry.doctor_id, entry.status, entry.notes) for entry in payload.attendance],
        )
    return {"ok": True, "count": count}


# Leaves


@app.get("/api/leaves", response_model=list[LeaveOut])
def list_leaves(
    doctor_id: int | None = None,
    month: int | None = Query(default=None, ge=1, le=12),
    year: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
) -> list[LeaveOut]:
    leaves = records.list_leaves(db, doctor_id=doctor_id, month=month, year=year)
    return [LeaveOut.from_record(leave) for leave in leaves]


@app.post("/api/leaves", response_model=LeaveOut, status_code=status.HTTP_201_CREATED)
def create_leave(payload: LeavePayload, db: Session = Depends(get_db)) -> LeaveOut:
    with write_batch(db):
        leave = records.create_leave(
            db,
            doctor_id=payload.doctor_id,
            start_date=payload.start_date,
            end_date=payload.end_date,
            reason=payload.reason,
            status=payload.status,
        )
    return LeaveOut.from_record(leave)


@app.put("/api/leaves/{leave_id}", response_model=LeaveOut)
def update_leave(leave_id: int, payload: LeaveUpdatePayload, db: Session = Depends(get_db)) -> LeaveOut:
    with write_batch(db):
        leave = records.update_leave(
            db,
            leave_id,
            start_date=payload.start_date,
            end_date=payload.end_date,
            reason=payload.reason,
            status=payload.status,
        )
    return LeaveOut.from_record(leave)


@app.delete("/api/leaves/{leave_id}")
def delete_leave(leave_id: int, db: Session = Depends(get_db)) -> dict[str, bool]:
    with write_batch(db):
        records.delete_leave(db, leave_id)
    return {"ok": True}


# Allotments


@app.get("/api/allotments", response_model=list[AllotmentOut])
def list_allotments(
    on_date: date | None = Query(default=None, alias="date"),
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
) -> list[AllotmentOut]:
    allotments = records.list_allotments(db, on_date=on_date, start_date=start_date, end_date=end_date)
    return [AllotmentOut.from_record(allotment) for allotment in allotments]


@app.post("/api/allotments", response_model=AllotmentOut, status_code=status.HTTP_201_CREATED)
def create_allotment(payload: AllotmentPayload, db: Session = Depends(get_db)) -> AllotmentOut:
    with write_batch(db):
        allotment = records.create_allotment(
            db,
            doctor_id=payload.doctor_id,
            station_id=payload.station_id,
            on_date=payload.date,
            shift=payload.shift,
            notes=payload.notes,
        )
    return AllotmentOut.from_record(allotment)


@app.put("/api/allotments/{allotment_id}", response_model=AllotmentOut)
def update_allotment(allotment_id: int, payload: AllotmentPayload, db: Session = Depends(get_db)) -> AllotmentOut:
    with write_batch(db):
        allotment = records.update_allotment(
            db,
            allotment_id,
            doctor_id=payload.doctor_id,
            station_id=payload.station_id,
            on_date=payload.date,
            shift=payload.shift,
            notes=payload.notes,
        )
    return AllotmentOut.from_record(allotment)


@app.delete("/api/allotments/{allotment_id}")
def delete_allotment(allotment_id: int, db: Session = Depends(get_db)) -> dict[str, bool]:
    with write_batch(db):
        records.delete_allotment(db, allotment_id)
    return {"ok": True}


@app.get("/health")
def health() -> dict[str, bool | str]:
    return {"ok": True, "env": os.getenv("ENVIRONMENT", "local")}


@app.get("/")
def index(request: Request):
    return templates.TemplateResponse(request, "pages/index.html", {"request": request})


def run() -> None:
    import uvicorn

    uvicorn.run(
        "allotment_manager.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "3001")),
    )
