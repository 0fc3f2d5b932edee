"""Station eligibility rules for doctors.

A doctor may work a station when their role is permitted there and they are
not individually restricted from it. Allotments additionally require the
(doctor, date, shift) slot to be free.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from allotment_manager.errors import EligibilityError, EligibilityFailure
from allotment_manager.models import Allotment, Doctor, RolePermission, Station, StationRestriction

logger = logging.getLogger(__name__)


def allowed_stations(db: Session, doctor: Doctor) -> list[Station]:
    if doctor.role_id is None:
        return []
    restricted_ids = select(StationRestriction.station_id).where(StationRestriction.doctor_id == doctor.id)
    stmt = (
        select(Station)
        .join(RolePermission, RolePermission.station_id == Station.id)
        .where(
            RolePermission.role_id == doctor.role_id,
            Station.is_active.is_(True),
            Station.id.not_in(restricted_ids),
        )
        .order_by(Station.name, Station.id)
    )
    return list(db.scalars(stmt).all())


def _reject(kind: EligibilityFailure, message: str, doctor: Doctor, station_id: int) -> EligibilityError:
    logger.info("Allotment rejected (%s): doctor=%s station=%s", kind.value, doctor.id, station_id)
    return EligibilityError(kind, message)


def validate_allotment(
    db: Session,
    doctor: Doctor,
    station_id: int,
    on_date: date,
    shift: str,
    *,
    ignore_allotment_id: int | None = None,
) -> None:
    # Restrictions are checked even though allowed_stations already removes them.
    # An inactive station counts as not permitted.
    permission = None
    if doctor.role_id is not None:
        permission = db.scalar(
            select(RolePermission)
            .join(Station, Station.id == RolePermission.station_id)
            .where(
                RolePermission.role_id == doctor.role_id,
                RolePermission.station_id == station_id,
                Station.is_active.is_(True),
            )
        )
    if permission is None:
        raise _reject(EligibilityFailure.ROLE_NOT_PERMITTED, "Doctor's role does not allow this station", doctor, station_id)

    restriction = db.scalar(
        select(StationRestriction).where(StationRestriction.doctor_id == doctor.id, StationRestriction.station_id == station_id)
    )
    if restriction is not None:
        raise _reject(EligibilityFailure.INDIVIDUALLY_RESTRICTED, "Doctor has a restriction for this station", doctor, station_id)

    slot = select(Allotment.id).where(Allotment.doctor_id == doctor.id, Allotment.date == on_date, Allotment.shift == shift)
    if ignore_allotment_id is not None:
        slot = slot.where(Allotment.id != ignore_allotment_id)
    if db.scalar(slot) is not None:
        raise _reject(
            EligibilityFailure.SLOT_ALREADY_TAKEN,
            "Doctor already has an allotment for this date and shift",
            doctor,
            station_id,
        )
