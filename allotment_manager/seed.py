from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from allotment_manager.models import Doctor, Role, RolePermission, Station, StationRestriction

logger = logging.getLogger(__name__)

DEFAULT_ROLES = [
    ("Senior Consultant", "Senior level doctor with all station access"),
    ("Consultant", "Regular consultant with standard access"),
    ("Junior Resident", "Junior level with limited station access"),
    ("Senior Resident", "Senior resident with extended access"),
]

DEFAULT_STATIONS = [
    ("Emergency", "Emergency Department"),
    ("ICU", "Intensive Care Unit"),
    ("OPD", "Out Patient Department"),
    ("Surgery", "Surgery Department"),
    ("Pediatrics", "Pediatrics Department"),
    ("Radiology", "Radiology Department"),
    ("Laboratory", "Laboratory Department"),
]

DEFAULT_DOCTORS = [
    ("Dr. Sharma", "Senior Consultant"),
    ("Dr. Patel", "Senior Consultant"),
    ("Dr. Kumar", "Consultant"),
    ("Dr. Singh", "Consultant"),
    ("Dr. Gupta", "Consultant"),
    ("Dr. Reddy", "Junior Resident"),
    ("Dr. Joshi", "Junior Resident"),
    ("Dr. Verma", "Junior Resident"),
    ("Dr. Rao", "Senior Resident"),
    ("Dr. Mishra", "Senior Resident"),
    ("Dr. Nair", "Consultant"),
    ("Dr. Iyer", "Junior Resident"),
    ("Dr. Menon", "Senior Resident"),
]

# (role, station) pairs left out of the otherwise complete permission grid.
DENIED_PERMISSIONS = {("Junior Resident", "Surgery")}

DEFAULT_RESTRICTIONS = [
    ("Dr. Reddy", "ICU"),
    ("Dr. Joshi", "ICU"),
    ("Dr. Verma", "ICU"),
    ("Dr. Iyer", "ICU"),
    ("Dr. Menon", "ICU"),
]


def seed_defaults(db: Session) -> bool:
    """Insert the starter roster unless roles already exist. Returns whether it seeded."""
    existing_roles = db.scalar(select(func.count(Role.id))) or 0
    if existing_roles > 0:
        return False

    roles = {name: Role(name=name, description=description) for name, description in DEFAULT_ROLES}
    stations = {name: Station(name=name, description=description, is_active=True) for name, description in DEFAULT_STATIONS}
    db.add_all(roles.values())
    db.add_all(stations.values())
    db.flush()

    doctors = {name: Doctor(name=name, role_id=roles[role_name].id, is_active=True) for name, role_name in DEFAULT_DOCTORS}
    db.add_all(doctors.values())
    db.flush()

    for doctor_name, station_name in DEFAULT_RESTRICTIONS:
        db.add(StationRestriction(doctor_id=doctors[doctor_name].id, station_id=stations[station_name].id))

    for role_name, role in roles.items():
        for station_name, station in stations.items():
            if (role_name, station_name) in DENIED_PERMISSIONS:
                continue
            db.add(RolePermission(role_id=role.id, station_id=station.id))
    db.flush()
    logger.info("Seeded %d roles, %d stations and %d doctors", len(roles), len(stations), len(doctors))
    return True
