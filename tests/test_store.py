from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

import allotment_manager.db as store_db
from allotment_manager import records
from allotment_manager.db import Store, write_batch
from allotment_manager.models import Allotment, Doctor, Role, Station
from allotment_manager.seed import seed_defaults


def test_write_batch_rolls_back_every_write_on_error(store):
    with store.session() as db:
        with pytest.raises(RuntimeError):
            with write_batch(db):
                records.create_station(db, name="Dialysis")
                records.create_role(db, name="Intern")
                raise RuntimeError("boom")

    with store.session() as db:
        assert db.scalar(select(Station).where(Station.name == "Dialysis")) is None
        assert db.scalar(select(Role).where(Role.name == "Intern")) is None


def test_write_batch_commits_once_for_all_writes(store):
    with store.session() as db, write_batch(db):
        records.create_station(db, name="Dialysis")
        records.create_role(db, name="Intern")

    with store.session() as db:
        assert db.scalar(select(func.count(Station.id)).where(Station.name == "Dialysis")) == 1
        assert db.scalar(select(func.count(Role.id)).where(Role.name == "Intern")) == 1


def test_allotment_slot_is_unique_in_storage(store):
    with store.session() as db:
        sharma = db.scalar(select(Doctor).where(Doctor.name == "Dr. Sharma"))
        stations = db.scalars(select(Station).order_by(Station.id)).all()
        db.add(Allotment(doctor_id=sharma.id, station_id=stations[0].id, date=date(2024, 3, 1), shift="day"))
        db.add(Allotment(doctor_id=sharma.id, station_id=stations[1].id, date=date(2024, 3, 1), shift="day"))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()
        assert db.scalar(select(func.count(Allotment.id))) == 0


def test_seed_runs_only_once(store):
    with store.session() as db, write_batch(db):
        assert seed_defaults(db) is False

    with store.session() as db:
        assert db.scalar(select(func.count(Doctor.id))) == 13
        assert db.scalar(select(func.count(Station.id))) == 7


def test_store_on_fresh_file_starts_empty(tmp_path):
    fresh = Store(f"sqlite:///{tmp_path / 'fresh.db'}")
    fresh.create_schema()
    try:
        with fresh.session() as db:
            assert db.scalar(select(func.count(Role.id))) == 0
    finally:
        fresh.dispose()


@pytest.mark.parametrize(
    ("raw_url", "expected"),
    [
        ("postgres://user:pw@host/db", "postgresql+psycopg://user:pw@host/db"),
        ("postgresql://user:pw@host/db", "postgresql+psycopg://user:pw@host/db"),
        ("sqlite:///./other.db", "sqlite:///./other.db"),
    ],
)
def test_database_url_normalization(monkeypatch, raw_url, expected):
    monkeypatch.setenv("DATABASE_URL", raw_url)

    assert store_db.get_database_url() == expected


def test_database_url_default(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    assert store_db.get_database_url() == "sqlite:///./allotment.db"
