from __future__ import annotations

import pytest

from allotment_manager.db import Store, write_batch
from allotment_manager.main import app
from allotment_manager.seed import seed_defaults


@pytest.fixture(autouse=True)
def store(tmp_path):
    # Every test gets its own seeded SQLite file.
    store = Store(f"sqlite:///{tmp_path / 'test_allotment.db'}")
    store.create_schema()
    with store.session() as db, write_batch(db):
        seed_defaults(db)
    app.state.store = store
    yield store
    store.drop_schema()
    store.dispose()


@pytest.fixture
def db(store):
    session = store.session()
    try:
        yield session
    finally:
        session.close()
