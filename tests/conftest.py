import os

# Keep the app module away from the on-disk database during tests
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RECOMPUTE_MODE"] = "sync"
os.environ["ARCHIVE_MODE"] = "delete"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from resume_ab import models
from resume_ab.db import create_db_engine, get_db, init_db, make_session_factory
from resume_ab.main import app
from resume_ab.repository import Repository


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def repo(db):
    return Repository(db)


@pytest.fixture
def experiment(repo):
    return repo.create_experiment("user-1", "Resume layout test", models.MaterialType.RESUME)


@pytest.fixture
def make_trials(repo):
    """
    Create trials for a variant with the given numbers of responses,
    interviews and offers (counted from the first trial onwards).
    """
    job_ids = iter(range(1000, 100000))

    def _make(variant, total, responses=0, interviews=0, offers=0, hours=None):
        trials = []
        for i in range(total):
            trial = repo.create_trial(variant.experiment_id, variant.id, next(job_ids), "user-1")
            patch = {
                "response_received": i < responses,
                "response_type": (
                    models.ResponseType.PHONE_SCREEN if i < responses
                    else models.ResponseType.NO_RESPONSE
                ),
                "reached_interview": i < interviews,
                "reached_offer": i < offers,
                "time_to_response_hours": hours[i] if hours and i < len(hours) else None,
            }
            trials.append(repo.update_trial(trial.id, patch))
        return trials

    return _make


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    return {"X-User-Id": "user-1"}
