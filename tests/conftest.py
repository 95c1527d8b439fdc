"""Shared fixtures: a SQLite-backed app for relational flows, a mocked session for PostGIS."""

import uuid
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app import create_app
from cache import ResponseCache
from config import Settings
from database import get_db
from models import Base, HabitatColormap, Species


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway SQLite file, limiter and cache off."""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        rate_limit_enabled=False,
        log_level="WARNING",
    )


@pytest.fixture
def app(settings):
    application = create_app(settings, cache=ResponseCache(None))
    # icaa is import-owned in production; create it here for SQLite.
    Base.metadata.create_all(application.state.engine)
    yield application
    application.dependency_overrides.clear()
    application.state.engine.dispose()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db_session(app):
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture
def species(db_session):
    """Three catalog species; 99 is never created."""
    rows = [
        Species(
            ogc_fid=1,
            comm_name="Loggerhead Sea Turtle",
            sci_name="Caretta caretta",
            class_="REPTILIA",
            order="TESTUDINES",
            family="CHELONIIDAE",
            genus="Caretta",
            category="VU",
            realm="Neotropic",
            sub_realm="Atlantic",
            biome="Marine",
            bioregio_1="Sargasso Sea",
            marine="true",
        ),
        Species(
            ogc_fid=2,
            comm_name="Eastern Box Turtle",
            sci_name="Terrapene carolina",
            class_="REPTILIA",
            order="TESTUDINES",
            family="EMYDIDAE",
            genus="Terrapene",
            category="VU",
            realm="Nearctic",
            biome="Temperate Broadleaf & Mixed Forests",
            bioregio_1="Appalachian Forests",
            terrestria="true",
        ),
        Species(
            ogc_fid=3,
            comm_name="American Bullfrog",
            sci_name="Lithobates catesbeianus",
            class_="AMPHIBIA",
            order="ANURA",
            family="RANIDAE",
            genus="Lithobates",
            category="LC",
            realm="Nearctic",
            biome="Temperate Grasslands",
            freshwater="true",
        ),
    ]
    db_session.add_all(rows)
    db_session.add_all([HabitatColormap(value=200, label="Savanna"), HabitatColormap(value=100, label="Forest")])
    db_session.commit()
    return rows


@pytest.fixture
def player_id():
    return uuid.uuid4()


@pytest.fixture
def mock_db(app):
    """Replace the session dependency with a MagicMock (for PostGIS-only SQL)."""
    session = MagicMock()
    app.dependency_overrides[get_db] = lambda: session
    return session


@pytest.fixture
def mock_client(app, mock_db):
    return TestClient(app)
