from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from clinica_laser.api_main import create_app
from clinica_laser.config import Settings
from clinica_laser.db import Database
from clinica_laser.models import Paciente
from clinica_laser.seed import seed_zonas
from clinica_laser.services import init_db
from clinica_laser.transactions import ProcedureTransactionManager


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.sqlite'}",
        app_env="test",
        log_format="text",
    )


@pytest.fixture
def db(settings):
    database = Database.from_settings(settings)
    init_db(database)
    seed_zonas(database)
    yield database
    database.dispose()


@pytest.fixture
def manager(db):
    return ProcedureTransactionManager(db)


@pytest.fixture
def paciente_id(db):
    with db.db_session("seed paciente") as s:
        p = Paciente(ime="Maria Petrova", pol="F", telefon="+359 888 111 222", email="maria@example.com")
        s.add(p)
        s.flush()
        return p.id_paciente


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def app_db(client) -> Database:
    return client.app.state.db


@pytest.fixture
def create_patient(client):
    def _create(ime: str = "Ana Garcia", **extra) -> int:
        resp = client.post("/api/pacientes", json={"ime": ime, **extra})
        assert resp.status_code == 201
        return resp.json()["id"]

    return _create
