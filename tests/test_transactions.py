from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from clinica_laser.db import Database
from clinica_laser.errors import InfrastructureError, InvalidInputError, NotFoundError, TransactionFailedError
from clinica_laser.models import Procedura, ProceduraZona
from clinica_laser.schemas import ProceduraCreateIn, ProceduraUpdateIn
from clinica_laser.transactions import ProcedureTransactionManager


def _create_req(paciente_id: int, zonas: list[dict], **extra) -> ProceduraCreateIn:
    payload = {"id_paciente": paciente_id, "data": "2024-03-01", "obshta_cena": 120.50, "zonas": zonas}
    payload.update(extra)
    return ProceduraCreateIn.model_validate(payload)


def _update_req(zonas: list[dict], **extra) -> ProceduraUpdateIn:
    payload = {"data": "2024-04-15", "obshta_cena": "99.90", "zonas": zonas}
    payload.update(extra)
    return ProceduraUpdateIn.model_validate(payload)


def _zone_rows(db: Database, procedura_id: int) -> list[tuple[int, int | None]]:
    with db.db_session("read") as s:
        rows = s.execute(
            select(ProceduraZona.id_zona, ProceduraZona.pulsaciones)
            .where(ProceduraZona.id_procedura == procedura_id)
            .order_by(ProceduraZona.id)
        ).all()
        return [(r.id_zona, r.pulsaciones) for r in rows]


def _count_procedure(db: Database) -> int:
    with db.db_session("read") as s:
        return len(s.scalars(select(Procedura)).all())


# =========================
# Creazione
# =========================
def test_create_inserts_header_and_zones(db, manager, paciente_id):
    esito = manager.crea_procedura(
        _create_req(paciente_id, [{"id_zona": 2, "pulsaciones": 5}, {"id_zona": 3, "pulsaciones": ""}])
    )

    assert esito.id_procedura > 0
    assert esito.zone_inserite == 2
    assert _zone_rows(db, esito.id_procedura) == [(2, 5), (3, None)]

    with db.db_session("read") as s:
        proc = s.get(Procedura, esito.id_procedura)
        assert proc.id_paciente == paciente_id
        assert proc.data == date(2024, 3, 1)
        assert proc.obshta_cena == Decimal("120.50")
        assert proc.komentar is None


def test_create_keeps_zero_pulses_and_comment(db, manager, paciente_id):
    esito = manager.crea_procedura(
        _create_req(paciente_id, [{"id_zona": 1, "pulsaciones": 0}, {"id_zona": 1}], komentar="prima seduta")
    )

    # stessa zona due volte: consentito
    assert _zone_rows(db, esito.id_procedura) == [(1, 0), (1, None)]
    with db.db_session("read") as s:
        assert s.get(Procedura, esito.id_procedura).komentar == "prima seduta"


def test_create_with_no_zones(db, manager, paciente_id):
    esito = manager.crea_procedura(_create_req(paciente_id, []))

    assert esito.zone_inserite == 0
    assert _zone_rows(db, esito.id_procedura) == []
    assert _count_procedure(db) == 1


def test_create_rolls_back_header_when_zone_insert_fails(db, manager, paciente_id):
    with pytest.raises(TransactionFailedError) as exc_info:
        manager.crea_procedura(_create_req(paciente_id, [{"id_zona": 2, "pulsaciones": 5}, {"id_zona": 999}]))

    exc = exc_info.value
    assert exc.status_code == 500
    assert exc.message == "Failed to create procedure"
    assert isinstance(exc.cause, IntegrityError)
    assert exc.rollback_error is None
    assert _count_procedure(db) == 0
    with db.db_session("read") as s:
        assert s.scalars(select(ProceduraZona)).all() == []


def test_create_for_unknown_patient_fails_without_trace(db, manager):
    with pytest.raises(TransactionFailedError):
        manager.crea_procedura(_create_req(4242, [{"id_zona": 2}]))

    assert _count_procedure(db) == 0


def test_create_reports_rollback_failure_separately(db, manager, paciente_id, monkeypatch):
    def broken_rollback(self):
        raise OperationalError("ROLLBACK", {}, Exception("connection lost"))

    monkeypatch.setattr(Session, "rollback", broken_rollback)

    with pytest.raises(TransactionFailedError) as exc_info:
        manager.crea_procedura(_create_req(paciente_id, [{"id_zona": 999}]))

    exc = exc_info.value
    assert isinstance(exc.cause, IntegrityError)
    assert isinstance(exc.rollback_error, OperationalError)
    assert "FOREIGN KEY" in exc.details.upper()

    monkeypatch.undo()
    # la chiusura della sessione scarta comunque la transazione
    assert _count_procedure(db) == 0


def test_release_failure_does_not_mask_success(db, manager, paciente_id, monkeypatch, caplog):
    original_close = Session.close

    def close_then_fail(self):
        original_close(self)
        raise OperationalError("CLOSE", {}, Exception("pool gone"))

    monkeypatch.setattr(Session, "close", close_then_fail)

    with caplog.at_level(logging.ERROR, logger="clinica_laser.db"):
        esito = manager.crea_procedura(_create_req(paciente_id, [{"id_zona": 2}]))

    assert esito.id_procedura > 0
    assert any("rilascio" in r.getMessage() for r in caplog.records)

    monkeypatch.undo()
    assert _zone_rows(db, esito.id_procedura) == [(2, None)]


def test_connection_failure_is_infrastructure_error(tmp_path, paciente_id):
    broken = Database(f"sqlite:///{tmp_path / 'missing' / 'dir' / 'db.sqlite'}")
    manager = ProcedureTransactionManager(broken)

    with pytest.raises(InfrastructureError) as exc_info:
        manager.crea_procedura(_create_req(paciente_id, [{"id_zona": 2}]))

    assert exc_info.value.status_code == 500
    assert exc_info.value.message == "Database connection unavailable"
    broken.dispose()


# =========================
# Modifica
# =========================
def test_update_replaces_zone_set_and_drops_pulses(db, manager, paciente_id):
    creata = manager.crea_procedura(
        _create_req(paciente_id, [{"id_zona": 2, "pulsaciones": 5}, {"id_zona": 3, "pulsaciones": ""}])
    )

    esito = manager.aggiorna_procedura(creata.id_procedura, _update_req([{"id_zona": 4, "pulsaciones": 12}]))

    assert esito.id_procedura == creata.id_procedura
    assert esito.righe_procedura == 1
    assert _zone_rows(db, creata.id_procedura) == [(4, None)]

    with db.db_session("read") as s:
        proc = s.get(Procedura, creata.id_procedura)
        assert proc.data == date(2024, 4, 15)
        assert proc.obshta_cena == Decimal("99.90")


def test_update_twice_with_same_zones_leaves_exactly_that_set(db, manager, paciente_id):
    creata = manager.crea_procedura(_create_req(paciente_id, [{"id_zona": 1}]))
    req = _update_req([{"id_zona": 5}, {"id_zona": 6}])

    manager.aggiorna_procedura(creata.id_procedura, req)
    manager.aggiorna_procedura(str(creata.id_procedura), req)

    assert sorted(_zone_rows(db, creata.id_procedura)) == [(5, None), (6, None)]


def test_update_failure_keeps_previous_state(db, manager, paciente_id):
    creata = manager.crea_procedura(_create_req(paciente_id, [{"id_zona": 2, "pulsaciones": 5}]))

    with pytest.raises(TransactionFailedError) as exc_info:
        manager.aggiorna_procedura(creata.id_procedura, _update_req([{"id_zona": 3}, {"id_zona": 999}]))

    assert exc_info.value.message == "Failed to update procedure"
    assert _zone_rows(db, creata.id_procedura) == [(2, 5)]
    with db.db_session("read") as s:
        assert s.get(Procedura, creata.id_procedura).data == date(2024, 3, 1)


def test_update_of_missing_procedure_is_silent_noop(db, manager):
    esito = manager.aggiorna_procedura(777, _update_req([]))

    assert esito.id_procedura == 777
    assert esito.righe_procedura == 0
    assert _count_procedure(db) == 0


def test_update_rejects_non_numeric_id_before_connecting(db, monkeypatch):
    manager = ProcedureTransactionManager(db)

    def no_io():
        raise AssertionError("nessun accesso al DB atteso")

    monkeypatch.setattr(db, "SessionLocal", no_io)

    with pytest.raises(InvalidInputError) as exc_info:
        manager.aggiorna_procedura("abc", _update_req([]))
    assert exc_info.value.message == "Invalid procedure ID"


# =========================
# Eliminazione
# =========================
def test_delete_removes_zones_then_header(db, manager, paciente_id):
    creata = manager.crea_procedura(_create_req(paciente_id, [{"id_zona": 2}, {"id_zona": 3}]))

    esito = manager.elimina_procedura(creata.id_procedura)

    assert esito.righe_eliminate == 1
    assert esito.zone_eliminate == 2
    assert _count_procedure(db) == 0
    assert _zone_rows(db, creata.id_procedura) == []


def test_delete_procedure_without_zones(db, manager, paciente_id):
    creata = manager.crea_procedura(_create_req(paciente_id, []))

    esito = manager.elimina_procedura(creata.id_procedura)

    assert esito.zone_eliminate == 0
    assert esito.righe_eliminate == 1


def test_delete_missing_procedure_is_not_found(db, manager, paciente_id):
    creata = manager.crea_procedura(_create_req(paciente_id, [{"id_zona": 2}]))

    with pytest.raises(NotFoundError) as exc_info:
        manager.elimina_procedura(creata.id_procedura + 100)

    assert exc_info.value.status_code == 404
    assert _count_procedure(db) == 1
    assert _zone_rows(db, creata.id_procedura) == [(2, None)]


# =========================
# Rilascio connessioni al pool
# =========================
def _checked_out(db: Database) -> int:
    return db.engine.pool.checkedout()


def test_connection_returned_after_successful_create(db, manager, paciente_id):
    manager.crea_procedura(_create_req(paciente_id, [{"id_zona": 2}]))

    assert _checked_out(db) == 0


def test_connection_returned_after_rolled_back_create(db, manager, paciente_id):
    with pytest.raises(TransactionFailedError):
        manager.crea_procedura(_create_req(paciente_id, [{"id_zona": 999}]))

    assert _checked_out(db) == 0


def test_connection_returned_after_failed_update(db, manager, paciente_id):
    creata = manager.crea_procedura(_create_req(paciente_id, [{"id_zona": 2}]))

    with pytest.raises(TransactionFailedError):
        manager.aggiorna_procedura(creata.id_procedura, _update_req([{"id_zona": 999}]))

    assert _checked_out(db) == 0


def test_connection_returned_after_not_found_delete(db, manager):
    with pytest.raises(NotFoundError):
        manager.elimina_procedura(31337)

    assert _checked_out(db) == 0


@pytest.mark.parametrize("raw_id", ["abc", "1_0", "99999999999999999999"])
def test_invalid_update_id_never_borrows_a_connection(db, manager, raw_id):
    with pytest.raises(InvalidInputError):
        manager.aggiorna_procedura(raw_id, _update_req([]))

    assert _checked_out(db) == 0


def test_connection_returned_after_failed_rollback(db, manager, paciente_id, monkeypatch):
    def broken_rollback(self):
        raise OperationalError("ROLLBACK", {}, Exception("connection lost"))

    monkeypatch.setattr(Session, "rollback", broken_rollback)

    with pytest.raises(TransactionFailedError):
        manager.crea_procedura(_create_req(paciente_id, [{"id_zona": 999}]))

    assert _checked_out(db) == 0
