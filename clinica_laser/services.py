from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import delete, select, update

from .db import Database
from .errors import NotFoundError
from .models import Paciente, ZonaTelo
from .schemas import PacienteIn, parse_id


# =========================
# Bootstrap DB
# =========================
def init_db(db: Database) -> None:
    """Crea le tabelle se non esistono."""
    db.create_all()


def _balans(value: float | None) -> Decimal | None:
    return Decimal(str(value)) if value is not None else None


def _paciente_flat(p: Any) -> dict:
    return {
        "id": p.id_paciente,
        "ime": p.ime,
        "pol": p.pol,
        "telefon": p.telefon,
        "email": p.email,
        "balans": float(p.balans) if p.balans is not None else None,
    }


# =========================
# Pazienti
# =========================
def lista_pacienti_flat(db: Database) -> list[dict]:
    with db.db_session("Failed to fetch patients") as s:
        rows = s.execute(
            select(
                Paciente.id_paciente,
                Paciente.ime,
                Paciente.pol,
                Paciente.telefon,
                Paciente.email,
                Paciente.balans,
            ).order_by(Paciente.id_paciente)
        ).all()
        return [_paciente_flat(r) for r in rows]


def get_paciente_flat(db: Database, paciente_id: Any) -> dict:
    paciente_id = parse_id(paciente_id, "patient")
    with db.db_session("Failed to fetch patient") as s:
        p = s.get(Paciente, paciente_id)
        if not p:
            raise NotFoundError("Patient not found")
        return _paciente_flat(p)


def crea_paciente(db: Database, data: PacienteIn) -> int:
    with db.db_session("Failed to create patient") as s:
        p = Paciente(
            ime=data.ime,
            pol=data.pol,
            telefon=data.telefon,
            email=data.email,
            balans=_balans(data.balans),
        )
        s.add(p)
        s.flush()
        return p.id_paciente


def aggiorna_paciente(db: Database, paciente_id: Any, data: PacienteIn) -> int:
    paciente_id = parse_id(paciente_id, "patient")
    valori: dict[str, Any] = {"ime": data.ime, "pol": data.pol, "telefon": data.telefon, "email": data.email}
    # balans assente nel body => saldo invariato
    if "balans" in data.model_fields_set:
        valori["balans"] = _balans(data.balans)
    with db.db_session("Failed to update patient") as s:
        righe = s.execute(
            update(Paciente)
            .where(Paciente.id_paciente == paciente_id)
            .values(**valori)
        ).rowcount
        if righe == 0:
            raise NotFoundError("Patient not found")
    return paciente_id


def elimina_paciente(db: Database, paciente_id: Any) -> int:
    paciente_id = parse_id(paciente_id, "patient")
    with db.db_session("Failed to delete patient") as s:
        righe = s.execute(delete(Paciente).where(Paciente.id_paciente == paciente_id)).rowcount
        if righe == 0:
            raise NotFoundError("Patient not found")
    return paciente_id


# =========================
# Zone (catalogo)
# =========================
def lista_zonas_flat(db: Database) -> list[dict]:
    with db.db_session("Failed to fetch zones") as s:
        rows = s.execute(
            select(ZonaTelo.id_zona, ZonaTelo.nazvanie, ZonaTelo.nazvanie_es, ZonaTelo.pol_specifichen)
            .order_by(ZonaTelo.id_zona)
        ).all()
        return [
            {
                "idZona": r.id_zona,
                "nazvanie": r.nazvanie,
                "nazvanieEs": r.nazvanie_es,
                "polSpecifichen": r.pol_specifichen,
            }
            for r in rows
        ]
