"""
Letture sulle procedure.

L'aggregazione delle zone per procedura è fatta dal database (JSON lato server);
qui il valore aggregato viene solo normalizzato in lista.
"""
from __future__ import annotations

import json
from typing import Any

from sqlalchemy import func, select

from .db import Database
from .models import Paciente, Procedura, ProceduraZona, ZonaTelo
from .schemas import parse_id


def _zone_aggregate(dialect: str):
    if dialect == "postgresql":
        return func.json_agg(
            func.json_build_object("zona", ZonaTelo.nazvanie, "pulsaciones", ProceduraZona.pulsaciones)
        )
    if dialect == "mysql":
        return func.json_arrayagg(
            func.json_object("zona", ZonaTelo.nazvanie, "pulsaciones", ProceduraZona.pulsaciones)
        )
    # sqlite (JSON1)
    return func.json_group_array(
        func.json_object("zona", ZonaTelo.nazvanie, "pulsaciones", ProceduraZona.pulsaciones)
    )


def normalizza_zonas(value: Any) -> list[dict]:
    """Il valore aggregato può arrivare come testo JSON o già decodificato."""
    if value is None:
        return []
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        value = json.loads(value)
    return list(value)


def _prezzo(value: Any) -> float | None:
    return float(value) if value is not None else None


def lista_procedure_paziente(db: Database, paciente_id: Any) -> list[dict]:
    """
    Procedure di un paziente con le zone aggregate, dalla più recente.
    Solo procedure con almeno una zona (join interni).
    """
    paciente_id = parse_id(paciente_id, "patient")

    q = (
        select(
            Procedura.id_procedura,
            Procedura.data,
            Procedura.obshta_cena,
            Procedura.komentar,
            _zone_aggregate(db.dialect).label("zonas"),
        )
        .join(ProceduraZona, ProceduraZona.id_procedura == Procedura.id_procedura)
        .join(ZonaTelo, ZonaTelo.id_zona == ProceduraZona.id_zona)
        .where(Procedura.id_paciente == paciente_id)
        .group_by(Procedura.id_procedura, Procedura.data, Procedura.obshta_cena, Procedura.komentar)
        .order_by(Procedura.data.desc(), Procedura.id_procedura.desc())
    )

    with db.db_session("Failed to fetch procedures") as s:
        rows = s.execute(q).all()
        return [
            {
                "idProcedura": r.id_procedura,
                "data": r.data.isoformat(),
                "obshtaCena": _prezzo(r.obshta_cena),
                "komentar": r.komentar,
                "zonas": normalizza_zonas(r.zonas),
            }
            for r in rows
        ]


def lista_procedure_flat(db: Database) -> list[dict]:
    """Tutte le procedure, una riga per (procedura, zona)."""
    q = (
        select(
            Procedura.id_procedura,
            Procedura.id_paciente,
            Paciente.ime,
            Procedura.data,
            Procedura.obshta_cena,
            ZonaTelo.nazvanie,
        )
        .join(Paciente, Paciente.id_paciente == Procedura.id_paciente)
        .join(ProceduraZona, ProceduraZona.id_procedura == Procedura.id_procedura)
        .join(ZonaTelo, ZonaTelo.id_zona == ProceduraZona.id_zona)
        .group_by(
            Procedura.id_procedura,
            Procedura.id_paciente,
            Paciente.ime,
            Procedura.data,
            Procedura.obshta_cena,
            ZonaTelo.nazvanie,
        )
        .order_by(Procedura.data.desc(), Procedura.id_procedura.desc())
    )

    with db.db_session("Failed to fetch procedures") as s:
        rows = s.execute(q).all()
        return [
            {
                "idProcedura": r.id_procedura,
                "idPaciente": r.id_paciente,
                "nombrePaciente": r.ime,
                "data": r.data.isoformat(),
                "obshtaCena": _prezzo(r.obshta_cena),
                "zona": r.nazvanie,
            }
            for r in rows
        ]
