from __future__ import annotations

from sqlalchemy import select

from .db import Database
from .models import ZonaTelo

# (nazvanie, nazvanie_es, pol_specifichen)
ZONE_BASE = [
    ("Лице", "Cara", False),
    ("Горна устна", "Labio superior", False),
    ("Брадичка", "Mentón", False),
    ("Подмишници", "Axilas", False),
    ("Ръце", "Brazos", False),
    ("Корем", "Abdomen", False),
    ("Гръб", "Espalda", False),
    ("Гърди", "Pecho", True),
    ("Бикини", "Ingles", True),
    ("Цяло бикини", "Ingles completas", True),
    ("Крака", "Piernas", False),
    ("Подбедрица", "Media pierna", False),
]


def seed_zonas(db: Database) -> int:
    """
    Popola il catalogo zone (idempotente).
    Ritorna il numero di zone aggiunte.
    """
    aggiunte = 0
    with db.db_session("Failed to seed zones") as s:
        for nazvanie, nazvanie_es, pol_specifichen in ZONE_BASE:
            if s.execute(select(ZonaTelo).where(ZonaTelo.nazvanie == nazvanie)).scalar_one_or_none() is None:
                s.add(ZonaTelo(nazvanie=nazvanie, nazvanie_es=nazvanie_es, pol_specifichen=pol_specifichen))
                aggiunte += 1
    return aggiunte
