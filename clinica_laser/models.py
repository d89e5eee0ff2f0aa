from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


class Paciente(Base):
    __tablename__ = "paciente"

    id_paciente: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ime: Mapped[str] = mapped_column(String(120), nullable=False)
    pol: Mapped[str | None] = mapped_column(String(10), nullable=True)
    telefon: Mapped[str | None] = mapped_column(String(30), nullable=True)
    email: Mapped[str | None] = mapped_column(String(120), nullable=True)
    balans: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    proceduri: Mapped[list["Procedura"]] = relationship(back_populates="paciente")

    def __repr__(self) -> str:
        return f"Paciente({self.id_paciente}, {self.ime})"


class ZonaTelo(Base):
    __tablename__ = "zona_telo"

    id_zona: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    nazvanie: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    nazvanie_es: Mapped[str | None] = mapped_column(String(120), nullable=True)
    pol_specifichen: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"ZonaTelo({self.id_zona}, {self.nazvanie})"


class Procedura(Base):
    __tablename__ = "procedura"

    id_procedura: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id_paciente: Mapped[int] = mapped_column(ForeignKey("paciente.id_paciente"), nullable=False)
    data: Mapped[date] = mapped_column(Date, nullable=False)
    obshta_cena: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    komentar: Mapped[str | None] = mapped_column(Text, nullable=True)

    paciente: Mapped["Paciente"] = relationship(back_populates="proceduri")

    def __repr__(self) -> str:
        return f"Procedura({self.id_procedura}, paciente={self.id_paciente}, {self.data})"


class ProceduraZona(Base):
    """
    Riga di associazione procedura <-> zona.
    La chiave surrogata serve solo all'ORM: la stessa zona può comparire più volte.
    """
    __tablename__ = "procedura_zona"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id_procedura: Mapped[int] = mapped_column(ForeignKey("procedura.id_procedura"), nullable=False, index=True)
    id_zona: Mapped[int] = mapped_column(ForeignKey("zona_telo.id_zona"), nullable=False)
    pulsaciones: Mapped[int | None] = mapped_column(Integer, nullable=True)
