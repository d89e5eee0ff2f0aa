"""
Schemi di input (pydantic) e DTO di esito.

I body delle richieste usano le chiavi dello schema DB (snake_case:
id_paciente, obshta_cena, id_zona, pulsaciones); le risposte usano gli alias
camelCase (idPaciente, obshtaCena, idZona) costruiti in readers/services.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidInputError

MSG_CREA_PROCEDURA = "Missing required fields. Required: id_paciente, data, obshta_cena, and zonas array"
MSG_AGGIORNA_PROCEDURA = "Missing required fields. Required: data, obshta_cena, and zonas array"
MSG_PACIENTE = "Invalid patient data"

# colonne INTEGER: interi con segno a 64 bit
MAX_ID = 2**63 - 1
MIN_ID = -(2**63)

_ID_RE = re.compile(r"-?[0-9]+")

M = TypeVar("M", bound=BaseModel)


def _iso_date(v: Any) -> Any:
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    if not isinstance(v, str) or not v.strip():
        raise ValueError("data must be a YYYY-MM-DD string")
    return datetime.strptime(v.strip(), "%Y-%m-%d").date()


def _no_bool(v: Any) -> Any:
    # JSON true/false non è un numero
    if isinstance(v, bool):
        raise ValueError("boolean is not a valid number")
    return v


class ZonaIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id_zona: int = Field(..., ge=MIN_ID, le=MAX_ID)
    # "", null o assente => NULL (non registrato); 0 è un valore valido
    pulsaciones: int | None = Field(None, ge=MIN_ID, le=MAX_ID)

    @field_validator("id_zona", mode="before")
    @classmethod
    def _id_zona_numerico(cls, v: Any) -> Any:
        return _no_bool(v)

    @field_validator("pulsaciones", mode="before")
    @classmethod
    def _pulsaciones_vuote(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return _no_bool(v)


class ProceduraUpdateIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: date
    obshta_cena: float = Field(..., allow_inf_nan=False)
    zonas: list[ZonaIn]
    komentar: str | None = None

    @field_validator("data", mode="before")
    @classmethod
    def _data_iso(cls, v: Any) -> Any:
        return _iso_date(v)

    @field_validator("obshta_cena", mode="before")
    @classmethod
    def _cena_numerica(cls, v: Any) -> Any:
        return _no_bool(v)


class ProceduraCreateIn(ProceduraUpdateIn):
    id_paciente: int = Field(..., gt=0, le=MAX_ID)

    @field_validator("id_paciente", mode="before")
    @classmethod
    def _id_paciente_numerico(cls, v: Any) -> Any:
        return _no_bool(v)


class PacienteIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ime: str = Field(..., min_length=1)
    pol: str | None = None
    telefon: str | None = None
    email: str | None = None
    balans: float | None = Field(None, allow_inf_nan=False)

    @field_validator("ime")
    @classmethod
    def _ime_non_vuoto(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("ime must not be blank")
        return v

    @field_validator("balans", mode="before")
    @classmethod
    def _balans_numerico(cls, v: Any) -> Any:
        return _no_bool(v)


def _describe(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}" for err in exc.errors()
    )


def parse_request(model: type[M], payload: Any, message: str) -> M:
    """Valida il body prima di qualsiasi accesso al DB; errore => InvalidInputError (400)."""
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise InvalidInputError(message, details=_describe(exc)) from exc


def parse_id(raw: Any, label: str) -> int:
    """Id numerico da path/argomento; altrimenti 'Invalid <label> ID'."""
    text = str(raw).strip() if raw is not None else ""
    if not _ID_RE.fullmatch(text):
        raise InvalidInputError(f"Invalid {label} ID")
    value = int(text)
    if not MIN_ID <= value <= MAX_ID:
        raise InvalidInputError(f"Invalid {label} ID")
    return value


# =========================
# Esiti
# =========================
@dataclass(frozen=True)
class EsitoProcedura:
    id_procedura: int
    zone_inserite: int
    # righe header toccate (sull'update 0 = id inesistente, comunque successo)
    righe_procedura: int = 1


@dataclass(frozen=True)
class EsitoEliminazione:
    id_procedura: int
    righe_eliminate: int
    zone_eliminate: int
