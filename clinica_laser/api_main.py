from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings
from .db import Database
from .errors import ClinicError, InvalidInputError, TransactionFailedError
from .logging_config import configure_logging
from .readers import lista_procedure_flat, lista_procedure_paziente
from .schemas import (
    MSG_AGGIORNA_PROCEDURA,
    MSG_CREA_PROCEDURA,
    MSG_PACIENTE,
    PacienteIn,
    ProceduraCreateIn,
    ProceduraUpdateIn,
    parse_id,
    parse_request,
)
from .seed import seed_zonas
from .services import (
    aggiorna_paciente,
    crea_paciente,
    elimina_paciente,
    get_paciente_flat,
    init_db,
    lista_pacienti_flat,
    lista_zonas_flat,
)
from .transactions import ProcedureTransactionManager

logger = logging.getLogger(__name__)

router = APIRouter()



# Dipendenze

def get_db(request: Request) -> Database:
    return request.app.state.db


def get_manager(request: Request) -> ProcedureTransactionManager:
    return request.app.state.procedure_manager


def _paciente_in(payload: dict[str, Any]) -> PacienteIn:
    if not payload.get("ime"):
        raise InvalidInputError("Ime is required")
    return parse_request(PacienteIn, payload, MSG_PACIENTE)



# Pazienti

@router.get("/pacientes")
def api_pacientes(db: Database = Depends(get_db)) -> list[dict]:
    return lista_pacienti_flat(db)


@router.get("/pacientes/{paciente_id}")
def api_paciente(paciente_id: str, db: Database = Depends(get_db)) -> dict:
    return get_paciente_flat(db, paciente_id)


@router.post("/pacientes", status_code=201)
def api_crea_paciente(payload: dict[str, Any] = Body(...), db: Database = Depends(get_db)) -> dict[str, Any]:
    logger.info("Nuovo paziente: %s", payload.get("ime"))
    pid = crea_paciente(db, _paciente_in(payload))
    return {"message": "Patient created successfully", "rowsAffected": 1, "id": pid}


@router.put("/pacientes/{paciente_id}")
def api_aggiorna_paciente(
    paciente_id: str,
    payload: dict[str, Any] = Body(...),
    db: Database = Depends(get_db),
) -> dict[str, Any]:
    pid = parse_id(paciente_id, "patient")
    aggiorna_paciente(db, pid, _paciente_in(payload))
    return {"message": "Patient updated successfully", "id": pid}


@router.delete("/pacientes/{paciente_id}")
def api_elimina_paciente(paciente_id: str, db: Database = Depends(get_db)) -> dict[str, Any]:
    pid = elimina_paciente(db, paciente_id)
    return {"message": "Patient deleted successfully", "id": pid}



# Zone

@router.get("/zonas")
def api_zonas(db: Database = Depends(get_db)) -> list[dict]:
    return lista_zonas_flat(db)



# Procedure

@router.get("/pacientes/{paciente_id}/proceduras")
def api_procedure_paziente(paciente_id: str, db: Database = Depends(get_db)) -> list[dict]:
    return lista_procedure_paziente(db, paciente_id)


@router.get("/proceduras")
def api_procedure(db: Database = Depends(get_db)) -> list[dict]:
    return lista_procedure_flat(db)


@router.post("/proceduras", status_code=201)
def api_crea_procedura(
    payload: dict[str, Any] = Body(...),
    manager: ProcedureTransactionManager = Depends(get_manager),
) -> dict[str, Any]:
    req = parse_request(ProceduraCreateIn, payload, MSG_CREA_PROCEDURA)
    esito = manager.crea_procedura(req)
    return {"message": "Procedure created successfully", "id_procedura": esito.id_procedura}


@router.put("/proceduras/{procedura_id}")
def api_aggiorna_procedura(
    procedura_id: str,
    payload: dict[str, Any] = Body(...),
    manager: ProcedureTransactionManager = Depends(get_manager),
) -> dict[str, Any]:
    req = parse_request(ProceduraUpdateIn, payload, MSG_AGGIORNA_PROCEDURA)
    esito = manager.aggiorna_procedura(procedura_id, req)
    return {"message": "Procedure updated successfully", "id_procedura": esito.id_procedura}


@router.delete("/proceduras/{procedura_id}")
def api_elimina_procedura(
    procedura_id: str,
    manager: ProcedureTransactionManager = Depends(get_manager),
) -> dict[str, Any]:
    esito = manager.elimina_procedura(procedura_id)
    return {"message": "Procedure deleted successfully", "rowsAffected": esito.righe_eliminate}



# Applicazione

def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # il pool nasce qui e viene chiuso allo shutdown
        db = Database.from_settings(settings)
        try:
            init_db(db)
            if settings.seed_zones:
                seed_zonas(db)
            app.state.db = db
            app.state.procedure_manager = ProcedureTransactionManager(db)
            logger.info("Avvio applicazione: %r", settings)
            yield
        finally:
            db.dispose()

    app = FastAPI(title="Clinica Laser API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(ClinicError)
    async def clinic_error_handler(request: Request, exc: ClinicError) -> JSONResponse:
        log_extra = {"request_path": request.url.path}
        if isinstance(exc, TransactionFailedError):
            logger.error("%s: %s", exc.message, exc.cause, exc_info=exc.cause, extra=log_extra)
            if exc.rollback_error is not None:
                logger.error("Rollback fallito dopo '%s': %s", exc.message, exc.rollback_error, extra=log_extra)
        elif exc.status_code >= 500:
            logger.error("%s: %s", exc.message, exc.details, extra=log_extra)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(settings.expose_error_details))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        body: dict[str, Any] = {"error": "Invalid request body"}
        if settings.expose_error_details:
            body["details"] = "; ".join(str(err.get("msg")) for err in exc.errors())
        return JSONResponse(status_code=400, content=body)

    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()


def main() -> None:
    import uvicorn

    settings: Settings = app.state.settings
    configure_logging(settings)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
