"""
Scritture transazionali dell'aggregato "procedura" (testata + zone).

Ogni operazione gira su una sola connessione presa dal pool (Database.db_session):
commit solo se tutti gli statement riescono, rollback altrimenti, rilascio sempre.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, update

from .db import Database
from .errors import NotFoundError
from .models import Procedura, ProceduraZona
from .schemas import EsitoEliminazione, EsitoProcedura, ProceduraCreateIn, ProceduraUpdateIn, parse_id

logger = logging.getLogger(__name__)


def _prezzo(value: float) -> Decimal:
    return Decimal(str(value))


class ProcedureTransactionManager:
    def __init__(self, db: Database) -> None:
        self.db = db

    # =========================
    # Creazione
    # =========================
    def crea_procedura(self, req: ProceduraCreateIn) -> EsitoProcedura:
        """
        Inserisce testata + righe zona in un'unica transazione.
        - l'id generato viene letto dal flush dell'INSERT (stesso round trip)
        - le zone sono inserite nell'ordine ricevuto; il primo errore interrompe tutto
        - pulsaciones vuote/assenti => NULL
        """
        logger.info(
            "Creazione procedura per paziente %s (%d zone)",
            req.id_paciente,
            len(req.zonas),
            extra={"patient_id": req.id_paciente, "zone_count": len(req.zonas)},
        )

        with self.db.db_session("Failed to create procedure", always_expose_details=True) as s:
            proc = Procedura(
                id_paciente=req.id_paciente,
                data=req.data,
                obshta_cena=_prezzo(req.obshta_cena),
                komentar=req.komentar,
            )
            s.add(proc)
            s.flush()
            new_id = proc.id_procedura

            for zona in req.zonas:
                logger.debug(
                    "Inserimento zona %s (pulsaciones=%s)",
                    zona.id_zona,
                    zona.pulsaciones,
                    extra={"procedure_id": new_id},
                )
                s.add(ProceduraZona(id_procedura=new_id, id_zona=zona.id_zona, pulsaciones=zona.pulsaciones))
                s.flush()

        logger.info("Procedura %s creata", new_id, extra={"procedure_id": new_id})
        return EsitoProcedura(id_procedura=new_id, zone_inserite=len(req.zonas))

    # =========================
    # Modifica
    # =========================
    def aggiorna_procedura(self, procedura_id: Any, req: ProceduraUpdateIn) -> EsitoProcedura:
        """
        Aggiorna la testata sul posto (l'id resta lo stesso), cancella tutte le zone
        e reinserisce il nuovo insieme, in un'unica transazione.

        Comportamento mantenuto volutamente:
        - le zone reinserite NON riportano pulsaciones (restano NULL)
        - un id inesistente non è un errore: 0 righe aggiornate, esito positivo
        """
        procedura_id = parse_id(procedura_id, "procedure")
        log_extra = {"procedure_id": procedura_id, "zone_count": len(req.zonas)}
        logger.info("Modifica procedura %s", procedura_id, extra=log_extra)

        with self.db.db_session("Failed to update procedure", always_expose_details=True) as s:
            righe = s.execute(
                update(Procedura)
                .where(Procedura.id_procedura == procedura_id)
                .values(data=req.data, obshta_cena=_prezzo(req.obshta_cena), komentar=req.komentar)
            ).rowcount
            if righe == 0:
                logger.warning("Procedura %s inesistente: nessuna testata aggiornata", procedura_id, extra=log_extra)

            s.execute(delete(ProceduraZona).where(ProceduraZona.id_procedura == procedura_id))

            for zona in req.zonas:
                if zona.pulsaciones is not None:
                    logger.debug(
                        "pulsaciones=%s ignorate per zona %s in modifica",
                        zona.pulsaciones,
                        zona.id_zona,
                        extra={"procedure_id": procedura_id},
                    )
                s.add(ProceduraZona(id_procedura=procedura_id, id_zona=zona.id_zona))
                s.flush()

        logger.info("Procedura %s aggiornata", procedura_id, extra=log_extra)
        return EsitoProcedura(id_procedura=procedura_id, zone_inserite=len(req.zonas), righe_procedura=righe)

    # =========================
    # Eliminazione
    # =========================
    def elimina_procedura(self, procedura_id: Any) -> EsitoEliminazione:
        """Prima le zone (vincolo FK), poi la testata; 0 righe di testata => NotFoundError."""
        procedura_id = parse_id(procedura_id, "procedure")

        with self.db.db_session("Failed to delete procedure") as s:
            zone = s.execute(delete(ProceduraZona).where(ProceduraZona.id_procedura == procedura_id)).rowcount
            righe = s.execute(delete(Procedura).where(Procedura.id_procedura == procedura_id)).rowcount
            if righe == 0:
                raise NotFoundError("Procedure not found")

        logger.info("Procedura %s eliminata (%d zone)", procedura_id, zone, extra={"procedure_id": procedura_id})
        return EsitoEliminazione(id_procedura=procedura_id, righe_eliminate=righe, zone_eliminate=zone)
