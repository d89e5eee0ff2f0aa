from __future__ import annotations

import argparse
import json

from .config import Settings
from .db import Database
from .errors import ClinicError
from .readers import lista_procedure_flat
from .schemas import (
    MSG_CREA_PROCEDURA,
    MSG_PACIENTE,
    PacienteIn,
    ProceduraCreateIn,
    parse_request,
)
from .seed import seed_zonas
from .services import crea_paciente, init_db, lista_pacienti_flat, lista_zonas_flat
from .transactions import ProcedureTransactionManager


def cmd_init(db: Database, args: argparse.Namespace) -> None:
    init_db(db)
    aggiunte = seed_zonas(db)
    print(f"DB inizializzato, zone aggiunte: {aggiunte}.")


def cmd_list(db: Database, args: argparse.Namespace) -> None:
    if args.entity == "pacientes":
        for p in lista_pacienti_flat(db):
            print(f"{p['id']} | {p['ime']} | {p['telefon'] or '-'} | {p['email'] or '-'}")
    elif args.entity == "zonas":
        for z in lista_zonas_flat(db):
            flag = " (pol)" if z["polSpecifichen"] else ""
            print(f"{z['idZona']} | {z['nazvanie']} / {z['nazvanieEs']}{flag}")
    elif args.entity == "proceduras":
        for r in lista_procedure_flat(db):
            print(f"{r['idProcedura']} | {r['data']} | {r['nombrePaciente']} | {r['obshtaCena']} | {r['zona']}")


def cmd_add_patient(db: Database, args: argparse.Namespace) -> None:
    payload = {"ime": args.ime, "pol": args.pol, "telefon": args.telefon, "email": args.email}
    pid = crea_paciente(db, parse_request(PacienteIn, payload, MSG_PACIENTE))
    print(f"Paciente creato: {pid}")


def cmd_add_procedure(db: Database, args: argparse.Namespace) -> None:
    """
    --zona accetta "ID" oppure "ID:PULSACIONES", ripetibile.
    """
    zonas = []
    for raw in args.zona:
        id_zona, _, pulsaciones = raw.partition(":")
        zonas.append({"id_zona": id_zona, "pulsaciones": pulsaciones})

    payload = {
        "id_paciente": args.paciente_id,
        "data": args.data,
        "obshta_cena": args.cena,
        "zonas": zonas,
        "komentar": args.komentar,
    }
    esito = ProcedureTransactionManager(db).crea_procedura(parse_request(ProceduraCreateIn, payload, MSG_CREA_PROCEDURA))
    print(f"Procedura creata: {esito.id_procedura} ({esito.zone_inserite} zone)")


def cmd_delete_procedure(db: Database, args: argparse.Namespace) -> None:
    esito = ProcedureTransactionManager(db).elimina_procedura(args.procedura_id)
    print(f"Procedura {esito.id_procedura} eliminata ({esito.zone_eliminate} zone).")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="clinica_laser_cli", description="CLI Clinica Laser")
    p.add_argument("--database-url", default=None, help="Sovrascrive DATABASE_URL")
    sub = p.add_subparsers(required=True)

    p_init = sub.add_parser("init", help="Crea DB e carica catalogo zone")
    p_init.set_defaults(func=cmd_init)

    p_list = sub.add_parser("list", help="Lista entità")
    p_list.add_argument("entity", choices=["pacientes", "zonas", "proceduras"])
    p_list.set_defaults(func=cmd_list)

    p_addp = sub.add_parser("add-patient", help="Crea paziente")
    p_addp.add_argument("--ime", required=True)
    p_addp.add_argument("--pol", default=None)
    p_addp.add_argument("--telefon", default=None)
    p_addp.add_argument("--email", default=None)
    p_addp.set_defaults(func=cmd_add_patient)

    p_addpr = sub.add_parser("add-procedure", help="Crea procedura con zone")
    p_addpr.add_argument("--paciente-id", required=True)
    p_addpr.add_argument("--data", required=True, help="YYYY-MM-DD")
    p_addpr.add_argument("--cena", required=True)
    p_addpr.add_argument("--zona", action="append", default=[], help="ID oppure ID:PULSACIONES")
    p_addpr.add_argument("--komentar", default=None)
    p_addpr.set_defaults(func=cmd_add_procedure)

    p_del = sub.add_parser("delete-procedure", help="Elimina procedura e zone")
    p_del.add_argument("procedura_id")
    p_del.set_defaults(func=cmd_delete_procedure)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    db = Database(args.database_url or settings.database_url, echo=settings.db_echo)
    try:
        init_db(db)  # garantisce tabelle
        args.func(db, args)
    except ClinicError as exc:
        print(f"Errore: {json.dumps(exc.to_dict(include_details=True), ensure_ascii=False)}")
        return 1
    finally:
        db.dispose()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
