"""
Errori applicativi.

Ogni errore porta con sé lo status HTTP con cui viene restituito al client:
- InvalidInputError      : 400, input mancante/malformato (nessun I/O eseguito)
- NotFoundError          : 404, la mutazione non ha toccato righe
- TransactionFailedError : 500, uno statement della transazione è fallito (rollback eseguito)
- InfrastructureError    : 500, connessione non ottenuta (nessuna transazione)
"""
from __future__ import annotations


class ClinicError(Exception):
    status_code: int = 500

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self, include_details: bool = False) -> dict[str, str]:
        body = {"error": self.message}
        if include_details and self.details:
            body["details"] = self.details
        return body


class InvalidInputError(ClinicError):
    status_code = 400


class NotFoundError(ClinicError):
    status_code = 404


class InfrastructureError(ClinicError):
    status_code = 500

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message, details=str(cause) if cause else None)
        self.cause = cause


class TransactionFailedError(ClinicError):
    """
    Fallimento dentro una unità di lavoro.

    `cause` è l'errore primario (quello che ha interrotto la sequenza),
    `rollback_error` l'eventuale errore secondario del rollback.
    Entrambi restano consultabili: il secondo non sostituisce mai il primo.
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        cause: BaseException,
        rollback_error: BaseException | None = None,
        always_expose_details: bool = False,
    ) -> None:
        super().__init__(message, details=str(cause))
        self.cause = cause
        self.rollback_error = rollback_error
        self.always_expose_details = always_expose_details

    def to_dict(self, include_details: bool = False) -> dict[str, str]:
        return super().to_dict(include_details or self.always_expose_details)
