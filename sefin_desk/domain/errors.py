from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"
    INVALID_STATE = "INVALID_STATE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    STORE_ERROR = "STORE_ERROR"


class SigningDeskError(Exception):
    kind: ErrorKind = ErrorKind.STORE_ERROR


class InvalidCredentialError(SigningDeskError):
    kind = ErrorKind.INVALID_CREDENTIAL


class InvalidStateError(SigningDeskError):
    kind = ErrorKind.INVALID_STATE


class ValidationError(SigningDeskError):
    kind = ErrorKind.VALIDATION_ERROR


class NotFoundError(SigningDeskError):
    kind = ErrorKind.NOT_FOUND


class StoreError(SigningDeskError):
    kind = ErrorKind.STORE_ERROR
