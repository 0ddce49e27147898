from __future__ import annotations

import hashlib
import hmac

from sefin_desk.adapters.base import TaskStore
from sefin_desk.domain.errors import NotFoundError
from sefin_desk.infra.settings import SIGNING_PIN_SALT


def hash_signing_pin(raw_pin: str, salt: str | None = None) -> str:
    effective_salt = SIGNING_PIN_SALT if salt is None else salt
    return hashlib.sha256(f"{effective_salt}:{raw_pin}".encode()).hexdigest()


class PinCredentialVerifier:
    """Checks a signing PIN against the hash stored on the approver row."""

    def __init__(self, store: TaskStore, *, salt: str | None = None) -> None:
        self._store = store
        self._salt = salt

    def verify(self, approver_id: str, credential: str) -> bool:
        if not credential:
            return False
        try:
            approver = self._store.get_approver(approver_id)
        except NotFoundError:
            return False
        if not approver.is_active or not approver.signing_pin_hash:
            return False
        candidate = hash_signing_pin(credential, self._salt)
        return hmac.compare_digest(candidate, approver.signing_pin_hash)
