from __future__ import annotations

import os

OPERATIONAL_UNIT = os.getenv("SEFIN_OPERATIONAL_UNIT", "SOSFU")
LEGAL_UNIT = os.getenv("SEFIN_LEGAL_UNIT", "AJSEFIN")

SIGNING_PIN_SALT = os.getenv("SIGNING_PIN_SALT", "sefin-dev-salt")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "readable")
