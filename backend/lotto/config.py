# backend/lotto/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/lotto.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///lotto.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Largest gap (ms) between two keystrokes still considered scanner input
    SCAN_MAX_KEYSTROKE_GAP_MS = float(os.environ.get("SCAN_MAX_KEYSTROKE_GAP_MS", "50"))

    # How long a prepared day close stays valid before it must be re-scanned
    PENDING_CLOSE_EXPIRY_MINUTES = int(os.environ.get("PENDING_CLOSE_EXPIRY_MINUTES", "60"))

    # Pack size used when a pack is received from a barcode alone
    DEFAULT_TICKETS_PER_PACK = int(os.environ.get("DEFAULT_TICKETS_PER_PACK", "150"))
