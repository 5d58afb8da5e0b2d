# empires/config.py
from __future__ import annotations

import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent

DATA_DIR = PROJECT_ROOT / "data"

# Default to a local SQLite file; any SQLAlchemy URL works (e.g. a hosted Postgres)
DATABASE_URL: str = os.getenv("EMPIRES_DATABASE_URL", "")
if not DATABASE_URL:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    DATABASE_URL = f"sqlite:///{(DATA_DIR / 'empires.db').as_posix()}"

# Admin override key (single source of truth)
ADMIN_KEY: str = os.getenv("ADMIN_KEY", "")

# Tick-on-read: reconcile resources + finish due constructions before serving reads
TICK_ON_READ: bool = os.getenv("EMPIRES_TICK_ON_READ", "1") == "1"
TICK_THROTTLE_SECONDS: int = int(os.getenv("EMPIRES_TICK_THROTTLE_SECONDS", "1"))

LOG_LEVEL: str = os.getenv("EMPIRES_LOG_LEVEL", "INFO")

# Balance switches. "linear" / "max" are canonical; the others are kept for comparison.
PRODUCTION_FORMULA: str = os.getenv("EMPIRES_PRODUCTION_FORMULA", "linear").strip().lower()
STORAGE_AGGREGATION: str = os.getenv("EMPIRES_STORAGE_AGGREGATION", "max").strip().lower()
