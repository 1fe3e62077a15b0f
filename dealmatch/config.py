"""Runtime settings read from the environment."""
from __future__ import annotations

import os
from pathlib import Path

DATA_DIR = Path(__file__).parent / "data"

DB_URL = os.environ.get("DEALMATCH_DB_URL", "")

# Minimum viable compatibility; candidates below this are never persisted.
MIN_MATCH_SCORE = int(os.environ.get("DEALMATCH_MIN_SCORE", "30"))
MAX_GENERATED_MATCHES = int(os.environ.get("DEALMATCH_MAX_GENERATED", "20"))
MAX_PREVIEW_MATCHES = int(os.environ.get("DEALMATCH_MAX_PREVIEW", "50"))

HOST = os.environ.get("DEALMATCH_HOST", "127.0.0.1")
PORT = int(os.environ.get("DEALMATCH_PORT", "8001"))
