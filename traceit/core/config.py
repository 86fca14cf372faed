import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"
DATA_DIR.mkdir(exist_ok=True)

DB_PATH = os.getenv("TRACEIT_DB_PATH", str(DATA_DIR / "traceit.db"))
LOG_PATH = os.getenv("TRACEIT_LOG_PATH", str(DATA_DIR / "traceit.log"))

# Remote libSQL store; both must be set for it to be selected
TURSO_DATABASE_URL = os.getenv("TURSO_DATABASE_URL") or None
TURSO_AUTH_TOKEN = os.getenv("TURSO_AUTH_TOKEN") or None

ID_LENGTH = int(os.getenv("TRACEIT_ID_LENGTH", "6"))

LOG_LEVEL = os.getenv("TRACEIT_LOG_LEVEL", "INFO").upper()

# Seconds; unset means remote calls wait as long as the store takes
_remote_timeout = os.getenv("TRACEIT_REMOTE_TIMEOUT")
REMOTE_TIMEOUT = float(_remote_timeout) if _remote_timeout else None
