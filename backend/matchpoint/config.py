import os

def _canon_key(val):
    """
    Normalize the persisted-state key:
      - defaults to 'tennis-match-storage' when unset/empty
      - strips surrounding whitespace
    """
    val = (val or "").strip()
    return val or "tennis-match-storage"

STORAGE_KEY = _canon_key(os.getenv("MATCHPOINT_STORAGE_KEY"))

# Bump together with a new entry in services.migrations.MIGRATIONS.
SCHEMA_VERSION = 1

DATABASE_URL = os.getenv("DATABASE_URL") or None
REDIS_URL = os.getenv("REDIS_URL") or "redis://localhost:6379"

SETS_TO_WIN = 2
MAX_SETS = 3
