"""Root conftest — shared test configuration."""

import os

# Route tests override get_db; this only keeps Settings() import-safe
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
os.environ.setdefault("LOG_FORMAT", "text")
