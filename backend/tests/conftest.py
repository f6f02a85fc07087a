"""Test configuration: run against SQLite instead of the default PostgreSQL URL."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
