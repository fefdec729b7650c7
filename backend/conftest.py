"""Pytest setup shared by every backend test run.

Lives at the backend/ root so it is loaded before any test module imports
roomshare, which builds its database engine from DATABASE_URL at import time.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "test")
