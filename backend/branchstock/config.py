# backend/branchstock/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/branchstock.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///branchstock.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # bcrypt cost factor for password hashes
    BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)

    # List endpoints: ?page=&limit=
    DEFAULT_PAGE_LIMIT = _env_int("DEFAULT_PAGE_LIMIT", 10)
    MAX_PAGE_LIMIT = _env_int("MAX_PAGE_LIMIT", 100)

    CORS_ORIGINS = tuple(
        origin.strip().rstrip("/")
        for origin in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    )
