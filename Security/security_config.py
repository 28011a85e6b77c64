"""
SECURITY CONFIG
===============
Centralized security settings loaded from environment.
"""

# FLOW:
# - Pick the active env file, load it once and expose SECURITY_SETTINGS.
# WHY:
# - Centralizes secrets and tuning per environment.
# HOW:
# - python-dotenv loads the file, os.getenv reads individual values.

from __future__ import annotations

import logging
import os

import dotenv


def get_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).strip().lower() in {"true", "1", "yes"}


def get_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def get_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return default
    return [item.strip() for item in raw.split(",") if item.strip()]


def _root() -> str:
    return os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _env_name() -> str:
    env = os.getenv("APP_ENV", "").strip().lower()
    if env in {"prod", "production"}:
        return ".env.production"
    if env in {"local", "localhost", "dev", "development"}:
        return ".env.localhost"

    # Auto-select based on ENV_ACTIVE flag if APP_ENV is not set
    prod_path = os.path.join(_root(), ".env.production")

    def _is_active(path: str) -> bool:
        if not os.path.exists(path):
            return False
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip().startswith("ENV_ACTIVE="):
                    return line.split("=", 1)[1].strip().strip('"').lower() == "true"
        return False

    if _is_active(prod_path):
        return ".env.production"
    return ".env.localhost"


def env_path() -> str:
    return os.path.join(_root(), _env_name())


def load_environment() -> str:
    """Load the active env file plus .env.local; real env vars always win."""
    path = env_path()
    dotenv.load_dotenv(path)
    dotenv.load_dotenv(os.path.join(_root(), ".env.local"))
    return path


load_environment()

# Optional startup log
if os.getenv("APP_ENV_LOG", "false").lower() == "true":
    logging.getLogger("security.env").info("Active env file: %s", env_path())

SECURITY_SETTINGS = {
    "DOWNLOAD_PASSWORD": os.getenv("DOWNLOAD_PASSWORD", ""),
    "MAX_UPLOAD_BYTES": get_int("MAX_UPLOAD_BYTES", 5 * 1024 * 1024),
    "CORS_ORIGINS": get_list("CORS_ORIGINS", ["http://localhost", "http://127.0.0.1"]),
}


def feature_enabled(name: str, default: bool = True) -> bool:
    """FEATURE_<NAME> env flag, e.g. FEATURE_AUDIT_TRAIL=false."""
    env_name = "FEATURE_" + name.upper().replace("-", "_").replace(".", "_")
    return get_bool(env_name, default)


def download_password() -> str:
    return os.getenv("DOWNLOAD_PASSWORD", SECURITY_SETTINGS["DOWNLOAD_PASSWORD"])
