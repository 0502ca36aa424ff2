"""SectorBoard configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _default_functions_url(backend_url: str) -> str:
    if backend_url.startswith(("http://", "https://")):
        return backend_url.rstrip("/") + "/functions/v1"
    return ""


# Project root (one level up from sectorboard/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Backend (both required at startup, see require_backend_settings)
BACKEND_URL = os.getenv("SECTORBOARD_BACKEND_URL", "")
API_KEY = os.getenv("SECTORBOARD_API_KEY", "")
FUNCTIONS_URL = os.getenv("SECTORBOARD_FUNCTIONS_URL", _default_functions_url(BACKEND_URL))
FUNCTIONS_TIMEOUT_SECONDS = _env_int("SECTORBOARD_FUNCTIONS_TIMEOUT_SECONDS", 10)

# Session persistence
SESSION_FILE = Path(os.getenv("SECTORBOARD_SESSION_FILE", str(PROJECT_ROOT / "data" / "session.json")))

# Client-side synchronization tuning
REALTIME_DEBOUNCE_MS = _env_int("SECTORBOARD_REALTIME_DEBOUNCE_MS", 500)
SEARCH_DEBOUNCE_MS = _env_int("SECTORBOARD_SEARCH_DEBOUNCE_MS", 300)
SEARCH_LIMIT = _env_int("SECTORBOARD_SEARCH_LIMIT", 20)
INVITATION_TTL_DAYS = _env_int("SECTORBOARD_INVITATION_TTL_DAYS", 7)
CHANGE_CHANNEL = os.getenv("SECTORBOARD_CHANGE_CHANNEL", "sectorboard_changes")

# Observability
OTEL_ENABLED = _env_bool("SECTORBOARD_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("SECTORBOARD_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("SECTORBOARD_OTEL_SERVICE_NAME", "sectorboard")
PROM_PORT = _env_int("SECTORBOARD_PROM_PORT", 9464)

# Server settings
HOST = os.getenv("SECTORBOARD_HOST", "127.0.0.1")
PORT = int(os.getenv("SECTORBOARD_PORT", "8000"))

# CORS
FRONTEND_ORIGIN = os.getenv("SECTORBOARD_FRONTEND_ORIGIN", "http://localhost:5173")


def backend_kind(url: str | None = None) -> str:
    """Return "postgres" or "sqlite" for a backend URL."""
    value = (BACKEND_URL if url is None else url).strip()
    if value.startswith(("postgres://", "postgresql://")):
        return "postgres"
    return "sqlite"


def sqlite_path(url: str | None = None) -> str:
    value = (BACKEND_URL if url is None else url).strip()
    if value.startswith("sqlite:///"):
        return value[len("sqlite:///"):]
    if value.startswith("sqlite://"):
        return value[len("sqlite://"):] or ":memory:"
    return value or ":memory:"


def require_backend_settings() -> None:
    """Fail startup when the backend endpoint or API key is missing."""
    from sectorboard.errors import ConfigError

    missing = [
        name
        for name, value in (
            ("SECTORBOARD_BACKEND_URL", BACKEND_URL),
            ("SECTORBOARD_API_KEY", API_KEY),
        )
        if not (value or "").strip()
    ]
    if missing:
        raise ConfigError(f"Missing required settings: {', '.join(missing)}")
