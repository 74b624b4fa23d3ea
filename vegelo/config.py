from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]  # .../vegelo-storefront
load_dotenv(dotenv_path=ROOT_DIR / ".env")


def _get_env(*keys: str, default: str | None = None) -> str | None:
    for k in keys:
        v = os.getenv(k)
        if v is not None and str(v).strip() != "":
            return v.strip()
    return default


def _get_int(*keys: str, default: int | None = None) -> int | None:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return int(v)


def _get_float(*keys: str, default: float | None = None) -> float | None:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return float(v.replace(",", "."))


def _get_path(*keys: str, default: str) -> str:
    v = _get_env(*keys, default=default)
    return str(v)


@dataclass(frozen=True)
class Settings:
    remote_url: str
    db_path: str
    export_dir: str
    currency: str
    decimals: int
    settle_delay: float
    request_timeout: float
    fetch_retries: int
    retry_backoff: float
    admin_password: str
    web_host: str
    web_port: int


settings = Settings(
    remote_url=_get_env("REMOTE_URL", "SCRIPT_URL", "GOOGLE_SCRIPT_URL", default="") or "",
    db_path=_get_path("DB_PATH", "CACHE_PATH", default=str(ROOT_DIR / "data" / "vegelo.db")),
    export_dir=_get_path("EXPORT_DIR", default=str(ROOT_DIR / "exports")),
    currency=_get_env("CURRENCY", default="Rs.") or "Rs.",
    decimals=_get_int("DECIMALS", default=2) or 2,
    settle_delay=_get_float("SETTLE_DELAY", default=1.0),
    request_timeout=_get_float("REQUEST_TIMEOUT", "HTTP_TIMEOUT", default=15.0),
    fetch_retries=_get_int("FETCH_RETRIES", default=2),
    retry_backoff=_get_float("RETRY_BACKOFF", default=0.5),
    admin_password=_get_env("ADMIN_PASSWORD", default="VegeloAdmin2025!") or "",
    web_host=_get_env("WEB_HOST", "HOST", default="127.0.0.1") or "127.0.0.1",
    web_port=_get_int("WEB_PORT", "PORT", default=8000) or 8000,
)

if settings.request_timeout <= 0:
    raise RuntimeError("REQUEST_TIMEOUT must be > 0. A hung request would leave the catalog loading forever")
