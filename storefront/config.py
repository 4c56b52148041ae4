from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]  # .../storefront repo root
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
    bot_token: str
    admin_id: int
    db_path: str
    export_dir: str
    currency: str
    decimals: int
    default_price: float
    paypal_client_id: str
    paypal_client_secret: str
    paypal_env: str
    app_url: str
    home_url: str
    brand_name: str
    log_level: str

    @property
    def is_live(self) -> bool:
        return self.paypal_env == "live"


settings = Settings(
    bot_token=_get_env("BOT_TOKEN", "TELEGRAM_BOT_TOKEN", default="") or "",
    admin_id=_get_int("ADMIN_ID", "ADMIN_TG_ID", default=0) or 0,
    db_path=_get_path("DB_PATH", "DATABASE_PATH", default=str(ROOT_DIR / "data" / "shop.db")),
    export_dir=_get_path("EXPORT_DIR", default=str(ROOT_DIR / "exports")),
    currency=_get_env("CURRENCY", default="USD") or "USD",
    decimals=_get_int("DECIMALS", default=2) or 2,
    default_price=_get_float("DEFAULT_PRICE", default=10.0) or 10.0,
    paypal_client_id=_get_env("PAYPAL_CLIENT_ID", "PAYPAL_ID", default="") or "",
    paypal_client_secret=_get_env("PAYPAL_CLIENT_SECRET", "PAYPAL_SECRET", default="") or "",
    paypal_env=(_get_env("PAYPAL_ENV", default="sandbox") or "sandbox").lower(),
    app_url=(_get_env("APP_URL", default="http://localhost:8000") or "").rstrip("/"),
    home_url=_get_env("HOME_URL", default="https://themiracle.love") or "https://themiracle.love",
    brand_name=_get_env("BRAND_NAME", default="The Miracle") or "The Miracle",
    log_level=(_get_env("LOG_LEVEL", default="INFO") or "INFO").upper(),
)
