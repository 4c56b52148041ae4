from __future__ import annotations

import json
import os
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from storefront.config import settings


def _connect() -> sqlite3.Connection:
    db_dir = os.path.dirname(settings.db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)
    conn = sqlite3.connect(settings.db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    conn = _connect()
    try:
        with open(os.path.join(os.path.dirname(__file__), "schema.sql"), "r", encoding="utf-8") as f:
            conn.executescript(f.read())
        conn.commit()
    finally:
        conn.close()


def load_blob(key: str) -> Optional[str]:
    conn = _connect()
    try:
        row = conn.execute("SELECT value FROM storage WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None
    finally:
        conn.close()


def save_blob(key: str, value: str) -> None:
    updated_at = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    conn = _connect()
    try:
        conn.execute(
            "INSERT INTO storage(key, value, updated_at) VALUES(?,?,?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at",
            (key, value, updated_at),
        )
        conn.commit()
    finally:
        conn.close()


class SqliteCartStorage:
    """
    Корзина хранится одним JSON-блобом под ключом (tmn-cart, tmn-cart:<user_id>).
    Пишем целиком при каждой мутации, last-write-wins.
    """

    def load(self, key: str) -> List[Dict[str, Any]]:
        raw = load_blob(key)
        if not raw:
            return []
        data = json.loads(raw)
        return list(data.get("cart", []))

    def save(self, key: str, rows: List[Dict[str, Any]]) -> None:
        save_blob(key, json.dumps({"cart": rows}, ensure_ascii=False))
