"""SQLite cache for fetched offer payloads (4-hour TTL)."""

import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

CACHE_DIR = Path.home() / ".casino-offers"
CACHE_FILE = CACHE_DIR / "cache.db"
DEFAULT_TTL = 4 * 60 * 60  # 4 hours in seconds


def _get_conn() -> sqlite3.Connection:
    CACHE_DIR.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(CACHE_FILE)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS cache (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            stored_at REAL NOT NULL,
            expires_at REAL NOT NULL
        )
    """)
    conn.commit()
    return conn


def get(key: str) -> Optional[Any]:
    """Return the cached value, or None when missing, expired or unreadable."""
    try:
        conn = _get_conn()
        row = conn.execute(
            "SELECT value, expires_at FROM cache WHERE key = ?", (key,)
        ).fetchone()
        conn.close()
    except sqlite3.Error as e:
        logger.warning(f"Cache get error: {e}")
        return None

    if row is None:
        return None
    value_str, expires_at = row
    if time.time() > expires_at:
        return None
    try:
        return json.loads(value_str)
    except ValueError as e:
        logger.warning(f"Cache entry {key} is corrupt: {e}")
        return None


def set(key: str, value: Any, ttl: int = DEFAULT_TTL) -> None:
    """Store a JSON-serializable value for ``ttl`` seconds."""
    now = time.time()
    try:
        conn = _get_conn()
        conn.execute(
            "INSERT OR REPLACE INTO cache (key, value, stored_at, expires_at) VALUES (?, ?, ?, ?)",
            (key, json.dumps(value), now, now + ttl),
        )
        conn.commit()
        conn.close()
    except (sqlite3.Error, TypeError) as e:
        logger.warning(f"Cache set error: {e}")


def clear_expired() -> int:
    """Remove expired entries. Returns how many were removed."""
    try:
        conn = _get_conn()
        cursor = conn.execute("DELETE FROM cache WHERE expires_at < ?", (time.time(),))
        count = cursor.rowcount
        conn.commit()
        conn.close()
        return count
    except sqlite3.Error as e:
        logger.warning(f"Cache clear error: {e}")
        return 0


def clear_all() -> None:
    try:
        conn = _get_conn()
        conn.execute("DELETE FROM cache")
        conn.commit()
        conn.close()
    except sqlite3.Error as e:
        logger.warning(f"Cache clear_all error: {e}")


def list_entries() -> list[tuple[str, float, float]]:
    """Live (unexpired) entries as (key, stored_at, expires_at), oldest first."""
    try:
        conn = _get_conn()
        rows = conn.execute(
            "SELECT key, stored_at, expires_at FROM cache WHERE expires_at >= ? ORDER BY stored_at",
            (time.time(),),
        ).fetchall()
        conn.close()
        return rows
    except sqlite3.Error as e:
        logger.warning(f"Cache list error: {e}")
        return []


def make_key(username: str, brand: str = "R") -> str:
    return f"offers_{brand.upper()}_{username.strip().lower()}"
