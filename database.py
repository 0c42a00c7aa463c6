"""
database.py - Database access layer for link lists and link health.

This module encapsulates all direct interactions with PostgreSQL, including
schema management and the keyed reads/writes used by the validation pipeline.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2.extras import RealDictCursor

from config import Config

logger = logging.getLogger(__name__)

config = Config()

DATABASE_URL = config.database_url

LINK_COLUMNS = """
    id, list_id, url, title, description, order_index, favicon_url,
    og_image_url, content_type, status, last_validated_at, created_at, updated_at
"""


@contextmanager
def _connection():
    """Context manager that yields a PostgreSQL connection."""
    conn = psycopg2.connect(DATABASE_URL)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def _cursor(*, commit: bool = False, dict_cursor: bool = False):
    """
    Context manager that yields a cursor and automatically handles commits/rollbacks.
    """
    cursor_factory = RealDictCursor if dict_cursor else None
    with _connection() as conn:
        cur = conn.cursor(cursor_factory=cursor_factory)
        try:
            yield cur
            if commit:
                conn.commit()
        except Exception:
            conn.rollback()
            logger.exception("Database error")
            raise
        finally:
            cur.close()


def create_tables(reset: bool = False) -> None:
    """
    Creates the PostgreSQL schema required for link lists and validation.

    Args:
        reset: When True, drops existing tables before recreating them.
    """
    with _connection() as conn:
        cur = conn.cursor()
        try:
            if reset:
                logger.warning("Resetting database schema for link lists.")
                cur.execute("DROP TABLE IF EXISTS links, link_lists CASCADE;")

            # gen_random_uuid() is built in from PostgreSQL 13.
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS link_lists (
                    id           UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                    user_id      TEXT,
                    slug         TEXT UNIQUE,
                    title        TEXT,
                    description  TEXT,
                    is_published BOOLEAN DEFAULT FALSE,
                    created_at   TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
                    updated_at   TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
                );
                """
            )

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS links (
                    id                UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                    list_id           UUID REFERENCES link_lists(id) ON DELETE CASCADE,
                    url               TEXT NOT NULL,
                    title             TEXT,
                    description       TEXT,
                    order_index       INT NOT NULL DEFAULT 0,
                    favicon_url       TEXT,
                    og_image_url      TEXT,
                    content_type      VARCHAR(255),
                    status            VARCHAR(20),
                    last_validated_at TIMESTAMP WITH TIME ZONE,
                    created_at        TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
                    updated_at        TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
                );
                """
            )

            # Ensure validation columns exist even if the table predates them.
            for column, column_type in (
                ("favicon_url", "TEXT"),
                ("og_image_url", "TEXT"),
                ("content_type", "VARCHAR(255)"),
                ("status", "VARCHAR(20)"),
                ("last_validated_at", "TIMESTAMP WITH TIME ZONE"),
            ):
                cur.execute(f"ALTER TABLE links ADD COLUMN IF NOT EXISTS {column} {column_type};")

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_links_list_order ON links (list_id, order_index);"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_links_last_validated ON links (last_validated_at NULLS FIRST);"
            )

            conn.commit()
        finally:
            cur.close()


def get_links_for_list(list_id: str) -> List[Dict[str, Any]]:
    """Returns every link of a list in display order."""
    with _cursor(dict_cursor=True) as cur:
        cur.execute(
            """
            SELECT id, url
            FROM links
            WHERE list_id = %s
            ORDER BY order_index;
            """,
            (list_id,),
        )
        return cur.fetchall()


def get_stale_links(batch_size: int, stale_after_hours: int) -> List[Dict[str, Any]]:
    """Links never validated or validated too long ago, oldest first."""
    with _cursor(dict_cursor=True) as cur:
        cur.execute(
            """
            SELECT id, url
            FROM links
            WHERE last_validated_at IS NULL
               OR last_validated_at < NOW() - make_interval(hours => %s)
            ORDER BY last_validated_at ASC NULLS FIRST
            LIMIT %s;
            """,
            (stale_after_hours, batch_size),
        )
        return cur.fetchall()


def update_link_status(link_id: str, status: str, validated_at: Optional[datetime] = None) -> None:
    """Writes a validation result; status and timestamp always change together."""
    with _cursor(commit=True) as cur:
        cur.execute(
            """
            UPDATE links
            SET status            = %s,
                last_validated_at = COALESCE(%s, CURRENT_TIMESTAMP)
            WHERE id = %s;
            """,
            (status, validated_at, link_id),
        )


def get_status_counts(list_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Groups links by status for a list, or for all links when ``list_id`` is None.

    Each row carries ``status``, ``count`` and ``last_validated``.
    """
    where_clause = "WHERE list_id = %s" if list_id else ""
    params = (list_id,) if list_id else ()

    with _cursor(dict_cursor=True) as cur:
        cur.execute(
            f"""
            SELECT status, COUNT(*) AS count, MAX(last_validated_at) AS last_validated
            FROM links
            {where_clause}
            GROUP BY status;
            """,
            params,
        )
        return cur.fetchall()


def get_next_order_index(list_id: str) -> int:
    with _cursor(dict_cursor=True) as cur:
        cur.execute(
            "SELECT COALESCE(MAX(order_index), -1) AS max_order FROM links WHERE list_id = %s;",
            (list_id,),
        )
        row = cur.fetchone()
        return (row["max_order"] if row else -1) + 1


def add_link(list_id: str, url: str, metadata: Dict[str, Any], order_index: int) -> Dict[str, Any]:
    """Inserts a link with its extracted metadata and validation result."""
    with _cursor(commit=True, dict_cursor=True) as cur:
        cur.execute(
            f"""
            INSERT INTO links (
                list_id, url, title, description, order_index, favicon_url,
                og_image_url, content_type, status, last_validated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {LINK_COLUMNS};
            """,
            (
                list_id,
                url,
                metadata.get("title"),
                metadata.get("description"),
                order_index,
                metadata.get("favicon_url"),
                metadata.get("og_image_url"),
                metadata.get("content_type"),
                metadata.get("status"),
                metadata.get("validated_at"),
            ),
        )
        return cur.fetchone()


def update_link_metadata(link_id: str, metadata: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Overwrites the display metadata and validation result of a link."""
    with _cursor(commit=True, dict_cursor=True) as cur:
        cur.execute(
            f"""
            UPDATE links
            SET title             = %s,
                description       = %s,
                favicon_url       = %s,
                og_image_url      = %s,
                content_type      = %s,
                status            = %s,
                last_validated_at = COALESCE(%s, CURRENT_TIMESTAMP),
                updated_at        = CURRENT_TIMESTAMP
            WHERE id = %s
            RETURNING {LINK_COLUMNS};
            """,
            (
                metadata.get("title"),
                metadata.get("description"),
                metadata.get("favicon_url"),
                metadata.get("og_image_url"),
                metadata.get("content_type"),
                metadata.get("status"),
                metadata.get("validated_at"),
                link_id,
            ),
        )
        return cur.fetchone()


def get_link_by_id(link_id: str) -> Optional[Dict[str, Any]]:
    """Fetches a single link by primary key."""
    with _cursor(dict_cursor=True) as cur:
        cur.execute(
            f"SELECT {LINK_COLUMNS} FROM links WHERE id = %s;",
            (link_id,),
        )
        return cur.fetchone()


if __name__ == "__main__":
    create_tables()
    print("Database tables for link lists created successfully.")
