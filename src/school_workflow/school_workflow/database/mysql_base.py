from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .connection import DatabaseConnection

_local = threading.local()


def _active_unit() -> Optional[Tuple[Any, Any]]:
    return getattr(_local, "unit", None)


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True) -> Iterator[Tuple[Any, Any]]:
    """Yield ``(conn, cursor)`` and commit on success, roll back on error.

    Inside :func:`atomic` the active connection is reused and nothing is
    committed here; the outermost unit commits once.
    """
    unit = _active_unit()
    if unit is not None:
        yield unit
        return

    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@contextmanager
def atomic(conn_factory: DatabaseConnection) -> Iterator[None]:
    """Run every repository call in the block on one connection and one commit."""
    if _active_unit() is not None:
        yield
        return

    with db_cursor(conn_factory) as unit:
        _local.unit = unit
        try:
            yield
        finally:
            _local.unit = None


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])
