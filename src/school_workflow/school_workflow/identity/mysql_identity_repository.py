from __future__ import annotations

import hashlib
from typing import Optional

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone
from .model import Actor
from .repository import IdentityRepository


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class MySQLIdentityRepository(IdentityRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def resolve_token(self, token: str) -> Optional[Actor]:
        if not token:
            return None
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT u.user_id, u.name, u.role, u.can_review_achievements
                FROM api_tokens t
                JOIN users u ON u.user_id = t.user_id
                WHERE t.token_hash=%s AND t.revoked_at IS NULL AND u.is_active=1
                """,
                (hash_token(token),),
            )
            row = fetchone(cur)
            if not row:
                return None
            return Actor.for_role(
                int(row["user_id"]),
                Role(row["role"]),
                can_review_achievements=bool(row.get("can_review_achievements")),
                name=row.get("name") or "",
            )
