"""Apply the bundled SQL scripts (schema and demo seed) to the configured database."""

from __future__ import annotations

import logging
import re
from contextlib import closing
from pathlib import Path
from typing import Iterator

import mysql.connector

from .connection import DBConfig

logger = logging.getLogger(__name__)

# The target database comes from DB_CONFIG, not from the script.
_DATABASE_DIRECTIVE = re.compile(r"(?im)^\s*(?:CREATE\s+DATABASE|USE)\b[^;]*;[ \t]*$")

# Quoted literals are matched whole so a ';' inside them never splits a statement.
_SQL_TOKEN = re.compile(r"""'(?:\\.|''|[^'\\])*'|"(?:\\.|[^"\\])*"|--[^\n]*|;""")


def split_sql(script: str) -> Iterator[str]:
    """Yield the statements of a script, without comments or trailing ';'."""
    script = _DATABASE_DIRECTIVE.sub("", script)
    parts: list[str] = []
    pos = 0
    for match in _SQL_TOKEN.finditer(script):
        token = match.group(0)
        if token.startswith("--"):
            parts.append(script[pos:match.start()])
            pos = match.end()
        elif token == ";":
            parts.append(script[pos:match.start()])
            pos = match.end()
            statement = "".join(parts).strip()
            parts = []
            if statement:
                yield statement
    parts.append(script[pos:])
    tail = "".join(parts).strip()
    if tail:
        yield tail


def _open(target: DBConfig, *, with_database: bool = True):
    options = {
        "host": target.host,
        "port": target.port,
        "user": target.user,
        "password": target.password,
    }
    if with_database:
        options["database"] = target.database
    return mysql.connector.connect(**options)


def _execute_script(db_config: dict, path: Path) -> int:
    statements = list(split_sql(path.read_text(encoding="utf-8")))
    with closing(_open(DBConfig.from_dict(db_config))) as conn:
        with closing(conn.cursor()) as cur:
            for statement in statements:
                cur.execute(statement)
        conn.commit()
    return len(statements)


def ensure_database_exists(db_config: dict) -> None:
    target = DBConfig.from_dict(db_config)
    with closing(_open(target, with_database=False)) as conn:
        with closing(conn.cursor()) as cur:
            cur.execute(
                f"CREATE DATABASE IF NOT EXISTS `{target.database}` "
                "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
            )
        conn.commit()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    count = _execute_script(db_config, Path(schema_path))
    logger.info("schema applied (%d statements) from %s", count, schema_path)


def apply_seed_sql(db_config: dict, *, seed_path: str | Path) -> None:
    count = _execute_script(db_config, Path(seed_path))
    logger.info("seed applied (%d statements) from %s", count, seed_path)


def list_tables(db_config: dict) -> list[str]:
    with closing(_open(DBConfig.from_dict(db_config))) as conn:
        with closing(conn.cursor()) as cur:
            cur.execute("SHOW TABLES")
            return sorted(str(row[0]) for row in cur.fetchall())
