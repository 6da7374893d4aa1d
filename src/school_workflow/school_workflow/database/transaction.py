from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Protocol

from .connection import DatabaseConnection
from .mysql_base import atomic


class TransactionManager(Protocol):
    """Groups repository writes into one all-or-nothing commit."""

    def atomic(self) -> AbstractContextManager[None]:
        raise NotImplementedError


class MySQLTransactionManager(TransactionManager):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def atomic(self) -> AbstractContextManager[None]:
        return atomic(self._conn_factory)
