"""Account storage backed by a MySQL ``user`` table."""

from __future__ import annotations

import sys
from typing import Any

import pymysql

from epollweb.log import Logger

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3306
DEFAULT_USER = "root"
DEFAULT_DATABASE = "WebServer_DB"
PASSWORD = "password"

_INSERT_SQL = "INSERT INTO user (username, password) VALUES (%s, %s)"
_SELECT_SQL = "SELECT password FROM user WHERE username = %s"


class UserStore:
    """Registers and verifies users in the ``user`` table.

    A failed connection is reported on stderr; every later operation then
    reports failure by returning False.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        user: str = DEFAULT_USER,
        password: str = PASSWORD,
        database: str = DEFAULT_DATABASE,
        port: int = DEFAULT_PORT,
        *,
        connection: Any = None,
    ) -> None:
        self._conn: Any = connection
        if connection is not None:
            return
        try:
            self._conn = pymysql.connect(
                host=host,
                user=user,
                password=password,
                database=database,
                port=port,
                autocommit=True,
            )
        except pymysql.MySQLError as exc:
            print("MySQL connection error:", file=sys.stderr)
            print(f"Message: {exc}", file=sys.stderr)
            self._conn = None
        else:
            Logger.get_instance().log("INFO", "MySQL connection successful!")

    @property
    def connected(self) -> bool:
        return self._conn is not None

    def insert_user(self, username: str, password: str) -> bool:
        """Add a user; False if the insert fails (for example a duplicate)."""
        if self._conn is None:
            print("Insert failed: no database connection", file=sys.stderr)
            return False
        try:
            with self._conn.cursor() as cursor:
                cursor.execute(_INSERT_SQL, (username, password))
            self._conn.commit()
        except pymysql.MySQLError as exc:
            print(f"Insert failed: {exc}", file=sys.stderr)
            return False
        return True

    def verify_user(self, username: str, password: str) -> bool:
        """True when the user exists and the stored password matches."""
        if self._conn is None:
            print("Verification failed: no database connection", file=sys.stderr)
            return False
        try:
            with self._conn.cursor() as cursor:
                cursor.execute(_SELECT_SQL, (username,))
                row = cursor.fetchone()
        except pymysql.MySQLError as exc:
            print(f"Verification failed: {exc}", file=sys.stderr)
            return False
        return row is not None and row[0] == password

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> UserStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()