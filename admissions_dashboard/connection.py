"""
Database connection handling for the login dialog.

The dashboard can talk to SQLite, MySQL, MariaDB and PostgreSQL. Each
database type maps to a DB-API driver module which is imported only
when the user actually connects with it, so the MySQL and PostgreSQL
drivers are optional installs (``pip install admissions-dashboard[mysql]``
or ``[postgres]``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from importlib import import_module
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class DashboardConnectionError(Exception):
    """Raised when the dashboard cannot open a database connection."""


class DriverNotFoundError(DashboardConnectionError):
    """The DB-API driver for the selected database type is not installed."""


class ConnectionFailedError(DashboardConnectionError):
    """The driver is available but refused to connect."""


@dataclass(frozen=True)
class Driver:
    module: str
    scheme: str
    default_port: Optional[int]
    extra: Optional[str] = None


DRIVERS: Dict[str, Driver] = {
    "SQLite": Driver("sqlite3", "sqlite", None),
    "MySQL": Driver("pymysql", "mysql", 3306, "mysql"),
    "MariaDB": Driver("pymysql", "mariadb", 3306, "mysql"),
    "PostgreSQL": Driver("psycopg2", "postgresql", 5432, "postgres"),
}


def get_driver(db_type: str) -> Driver:
    try:
        return DRIVERS[db_type]
    except KeyError:
        raise ValueError(f"Unknown database type {db_type!r}; expected one of {', '.join(DRIVERS)}") from None


@dataclass
class ConnectionSettings:
    """What the user typed into the login dialog."""

    db_type: str = "MySQL"
    host: str = "localhost"
    port: Optional[int] = 3306
    database: str = "University_admissions"
    user: str = "root"
    password: str = ""

    @classmethod
    def from_settings(cls, settings) -> "ConnectionSettings":
        return cls(
            db_type=settings.db_type,
            host=settings.host,
            port=settings.port,
            database=settings.database,
            user=settings.user,
        )

    @property
    def driver(self) -> Driver:
        return get_driver(self.db_type)

    @property
    def effective_port(self) -> Optional[int]:
        return self.port or self.driver.default_port


def describe(settings: ConnectionSettings) -> str:
    """Return a URL-like description of ``settings`` without the password."""
    driver = settings.driver
    if driver.module == "sqlite3":
        return f"sqlite:///{settings.database}"
    user = f"{settings.user}@" if settings.user else ""
    return f"{driver.scheme}://{user}{settings.host}:{settings.effective_port}/{settings.database}"


def _connect_kwargs(settings: ConnectionSettings) -> dict:
    if settings.driver.module == "psycopg2":
        return {
            "host": settings.host,
            "port": settings.effective_port,
            "dbname": settings.database,
            "user": settings.user,
            "password": settings.password,
        }
    return {
        "host": settings.host,
        "port": settings.effective_port,
        "database": settings.database,
        "user": settings.user,
        "password": settings.password,
    }


def connect(settings: ConnectionSettings):
    """
    Open a DB-API connection for ``settings``.

    Raises
    ------
    ValueError
        If ``settings.db_type`` is not a known database type.
    DriverNotFoundError
        If the driver module for the database type is not installed.
    ConnectionFailedError
        If the driver could not connect.
    """
    driver = settings.driver
    try:
        module = import_module(driver.module)
    except ImportError as exc:
        hint = f" (pip install admissions-dashboard[{driver.extra}])" if driver.extra else ""
        raise DriverNotFoundError(f"Database driver not found: {driver.module}{hint}") from exc

    target = describe(settings)
    logger.info("Connecting to %s", target)
    try:
        if driver.module == "sqlite3":
            # The CSV import runs on a worker thread.
            conn = module.connect(settings.database, check_same_thread=False)
        else:
            conn = module.connect(**_connect_kwargs(settings))
    except Exception as exc:
        raise ConnectionFailedError(f"Failed to connect to {target}: {exc}") from exc
    logger.info("Connected to %s", target)
    return conn
