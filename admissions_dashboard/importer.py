"""
Bulk import of CSV files into the admissions tables.

This module defines ``CsvTableImporter`` which loads a comma separated
file into an existing table of an already open DB-API 2.0 connection.
The first line of the file names the destination columns; every other
line becomes one inserted row. Rows are sent to the database in
batches with ``executemany`` and the whole file is written inside one
transaction: either every row of the file is committed or none is.

The file format is deliberately simple and matches what the dashboard
has always accepted:

* fields are separated by a single comma, there is no quoting or
  escaping, so a value can never contain a comma;
* a field whose trimmed text is ``NULL`` (in any case) is stored as
  SQL ``NULL``, as are missing trailing fields;
* a line that is empty or only whitespace is skipped: it inserts no
  row and does not count towards ``rows_imported``;
* values are passed to the database as text, the database performs
  any type conversion.

Column and table names are interpolated into the ``INSERT`` statement
as written. Headers coming from untrusted files should be imported
with ``strict_identifiers=True``, which only accepts plain identifiers.
"""

from __future__ import annotations

import logging
import re
import sqlite3
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence, TextIO, Tuple, Union

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500
DELIMITER = ","
NULL_TOKEN = "null"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_LEGACY_TRANSACTION_CONTROL = getattr(sqlite3, "LEGACY_TRANSACTION_CONTROL", -1)


# ----------------------------------------------------------------------
# Errors and results
# ----------------------------------------------------------------------
class CsvImportError(Exception):
    """Base class for every failure reported by the importer."""

    kind = "ImportError"


class SourceFileNotFoundError(CsvImportError):
    """The source path is not a readable file."""

    kind = "FileNotFound"


class EmptyFileError(CsvImportError):
    """The file has no header line naming the columns."""

    kind = "EmptyFile"


class ReadFailureError(CsvImportError):
    """Reading or decoding the file failed part way through."""

    kind = "ReadFailure"


class WriteFailureError(CsvImportError):
    """The database rejected a statement or the connection was lost."""

    kind = "WriteFailure"


class InvalidIdentifierError(CsvImportError):
    """A table or column name is not a plain SQL identifier."""

    kind = "InvalidIdentifier"


@dataclass(frozen=True)
class ImportSuccess:
    """All rows of ``file_name`` were committed to ``table_name``."""

    file_name: str
    table_name: str
    rows_imported: int
    batches: int = 0

    ok = True

    def summary(self) -> str:
        return f"Imported {self.rows_imported} rows from {self.file_name} into table {self.table_name}"


@dataclass(frozen=True)
class ImportFailure:
    """Nothing from ``file_name`` was committed; ``error`` says why."""

    file_name: str
    table_name: str
    error: CsvImportError

    ok = False

    @property
    def kind(self) -> str:
        return self.error.kind

    @property
    def cause(self) -> str:
        return str(self.error)

    def summary(self) -> str:
        return f"Failed to import {self.file_name} into table {self.table_name}: {self.error}"


ImportResult = Union[ImportSuccess, ImportFailure]
Row = Tuple[Optional[str], ...]


# ----------------------------------------------------------------------
# Parsing helpers
# ----------------------------------------------------------------------
def split_fields(line: str) -> List[str]:
    """Split one line on commas.

    Trailing empty fields are dropped, so ``"1,Bob,"`` has two fields
    and the third column of that row is bound as ``NULL``.
    """
    fields = line.split(DELIMITER)
    while fields and fields[-1] == "":
        fields.pop()
    return fields


def parse_header(line: str) -> List[str]:
    """Return the trimmed column names of a header line."""
    columns = [name.strip() for name in split_fields(line.rstrip("\r\n"))]
    if not any(columns):
        raise EmptyFileError("CSV header does not name any columns")
    return columns


def bind_values(line: str, width: int) -> Row:
    """Map the fields of a data line onto ``width`` positional values.

    Missing fields and ``NULL`` literals become ``None``; fields beyond
    ``width`` are ignored. Values are trimmed but otherwise left as text.
    """
    fields = split_fields(line)
    values: List[Optional[str]] = []
    for index in range(width):
        value = fields[index].strip() if index < len(fields) else None
        if value is not None and value.lower() == NULL_TOKEN:
            value = None
        values.append(value)
    return tuple(values)


# ----------------------------------------------------------------------
# Statement construction
# ----------------------------------------------------------------------
def driver_paramstyle(connection) -> str:
    """Return the DB-API ``paramstyle`` of the module that made ``connection``."""
    module = sys.modules.get(type(connection).__module__.partition(".")[0])
    return getattr(module, "paramstyle", "qmark")


def placeholders(paramstyle: str, count: int) -> List[str]:
    if paramstyle == "qmark":
        return ["?"] * count
    if paramstyle in ("format", "pyformat"):
        return ["%s"] * count
    if paramstyle == "numeric":
        return [f":{position}" for position in range(1, count + 1)]
    raise ValueError(f"Unsupported DB-API paramstyle: {paramstyle!r}")


def build_insert_statement(table_name: str, columns: Sequence[str], paramstyle: str = "qmark") -> str:
    """Build the ``INSERT`` used for every row of one file.

    Names are used verbatim; see ``CsvTableImporter(strict_identifiers=True)``
    for the checked variant.
    """
    marks = ",".join(placeholders(paramstyle, len(columns)))
    return f"INSERT INTO {table_name} ({','.join(columns)}) VALUES ({marks})"


def check_identifiers(table_name: str, columns: Sequence[str]) -> None:
    for name in (table_name, *columns):
        if not _IDENTIFIER_RE.match(name):
            raise InvalidIdentifierError(f"Not a plain SQL identifier: {name!r}")


# ----------------------------------------------------------------------
# Transaction mode
# ----------------------------------------------------------------------
def disable_autocommit(connection) -> Callable[[], None]:
    """Put ``connection`` into explicit-transaction mode.

    Returns a callable that puts back whatever mode the connection was
    in before. Handles sqlite3 (legacy ``isolation_level`` and the
    ``autocommit`` attribute), PyMySQL (``autocommit()`` method) and
    psycopg2-style ``autocommit`` attributes.
    """
    if isinstance(connection, sqlite3.Connection) and getattr(
        connection, "autocommit", _LEGACY_TRANSACTION_CONTROL
    ) == _LEGACY_TRANSACTION_CONTROL:
        previous_level = connection.isolation_level
        if previous_level is None:
            connection.isolation_level = "DEFERRED"

        def restore_isolation_level() -> None:
            connection.isolation_level = previous_level

        return restore_isolation_level

    toggle = getattr(connection, "autocommit", None)
    if toggle is None:
        # Plain DB-API connections never autocommit.
        return lambda: None
    if callable(toggle):
        previous_mode = connection.get_autocommit()
        connection.autocommit(False)
        return lambda: connection.autocommit(previous_mode)

    previous_flag = toggle
    connection.autocommit = False

    def restore_flag() -> None:
        connection.autocommit = previous_flag

    return restore_flag


# ----------------------------------------------------------------------
# Importer
# ----------------------------------------------------------------------
class CsvTableImporter:
    """Load CSV files into existing tables using batched, transactional inserts.

    Parameters
    ----------
    batch_size : int
        Number of rows sent per ``executemany`` call.
    strict_identifiers : bool
        Reject table and column names that are not plain identifiers
        instead of interpolating them as written.
    paramstyle : str, optional
        Placeholder style of the connection's driver. Detected from the
        connection when omitted.
    """

    def __init__(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        *,
        strict_identifiers: bool = False,
        paramstyle: Optional[str] = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.batch_size = batch_size
        self.strict_identifiers = strict_identifiers
        self.paramstyle = paramstyle

    @classmethod
    def from_settings(cls, settings) -> "CsvTableImporter":
        return cls(settings.import_batch_size, strict_identifiers=settings.strict_identifiers)

    def import_files(self, connection, jobs: Sequence[Tuple[Union[str, Path], str]]) -> List[ImportResult]:
        """Import several ``(file_path, table_name)`` pairs, one transaction each."""
        return [self.run(connection, file_path, table_name) for file_path, table_name in jobs]

    def run(self, connection, file_path: Union[str, Path], table_name: str) -> ImportResult:
        """
        Import one CSV file into ``table_name``.

        The connection is borrowed: its auto-commit mode is restored
        before returning and it is not kept after the call.

        Returns
        -------
        ImportResult
            ``ImportSuccess`` with the number of committed rows, or
            ``ImportFailure`` describing why nothing was committed.
        """
        path = Path(file_path)
        logger.info("Importing %s into table %s", path.name, table_name)
        try:
            source = self._open(path)
        except CsvImportError as exc:
            return self._failed(path, table_name, exc)

        with source:
            try:
                columns = self._read_header(source, path)
                if self.strict_identifiers:
                    check_identifiers(table_name, columns)
                paramstyle = self.paramstyle or driver_paramstyle(connection)
                statement = build_insert_statement(table_name, columns, paramstyle)
            except CsvImportError as exc:
                return self._failed(path, table_name, exc)
            return self._load(connection, source, path, table_name, len(columns), statement)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------
    @staticmethod
    def _open(path: Path) -> TextIO:
        if not path.is_file():
            raise SourceFileNotFoundError(f"File not found: {path}")
        try:
            return open(path, "r", encoding="utf-8-sig")
        except OSError as exc:
            raise SourceFileNotFoundError(f"Cannot open {path}: {exc}") from exc

    @staticmethod
    def _read_header(source: TextIO, path: Path) -> List[str]:
        try:
            header = source.readline()
        except (OSError, UnicodeDecodeError) as exc:
            raise ReadFailureError(f"Error reading header of {path.name}: {exc}") from exc
        if not header:
            raise EmptyFileError(f"Empty CSV file: {path}")
        return parse_header(header)

    @staticmethod
    def _rows(source: TextIO, path: Path, width: int) -> Iterator[Row]:
        line_number = 1
        while True:
            try:
                line = source.readline()
            except (OSError, UnicodeDecodeError) as exc:
                raise ReadFailureError(f"Error reading {path.name} after line {line_number}: {exc}") from exc
            if not line:
                return
            line_number += 1
            line = line.rstrip("\r\n")
            if not line.strip():
                continue
            yield bind_values(line, width)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------
    def _load(self, connection, source: TextIO, path: Path, table_name: str, width: int, statement: str) -> ImportResult:
        restore_mode: Optional[Callable[[], None]] = None
        committed = False
        cursor = None
        rows_imported = 0
        batches = 0
        try:
            restore_mode = self._begin(connection)
            cursor = self._cursor(connection)
            batch: List[Row] = []
            for values in self._rows(source, path, width):
                batch.append(values)
                if len(batch) >= self.batch_size:
                    self._flush(cursor, statement, batch, table_name)
                    rows_imported += len(batch)
                    batches += 1
                    batch.clear()
            if batch:
                self._flush(cursor, statement, batch, table_name)
                rows_imported += len(batch)
                batches += 1
            self._commit(connection)
            committed = True
        except CsvImportError as exc:
            return self._failed(path, table_name, exc)
        finally:
            if cursor is not None:
                self._close_quietly(cursor)
            # No transaction was opened if the mode switch itself failed.
            if restore_mode is not None:
                if not committed:
                    self._rollback(connection, path)
                try:
                    restore_mode()
                except Exception:
                    logger.warning("Could not restore auto-commit mode after importing %s", path.name, exc_info=True)

        logger.info("Imported %d rows from %s into table %s", rows_imported, path.name, table_name)
        return ImportSuccess(path.name, table_name, rows_imported, batches)

    @staticmethod
    def _begin(connection) -> Callable[[], None]:
        try:
            return disable_autocommit(connection)
        except Exception as exc:
            raise WriteFailureError(f"Cannot start a transaction: {exc}") from exc

    @staticmethod
    def _cursor(connection):
        try:
            return connection.cursor()
        except Exception as exc:
            raise WriteFailureError(str(exc)) from exc

    @staticmethod
    def _flush(cursor, statement: str, batch: List[Row], table_name: str) -> None:
        try:
            cursor.executemany(statement, batch)
        except Exception as exc:
            raise WriteFailureError(str(exc)) from exc
        logger.debug("Flushed batch of %d rows into %s", len(batch), table_name)

    @staticmethod
    def _commit(connection) -> None:
        try:
            connection.commit()
        except Exception as exc:
            raise WriteFailureError(f"Commit failed: {exc}") from exc

    @staticmethod
    def _rollback(connection, path: Path) -> None:
        try:
            connection.rollback()
        except Exception:
            logger.exception("Rollback failed while importing %s", path.name)
        else:
            logger.info("Rolled back import of %s", path.name)

    @staticmethod
    def _close_quietly(cursor) -> None:
        try:
            cursor.close()
        except Exception:
            logger.debug("Cursor close failed", exc_info=True)

    @staticmethod
    def _failed(path: Path, table_name: str, error: CsvImportError) -> ImportFailure:
        logger.error("Import of %s into %s failed (%s): %s", path.name, table_name, error.kind, error)
        return ImportFailure(path.name, table_name, error)


def import_csv(
    connection,
    file_path: Union[str, Path],
    table_name: str,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> ImportResult:
    """Import ``file_path`` into ``table_name`` with the default importer settings."""
    return CsvTableImporter(batch_size).run(connection, file_path, table_name)


def failed_jobs(jobs: Sequence[Tuple[Union[str, Path], str]], exc: BaseException) -> List[ImportResult]:
    """Report every job as a ``WriteFailure`` caused by ``exc``.

    Used when a batch of imports is aborted by an error the importer
    itself did not anticipate.
    """
    error = WriteFailureError(f"Import aborted: {exc}")
    error.__cause__ = exc
    return [ImportFailure(Path(file_path).name, table_name, error) for file_path, table_name in jobs]
