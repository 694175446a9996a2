"""
Unit tests for the CSV table importer.

These tests exercise ``CsvTableImporter`` against in-memory and
on-disk SQLite databases:

* positional binding of values, ``NULL`` literals and short rows;
* all-or-nothing transactions when the database rejects a row or the
  file cannot be read to the end;
* batching boundaries;
* input errors reported before any transaction is opened;
* restoration of the connection's auto-commit mode.

pytest is required to run these tests.
"""

import logging
import sqlite3

import pytest

from admissions_dashboard.importer import (
    CsvTableImporter,
    ImportFailure,
    ImportSuccess,
    build_insert_statement,
    bind_values,
    disable_autocommit,
    driver_paramstyle,
    failed_jobs,
    import_csv,
    placeholders,
    split_fields,
)


def write_csv(tmp_path, lines, name='data.csv'):
    """Helper to write CSV lines to a file and return its path."""
    path = tmp_path / name
    path.write_text("\n".join(lines) + "\n", encoding='utf-8')
    return path


def make_conn(ddl="CREATE TABLE t (id, name, score)"):
    conn = sqlite3.connect(':memory:')
    conn.execute(ddl)
    conn.commit()
    return conn


def rows(conn, table='t'):
    return conn.execute(f"SELECT * FROM {table} ORDER BY rowid").fetchall()


def test_import_binds_values_positionally(tmp_path):
    """The three-row example imports every row with NULL for the literal."""
    path = write_csv(tmp_path, ['id,name,score', '1,Alice,88', '2,Bob,NULL', '3,Carol,91'])
    conn = make_conn()
    result = import_csv(conn, path, 't')
    assert isinstance(result, ImportSuccess)
    assert result.ok
    assert result.rows_imported == 3
    assert result.file_name == 'data.csv'
    assert result.table_name == 't'
    # Values are passed as text, no type coercion happens
    assert rows(conn) == [('1', 'Alice', '88'), ('2', 'Bob', None), ('3', 'Carol', '91')]
    assert "3 rows" in result.summary()


def test_header_names_are_trimmed_and_map_columns(tmp_path):
    path = write_csv(tmp_path, [' score , id ,name', '70, 9 ,  Zoe  '])
    conn = make_conn()
    assert import_csv(conn, path, 't').ok
    assert conn.execute("SELECT id, name, score FROM t").fetchall() == [('9', 'Zoe', '70')]


@pytest.mark.parametrize('literal', ['NULL', 'null', 'Null', '  nUlL  '])
def test_null_literal_any_case_is_stored_as_null(tmp_path, literal):
    path = write_csv(tmp_path, ['id,name,score', f'1,{literal},50'])
    conn = make_conn()
    assert import_csv(conn, path, 't').ok
    assert rows(conn) == [('1', None, '50')]


def test_short_rows_leave_trailing_columns_null(tmp_path):
    path = write_csv(tmp_path, ['id,name,score', '1', '2,Bob', '3,Carol,', '4,,77', '5,Eve,60,extra'])
    conn = make_conn()
    result = import_csv(conn, path, 't')
    assert result.rows_imported == 5
    assert rows(conn) == [
        ('1', None, None),
        ('2', 'Bob', None),
        ('3', 'Carol', None),
        # an empty field in the middle is kept as empty text
        ('4', '', '77'),
        # fields beyond the header are ignored
        ('5', 'Eve', '60'),
    ]


def test_blank_lines_are_skipped(tmp_path):
    path = write_csv(tmp_path, ['id,name,score', '1,A,1', '', '   ', '2,B,2'])
    conn = make_conn()
    assert import_csv(conn, path, 't').rows_imported == 2


def test_windows_line_endings(tmp_path):
    path = tmp_path / 'crlf.csv'
    path.write_bytes(b'id,name,score\r\n1,Alice,88\r\n2,Bob,90\r\n')
    conn = make_conn()
    assert import_csv(conn, path, 't').ok
    assert rows(conn) == [('1', 'Alice', '88'), ('2', 'Bob', '90')]


def test_constraint_violation_rolls_back_whole_file(tmp_path):
    """Row 7 duplicates a key: no row of the file may remain."""
    conn = make_conn("CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT, score TEXT)")
    conn.execute("INSERT INTO t VALUES (100, 'existing', '1')")
    conn.commit()
    before = rows(conn)
    ids = [1, 2, 3, 4, 5, 6, 3, 8, 9, 10]
    path = write_csv(tmp_path, ['id,name,score'] + [f'{i},n{i},{i}' for i in ids])
    # A small batch size makes sure earlier batches were already flushed
    result = CsvTableImporter(batch_size=2).run(conn, path, 't')
    assert isinstance(result, ImportFailure)
    assert not result.ok
    assert result.kind == 'WriteFailure'
    assert 'UNIQUE' in result.cause
    assert isinstance(result.error.__cause__, sqlite3.IntegrityError)
    assert rows(conn) == before
    assert not conn.in_transaction


def test_failure_is_visible_to_other_connections_as_no_change(tmp_path):
    db_path = tmp_path / 'admissions.db'
    conn = sqlite3.connect(db_path)
    conn.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT, score TEXT)")
    conn.commit()
    path = write_csv(tmp_path, ['id,name,score', '1,a,1', '2,b,2', '1,c,3'])
    result = import_csv(conn, path, 't', batch_size=1)
    assert result.kind == 'WriteFailure'
    other = sqlite3.connect(db_path)
    assert other.execute("SELECT COUNT(*) FROM t").fetchone() == (0,)
    other.close()
    conn.close()


def test_unknown_table_is_write_failure(tmp_path):
    path = write_csv(tmp_path, ['id,name,score', '1,Alice,88'])
    conn = make_conn()
    result = import_csv(conn, path, 'missing')
    assert result.kind == 'WriteFailure'
    assert 'missing' in result.cause
    assert 'missing' in result.summary()


def test_unknown_column_is_write_failure(tmp_path):
    path = write_csv(tmp_path, ['id,nickname', '1,Al'])
    conn = make_conn()
    result = import_csv(conn, path, 't')
    assert result.kind == 'WriteFailure'
    assert rows(conn) == []


def test_read_failure_mid_stream_rolls_back(tmp_path):
    path = tmp_path / 'broken.csv'
    good = ''.join(f'{i},name{i},{i % 100}\n' for i in range(3000))
    path.write_bytes(b'id,name,score\n' + good.encode('utf-8') + b'9999,\xff\xfe,1\n')
    conn = make_conn()
    result = CsvTableImporter(batch_size=100).run(conn, path, 't')
    assert result.kind == 'ReadFailure'
    assert rows(conn) == []


def test_exactly_one_batch_for_capacity_rows(tmp_path, caplog):
    caplog.set_level(logging.DEBUG, logger='admissions_dashboard.importer')
    path = write_csv(tmp_path, ['id,name,score'] + [f'{i},n,1' for i in range(500)])
    conn = make_conn()
    result = import_csv(conn, path, 't')
    assert result.rows_imported == 500
    assert result.batches == 1
    flushes = [r.getMessage() for r in caplog.records if r.getMessage().startswith('Flushed batch')]
    assert flushes == ['Flushed batch of 500 rows into t']


def test_remainder_is_flushed_as_second_batch(tmp_path, caplog):
    caplog.set_level(logging.DEBUG, logger='admissions_dashboard.importer')
    path = write_csv(tmp_path, ['id,name,score'] + [f'{i},n,1' for i in range(501)])
    conn = make_conn()
    result = import_csv(conn, path, 't')
    assert result.rows_imported == 501
    assert result.batches == 2
    flushes = [r.getMessage() for r in caplog.records if r.getMessage().startswith('Flushed batch')]
    assert flushes == ['Flushed batch of 500 rows into t', 'Flushed batch of 1 rows into t']
    assert conn.execute("SELECT COUNT(*) FROM t").fetchone() == (501,)


def test_header_only_file_is_empty_success(tmp_path):
    path = write_csv(tmp_path, ['id,name,score'])
    conn = make_conn()
    result = import_csv(conn, path, 't')
    assert result.ok
    assert result.rows_imported == 0
    assert result.batches == 0


def test_empty_file_reports_empty_file(tmp_path):
    path = tmp_path / 'empty.csv'
    path.write_text('')
    conn = make_conn()
    conn.isolation_level = None
    result = import_csv(conn, path, 't')
    assert result.kind == 'EmptyFile'
    assert result.file_name == 'empty.csv'
    assert not conn.in_transaction
    assert conn.isolation_level is None


def test_blank_header_reports_empty_file(tmp_path):
    path = write_csv(tmp_path, ['', '1,2,3'])
    result = import_csv(make_conn(), path, 't')
    assert result.kind == 'EmptyFile'


def test_missing_file_reports_file_not_found(tmp_path):
    conn = make_conn()
    result = import_csv(conn, tmp_path / 'nope.csv', 't')
    assert result.kind == 'FileNotFound'
    assert 'nope.csv' in result.summary()
    assert not conn.in_transaction


def test_directory_is_not_a_readable_file(tmp_path):
    result = import_csv(make_conn(), tmp_path, 't')
    assert result.kind == 'FileNotFound'


def test_reimport_duplicates_rows(tmp_path):
    """Imports are insert-only, running one twice doubles the rows."""
    path = write_csv(tmp_path, ['id,name,score', '1,Alice,88', '2,Bob,90', '3,Carol,91'])
    conn = make_conn()
    assert import_csv(conn, path, 't').ok
    assert import_csv(conn, path, 't').ok
    assert conn.execute("SELECT COUNT(*) FROM t").fetchone() == (6,)
    assert conn.execute("SELECT COUNT(DISTINCT id) FROM t").fetchone() == (3,)


@pytest.mark.parametrize('level', [None, '', 'IMMEDIATE'])
def test_isolation_level_is_restored(tmp_path, level):
    good = write_csv(tmp_path, ['id,name,score', '1,a,1'], name='good.csv')
    bad = write_csv(tmp_path, ['id,bogus', '1,a'], name='bad.csv')
    conn = make_conn()
    conn.isolation_level = level
    assert import_csv(conn, good, 't').ok
    assert conn.isolation_level == level
    assert not import_csv(conn, bad, 't').ok
    assert conn.isolation_level == level
    assert rows(conn) == [('1', 'a', '1')]


def test_autocommit_connection_still_rolls_back(tmp_path):
    conn = make_conn("CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT, score TEXT)")
    conn.isolation_level = None
    path = write_csv(tmp_path, ['id,name,score', '1,a,1', '1,b,2'])
    result = CsvTableImporter(batch_size=1).run(conn, path, 't')
    assert result.kind == 'WriteFailure'
    assert rows(conn) == []


def test_strict_identifiers_rejects_unsafe_header(tmp_path):
    path = write_csv(tmp_path, ['id;DROP TABLE t,name', '1,x'])
    conn = make_conn()
    result = CsvTableImporter(strict_identifiers=True).run(conn, path, 't')
    assert result.kind == 'InvalidIdentifier'
    assert not conn.in_transaction
    # the table is untouched
    assert rows(conn) == []


def test_strict_identifiers_accepts_plain_names(tmp_path):
    path = write_csv(tmp_path, ['id,name,score', '1,x,2'])
    conn = make_conn()
    assert CsvTableImporter(strict_identifiers=True).run(conn, path, 't').ok


def test_import_files_uses_one_transaction_per_file(tmp_path):
    conn = make_conn()
    conn.execute("CREATE TABLE u (a, b)")
    ok = write_csv(tmp_path, ['id,name,score', '1,a,1'], name='t.csv')
    bad = write_csv(tmp_path, ['a,c', '1,2'], name='u.csv')
    results = CsvTableImporter().import_files(conn, [(ok, 't'), (bad, 'u'), (tmp_path / 'x.csv', 't')])
    assert [r.ok for r in results] == [True, False, False]
    assert [getattr(r, 'kind', None) for r in results] == [None, 'WriteFailure', 'FileNotFound']
    assert rows(conn) == [('1', 'a', '1')]


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        CsvTableImporter(batch_size=0)


def test_split_fields_drops_trailing_empty_fields():
    assert split_fields('1,Bob,,') == ['1', 'Bob']
    assert split_fields('1,,3') == ['1', '', '3']
    assert split_fields('1,Bob, ') == ['1', 'Bob', ' ']
    assert split_fields('') == []


def test_bind_values():
    assert bind_values(' 1 , NULL ,x,y', 3) == ('1', None, 'x')
    assert bind_values('1', 3) == ('1', None, None)


def test_insert_statement_per_paramstyle():
    assert build_insert_statement('t', ['a', 'b']) == 'INSERT INTO t (a,b) VALUES (?,?)'
    assert build_insert_statement('t', ['a', 'b'], 'pyformat') == 'INSERT INTO t (a,b) VALUES (%s,%s)'
    assert placeholders('numeric', 3) == [':1', ':2', ':3']
    with pytest.raises(ValueError):
        placeholders('named', 1)


def test_driver_paramstyle_of_sqlite():
    assert driver_paramstyle(sqlite3.connect(':memory:')) == 'qmark'


class MethodStyleConnection:
    """Mimics PyMySQL's autocommit(value) / get_autocommit() pair."""

    def __init__(self):
        self.mode = True

    def autocommit(self, value):
        self.mode = value

    def get_autocommit(self):
        return self.mode


class AttributeStyleConnection:
    """Mimics psycopg2's autocommit attribute."""

    autocommit = True


def test_disable_autocommit_method_style():
    conn = MethodStyleConnection()
    restore = disable_autocommit(conn)
    assert conn.mode is False
    restore()
    assert conn.mode is True


def test_disable_autocommit_attribute_style():
    conn = AttributeStyleConnection()
    restore = disable_autocommit(conn)
    assert conn.autocommit is False
    restore()
    assert conn.autocommit is True


def test_closed_connection_is_write_failure(tmp_path):
    path = write_csv(tmp_path, ['id,name,score', '1,a,1'])
    conn = sqlite3.connect(':memory:')
    conn.close()
    result = import_csv(conn, path, 't')
    assert isinstance(result, ImportFailure)
    assert not result.ok
    assert result.kind == 'WriteFailure'


class RefusingConnection:
    """Mimics psycopg2 refusing to change autocommit inside a transaction."""

    def __init__(self):
        self.rolled_back = False

    @property
    def autocommit(self):
        return True

    @autocommit.setter
    def autocommit(self, value):
        raise RuntimeError("set_session cannot be used inside a transaction")

    def cursor(self):
        raise AssertionError("no cursor should be opened")

    def rollback(self):
        self.rolled_back = True


def test_failed_mode_switch_does_not_roll_back(tmp_path):
    path = write_csv(tmp_path, ['id,name,score', '1,a,1'])
    conn = RefusingConnection()
    result = CsvTableImporter(paramstyle='format').run(conn, path, 't')
    assert result.kind == 'WriteFailure'
    assert 'inside a transaction' in result.cause
    assert not conn.rolled_back


def test_failed_jobs_reports_every_job(tmp_path):
    exc = RuntimeError('connection reset')
    results = failed_jobs([(tmp_path / 'a.csv', 'applicants'), ('dir/b.csv', 'applications')], exc)
    assert [(r.file_name, r.table_name, r.kind) for r in results] == [
        ('a.csv', 'applicants', 'WriteFailure'),
        ('b.csv', 'applications', 'WriteFailure'),
    ]
    assert 'connection reset' in results[0].summary()
    assert results[0].error.__cause__ is exc
