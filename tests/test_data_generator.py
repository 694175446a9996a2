"""
Tests for the synthetic data helpers and the demo database seeding.
"""

from admissions_dashboard.config import Settings
from admissions_dashboard.data_generator import (
    PROGRAMS,
    STATUSES,
    generate_applicants,
    write_demo_csvs,
)
from admissions_dashboard.database import DatabaseManager
from admissions_dashboard.importer import CsvTableImporter
from admissions_dashboard.main import initialise_demo_database


def test_generate_applicants_columns():
    df = generate_applicants(5)
    assert list(df.columns) == ['applicant_id', 'first_name', 'last_name', 'gender', 'city']
    assert df['applicant_id'].tolist() == [1, 2, 3, 4, 5]


def test_demo_csvs_are_reproducible(tmp_path):
    first = write_demo_csvs(tmp_path / 'a', num_applicants=10, seed=3)
    second = write_demo_csvs(tmp_path / 'b', num_applicants=10, seed=3)
    assert list(first) == ['applicants', 'applications', 'exam_scores']
    for table in first:
        assert first[table].read_text() == second[table].read_text()


def test_demo_csvs_import_into_schema(tmp_path):
    db = DatabaseManager.open_sqlite(':memory:')
    paths = write_demo_csvs(tmp_path, num_applicants=20, seed=1)
    results = CsvTableImporter().import_files(db.conn, [(path, table) for table, path in paths.items()])
    assert [r.ok for r in results] == [True, True, True]
    counts = db.table_counts()
    assert counts['applicants'] == 20
    assert counts['exam_scores'] == 60
    assert 20 <= counts['applications'] <= 60
    rates = db.acceptance_rates()
    assert set(rates['Program']) <= set(PROGRAMS)
    statuses = {row[0] for row in db.conn.execute("SELECT DISTINCT status FROM applications")}
    assert statuses <= set(STATUSES)


def test_initialise_demo_database_runs_once(tmp_path):
    settings = Settings(demo_db_path=str(tmp_path / 'demo.db'), demo_applicants=10)
    results = initialise_demo_database(settings)
    assert len(results) == 3
    assert all(r.ok for r in results)
    assert results[0].rows_imported == 10
    # Already populated: nothing is imported again
    assert initialise_demo_database(settings) == []
    db = DatabaseManager.open_sqlite(settings.demo_db_path)
    assert db.table_counts()['applicants'] == 10
    db.close()
