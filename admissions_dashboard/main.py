"""
Entry point for the admissions dashboard.

Running ``python -m admissions_dashboard`` configures logging and shows
the database login dialog, followed by the optional CSV import and the
dashboard window. With ``ADMISSIONS_DEMO=1`` a local SQLite database is
first populated with synthetic applicants, applications and exam scores
(loaded through the regular CSV importer) and preselected in the login
dialog, so the dashboard can be tried without a database server.
"""

from __future__ import annotations

import logging
import tempfile

from admissions_dashboard.config import Settings, get_settings
from admissions_dashboard.connection import ConnectionSettings
from admissions_dashboard.data_generator import write_demo_csvs
from admissions_dashboard.database import DatabaseManager
from admissions_dashboard.importer import CsvTableImporter, ImportResult

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def initialise_demo_database(settings: Settings) -> list[ImportResult]:
    """Populate the demo SQLite database unless it already holds applicants."""
    db = DatabaseManager.open_sqlite(settings.demo_db_path)
    try:
        if db.table_counts()["applicants"]:
            logger.info("Demo database %s already populated", settings.demo_db_path)
            return []
        with tempfile.TemporaryDirectory() as tmp:
            paths = write_demo_csvs(tmp, settings.demo_applicants)
            importer = CsvTableImporter.from_settings(settings)
            results = importer.import_files(db.conn, [(path, table) for table, path in paths.items()])
        for result in results:
            if result.ok:
                logger.info(result.summary())
            else:
                logger.error(result.summary())
        return results
    finally:
        db.close()


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    defaults = ConnectionSettings.from_settings(settings)
    if settings.demo:
        initialise_demo_database(settings)
        defaults = ConnectionSettings(db_type="SQLite", database=settings.demo_db_path, port=None)
    # Imported late so the non-GUI parts work without Qt installed
    from admissions_dashboard.gui import run_gui

    run_gui(settings, defaults)


if __name__ == '__main__':
    main()
