"""
Graphical user interface for the admissions dashboard.

This module defines the PyQt-based windows of the application:

- ``LoginDialog`` collects the database type and credentials and opens
  the connection;
- ``ImportDialog`` optionally loads CSV files into the three admissions
  tables, running the import on a worker thread so the window stays
  responsive;
- ``MainWindow`` is the dashboard itself, a set of tabs with tables and
  matplotlib charts plus refresh and PDF export buttons.

The GUI is implemented using the QtWidgets module from either
``PyQt5`` or ``PyQt6``. If neither library is available, the
application will raise an ImportError at import time.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

try:
    # Try PyQt5 first
    from PyQt5.QtWidgets import (
        QApplication,
        QComboBox,
        QDialog,
        QDialogButtonBox,
        QFileDialog,
        QFormLayout,
        QHBoxLayout,
        QLineEdit,
        QMainWindow,
        QMessageBox,
        QPlainTextEdit,
        QPushButton,
        QSpinBox,
        QTableView,
        QTabWidget,
        QVBoxLayout,
        QWidget,
    )
    from PyQt5.QtGui import QStandardItemModel, QStandardItem
    from PyQt5.QtCore import QObject, QThread, Qt, pyqtSignal
except ImportError:
    try:
        # Fall back to PyQt6
        from PyQt6.QtWidgets import (
            QApplication,
            QComboBox,
            QDialog,
            QDialogButtonBox,
            QFileDialog,
            QFormLayout,
            QHBoxLayout,
            QLineEdit,
            QMainWindow,
            QMessageBox,
            QPlainTextEdit,
            QPushButton,
            QSpinBox,
            QTableView,
            QTabWidget,
            QVBoxLayout,
            QWidget,
        )
        from PyQt6.QtGui import QStandardItemModel, QStandardItem
        from PyQt6.QtCore import QObject, QThread, Qt, pyqtSignal
    except ImportError as exc:
        raise ImportError(
            "Neither PyQt5 nor PyQt6 could be imported. Please install one of them to use the GUI."
        ) from exc

import pandas as pd
from matplotlib.backends.backend_qtagg import FigureCanvasQTAgg

from admissions_dashboard import charts
from admissions_dashboard.config import Settings
from admissions_dashboard.connection import (
    DRIVERS,
    ConnectionSettings,
    DashboardConnectionError,
    connect,
    describe,
)
from admissions_dashboard.database import DatabaseManager
from admissions_dashboard.importer import CsvTableImporter, ImportResult, failed_jobs
from admissions_dashboard.report import ReportGenerator

logger = logging.getLogger(__name__)

IMPORT_TABLES = ("applicants", "applications", "exam_scores")


def frame_to_model(df: pd.DataFrame) -> QStandardItemModel:
    """Copy a DataFrame into a model for a ``QTableView``."""
    model = QStandardItemModel(df.shape[0], df.shape[1])
    model.setHorizontalHeaderLabels([str(c) for c in df.columns])
    for row_idx in range(df.shape[0]):
        for col_idx in range(df.shape[1]):
            value = df.iat[row_idx, col_idx]
            text = f"{value:.2f}" if pd.api.types.is_float(value) else str(value)
            item = QStandardItem(text)
            # Align numeric columns to the right for readability
            if pd.api.types.is_number(value):
                item.setTextAlignment(Qt.AlignmentFlag.AlignVCenter | Qt.AlignmentFlag.AlignRight)
            model.setItem(row_idx, col_idx, item)
    return model


# ----------------------------------------------------------------------
# Login
# ----------------------------------------------------------------------
class LoginDialog(QDialog):
    """Ask for connection details and connect on OK."""

    def __init__(self, defaults: ConnectionSettings, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setWindowTitle("Database Login")
        self.connection = None
        self.connection_settings: Optional[ConnectionSettings] = None

        form = QFormLayout()
        self.db_type_combo = QComboBox()
        self.db_type_combo.addItems(list(DRIVERS))
        form.addRow("Database Type:", self.db_type_combo)

        self.host_edit = QLineEdit(defaults.host)
        form.addRow("Host:", self.host_edit)

        self.port_spin = QSpinBox()
        self.port_spin.setRange(0, 65535)
        self.port_spin.setValue(defaults.port or 0)
        form.addRow("Port:", self.port_spin)

        db_row = QHBoxLayout()
        self.database_edit = QLineEdit(defaults.database)
        db_row.addWidget(self.database_edit)
        self.browse_button = QPushButton("Browse…")
        self.browse_button.clicked.connect(self._browse_sqlite)
        db_row.addWidget(self.browse_button)
        form.addRow("Database:", db_row)

        self.user_edit = QLineEdit(defaults.user)
        form.addRow("Username:", self.user_edit)

        self.password_edit = QLineEdit(defaults.password)
        self.password_edit.setEchoMode(QLineEdit.EchoMode.Password)
        form.addRow("Password:", self.password_edit)

        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel
        )
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)

        layout = QVBoxLayout()
        layout.addLayout(form)
        layout.addWidget(buttons)
        self.setLayout(layout)

        self.db_type_combo.currentTextChanged.connect(self._db_type_changed)
        index = self.db_type_combo.findText(defaults.db_type)
        self.db_type_combo.setCurrentIndex(max(index, 0))
        self._db_type_changed(self.db_type_combo.currentText(), keep_port=True)

    def _db_type_changed(self, db_type: str, keep_port: bool = False) -> None:
        driver = DRIVERS[db_type]
        is_file = driver.default_port is None
        for widget in (self.host_edit, self.port_spin, self.user_edit, self.password_edit):
            widget.setEnabled(not is_file)
        self.browse_button.setVisible(is_file)
        if not is_file and not keep_port:
            self.port_spin.setValue(driver.default_port)

    def _browse_sqlite(self) -> None:
        path, _ = QFileDialog.getSaveFileName(
            self,
            "Select SQLite database",
            str(Path.home()),
            "SQLite databases (*.db *.sqlite *.sqlite3);;All files (*)",
            options=QFileDialog.Option.DontConfirmOverwrite,
        )
        if path:
            self.database_edit.setText(path)

    def settings(self) -> ConnectionSettings:
        return ConnectionSettings(
            db_type=self.db_type_combo.currentText(),
            host=self.host_edit.text().strip(),
            port=self.port_spin.value() or None,
            database=self.database_edit.text().strip(),
            user=self.user_edit.text().strip(),
            password=self.password_edit.text(),
        )

    def accept(self) -> None:
        settings = self.settings()
        try:
            self.connection = connect(settings)
        except DashboardConnectionError as exc:
            QMessageBox.critical(self, "Connection Error", str(exc))
            return
        self.connection_settings = settings
        super().accept()


# ----------------------------------------------------------------------
# CSV import
# ----------------------------------------------------------------------
class ImportWorker(QObject):
    """Runs the CSV import off the GUI thread."""

    finished = pyqtSignal(list)

    def __init__(self, connection, importer: CsvTableImporter, jobs: List[Tuple[str, str]]) -> None:
        super().__init__()
        self.connection = connection
        self.importer = importer
        self.jobs = jobs

    def run(self) -> None:
        # finished must always fire, otherwise the thread never quits.
        try:
            results = self.importer.import_files(self.connection, self.jobs)
        except Exception as exc:
            logger.exception("CSV import aborted")
            results = failed_jobs(self.jobs, exc)
        self.finished.emit(results)


class ImportDialog(QDialog):
    """Optionally load one CSV file into each admissions table."""

    def __init__(self, connection, importer: CsvTableImporter, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setWindowTitle("Import CSV data (optional)")
        self.connection = connection
        self.importer = importer
        self.results: List[ImportResult] = []
        self._thread: Optional[QThread] = None
        self._worker: Optional[ImportWorker] = None

        form = QFormLayout()
        self.path_edits = {}
        for table in IMPORT_TABLES:
            row = QHBoxLayout()
            edit = QLineEdit()
            edit.setMinimumWidth(320)
            row.addWidget(edit)
            browse = QPushButton("Browse…")
            browse.clicked.connect(lambda _checked=False, e=edit: self._browse(e))
            row.addWidget(browse)
            label = table.replace("_", " ").title()
            form.addRow(f"{label} CSV:", row)
            self.path_edits[table] = edit

        self.buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel
        )
        self.buttons.accepted.connect(self._start_import)
        self.buttons.rejected.connect(self.reject)

        layout = QVBoxLayout()
        layout.addLayout(form)
        layout.addWidget(self.buttons)
        self.setLayout(layout)

    def _browse(self, edit: QLineEdit) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Select CSV file", str(Path.home()), "CSV files (*.csv);;All files (*)")
        if path:
            edit.setText(path)

    def jobs(self) -> List[Tuple[str, str]]:
        return [
            (edit.text().strip(), table)
            for table, edit in self.path_edits.items()
            if edit.text().strip()
        ]

    def _start_import(self) -> None:
        jobs = self.jobs()
        if not jobs:
            self.accept()
            return
        self.buttons.setEnabled(False)
        self.setWindowTitle("Importing…")
        self._thread = QThread(self)
        self._worker = ImportWorker(self.connection, self.importer, jobs)
        self._worker.moveToThread(self._thread)
        self._thread.started.connect(self._worker.run)
        self._worker.finished.connect(self._import_finished)
        self._worker.finished.connect(self._thread.quit)
        self._thread.start()

    def _import_finished(self, results: List[ImportResult]) -> None:
        if self._thread is not None:
            self._thread.wait()
        self.results = results
        for result in results:
            if result.ok:
                QMessageBox.information(self, "Import Complete", result.summary())
            else:
                QMessageBox.critical(self, "Import Error", result.summary())
        self.accept()


# ----------------------------------------------------------------------
# Dashboard
# ----------------------------------------------------------------------
class MainWindow(QMainWindow):
    """Top-level window that hosts the admissions dashboard."""

    def __init__(self, db: DatabaseManager, title_suffix: str = "") -> None:
        super().__init__()
        title = "University Admissions Dashboard"
        self.setWindowTitle(f"{title} - {title_suffix}" if title_suffix else title)
        self.db = db
        self.reporter = ReportGenerator(db)

        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout()
        central.setLayout(layout)

        self.tabs = QTabWidget()
        layout.addWidget(self.tabs)

        button_row = QHBoxLayout()
        layout.addLayout(button_row)
        self.refresh_button = QPushButton("Refresh Data")
        self.refresh_button.clicked.connect(self.refresh_data)
        button_row.addWidget(self.refresh_button)
        self.export_button = QPushButton("Export PDF…")
        self.export_button.clicked.connect(self.export_report)
        button_row.addWidget(self.export_button)

        self.refresh_data()

    # ------------------------------------------------------------------
    # Tab builders
    # ------------------------------------------------------------------
    def _table_tab(self, df: pd.DataFrame) -> QWidget:
        view = QTableView()
        view.setModel(frame_to_model(df))
        view.setSortingEnabled(True)
        view.resizeColumnsToContents()
        return view

    def _chart_tab(self, figure) -> QWidget:
        return FigureCanvasQTAgg(figure)

    def _text_tab(self, text: str) -> QWidget:
        area = QPlainTextEdit(text)
        area.setReadOnly(True)
        return area

    def _tab_specs(self):
        db = self.db
        return [
            ("City & Gender", lambda: self._table_tab(db.city_gender_distribution())),
            ("Acceptance Rates (Chart)", lambda: self._chart_tab(charts.acceptance_rate_chart(db.acceptance_rates()))),
            ("Acceptance Rates (Table)", lambda: self._table_tab(db.acceptance_rates())),
            ("Average Scores (Chart)", lambda: self._chart_tab(charts.average_score_chart(db.average_scores_by_program()))),
            ("Average Scores (Table)", lambda: self._table_tab(db.average_scores_by_program())),
            ("Exam Score Distribution", lambda: self._chart_tab(charts.score_histogram(db.exam_scores()))),
            ("Gender Distribution", lambda: self._chart_tab(charts.gender_pie_chart(db.gender_distribution()))),
            ("Top Applicants", lambda: self._text_tab(db.top_applicants_text())),
        ]

    # ------------------------------------------------------------------
    # Button handlers
    # ------------------------------------------------------------------
    def refresh_data(self) -> None:
        """Re-run every dashboard query and rebuild the tabs."""
        current = self.tabs.currentIndex()
        self.tabs.clear()
        errors = []
        for title, build in self._tab_specs():
            try:
                widget = build()
            except Exception as exc:
                logger.exception("Failed to load tab %s", title)
                errors.append(f"{title}: {exc}")
                widget = self._text_tab(f"Error loading data:\n{exc}")
            self.tabs.addTab(widget, title)
        if current >= 0:
            self.tabs.setCurrentIndex(current)
        if errors:
            QMessageBox.critical(self, "Error Loading Data", "\n".join(errors))

    def export_report(self) -> None:
        """Write the dashboard summary to a PDF chosen by the user."""
        path, _ = QFileDialog.getSaveFileName(self, "Save report as…", "admissions_report.pdf", "PDF files (*.pdf)")
        if not path:
            return
        try:
            self.reporter.generate(path)
        except Exception as exc:
            logger.exception("Report generation failed")
            QMessageBox.critical(self, "Error", f"Failed to generate report:\n{exc}")
            return
        QMessageBox.information(self, "Report generated", f"Report saved to {path}")

    def closeEvent(self, event) -> None:
        self.db.close()
        super().closeEvent(event)


def run_gui(settings: Settings, defaults: Optional[ConnectionSettings] = None) -> None:
    """Show login, then the optional import, then the dashboard."""
    app = QApplication(sys.argv)
    login = LoginDialog(defaults or ConnectionSettings.from_settings(settings))
    if not login.exec():
        sys.exit(0)

    connection = login.connection
    db = DatabaseManager(connection)
    try:
        db.create_tables()
    except Exception as exc:
        logger.exception("Could not create tables")
        QMessageBox.critical(None, "Database Error", f"Could not prepare the admissions tables:\n{exc}")
        db.close()
        sys.exit(1)

    ImportDialog(connection, CsvTableImporter.from_settings(settings)).exec()

    window = MainWindow(db, describe(login.connection_settings))
    window.resize(1200, 800)
    window.show()
    sys.exit(app.exec())
