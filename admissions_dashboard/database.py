"""
Database access layer for the admissions dashboard.

This module defines the ``DatabaseManager`` class which wraps an open
DB-API connection and exposes the read-only reporting queries shown on
the dashboard. The database holds three tables:

- ``applicants``: one row per person (name, gender, city);
- ``applications``: an applicant's application to a programme and its
  status (``Accepted``, ``Rejected``, ``Pending``);
- ``exam_scores``: individual exam results of applicants.

Every query returns a pandas DataFrame with fixed column names so the
GUI, the charts and the PDF report can bind results without knowing
which database engine produced them. The SQL only uses constructs
shared by SQLite, MySQL/MariaDB and PostgreSQL.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Dict, List, Sequence

import pandas as pd

logger = logging.getLogger(__name__)

TABLES = ("applicants", "applications", "exam_scores")
NO_PROGRAM = "(No program)"

SCHEMA = {
    "applicants": """
        CREATE TABLE IF NOT EXISTS applicants (
            applicant_id INTEGER PRIMARY KEY,
            first_name VARCHAR(100),
            last_name VARCHAR(100),
            gender VARCHAR(20),
            city VARCHAR(100)
        )
    """,
    "applications": """
        CREATE TABLE IF NOT EXISTS applications (
            application_id INTEGER PRIMARY KEY,
            applicant_id INTEGER,
            program VARCHAR(100),
            status VARCHAR(20),
            FOREIGN KEY(applicant_id) REFERENCES applicants(applicant_id)
        )
    """,
    "exam_scores": """
        CREATE TABLE IF NOT EXISTS exam_scores (
            score_id INTEGER PRIMARY KEY,
            applicant_id INTEGER,
            subject VARCHAR(100),
            score REAL,
            FOREIGN KEY(applicant_id) REFERENCES applicants(applicant_id)
        )
    """,
}


class DatabaseManager:
    """Reporting queries over the admissions tables.

    The connection is borrowed from the login flow; ``close()`` closes it.
    """

    def __init__(self, conn) -> None:
        self.conn = conn

    @classmethod
    def open_sqlite(cls, db_path: str) -> "DatabaseManager":
        """Open (or create) a SQLite database and make sure the tables exist.

        Use ``':memory:'`` for a transient database (useful for testing).
        """
        manager = cls(sqlite3.connect(db_path, check_same_thread=False))
        manager.create_tables()
        return manager

    def close(self) -> None:
        self.conn.close()

    def create_tables(self) -> None:
        """Create the tables if they do not already exist."""
        c = self.conn.cursor()
        try:
            for table in TABLES:
                c.execute(SCHEMA[table])
        finally:
            c.close()
        self.conn.commit()
        logger.debug("Ensured tables exist: %s", ", ".join(TABLES))

    def _query(self, sql: str, columns: Sequence[str]) -> pd.DataFrame:
        c = self.conn.cursor()
        try:
            c.execute(sql)
            rows = c.fetchall()
        finally:
            c.close()
        return pd.DataFrame.from_records(list(rows), columns=list(columns))

    # ------------------------------------------------------------------
    # Dashboard queries
    # ------------------------------------------------------------------
    def table_counts(self) -> Dict[str, int]:
        """Return the number of rows in each admissions table."""
        counts: Dict[str, int] = {}
        for table in TABLES:
            df = self._query(f"SELECT COUNT(*) FROM {table}", ["Count"])
            counts[table] = int(df.iat[0, 0])
        return counts

    def city_gender_distribution(self) -> pd.DataFrame:
        """Number of applicants per city and gender."""
        df = self._query(
            """
            SELECT city, gender, COUNT(*) AS count
            FROM applicants
            GROUP BY city, gender
            ORDER BY city, gender
            """,
            ["City", "Gender", "Count"],
        )
        df["Count"] = df["Count"].astype(int)
        return df

    def acceptance_rates(self) -> pd.DataFrame:
        """
        Acceptance rate per programme.

        Applicants are left-joined to their applications, so applicants
        without any application are reported under ``(No program)``
        with a rate of zero.

        Returns
        -------
        pandas.DataFrame
            Columns ``Program``, ``Accepted``, ``Total`` and
            ``AcceptanceRate`` (a percentage).
        """
        df = self._query(
            """
            SELECT b.program,
                   COUNT(CASE WHEN b.status = 'Accepted' THEN 1 END) AS accepted,
                   COUNT(b.application_id) AS total_count,
                   COUNT(CASE WHEN b.status = 'Accepted' THEN 1 END) * 100.0
                       / NULLIF(COUNT(b.application_id), 0) AS acceptance_rate
            FROM applicants AS a
            LEFT JOIN applications AS b ON a.applicant_id = b.applicant_id
            GROUP BY b.program
            ORDER BY b.program
            """,
            ["Program", "Accepted", "Total", "AcceptanceRate"],
        )
        df["Program"] = df["Program"].fillna(NO_PROGRAM)
        df["Accepted"] = df["Accepted"].astype(int)
        df["Total"] = df["Total"].astype(int)
        df["AcceptanceRate"] = df["AcceptanceRate"].astype(float).fillna(0.0)
        return df

    def average_scores_by_program(self) -> pd.DataFrame:
        """Average exam score per programme (``Program``, ``AverageScore``)."""
        df = self._query(
            """
            SELECT b.program, AVG(e.score) AS avg_score
            FROM exam_scores AS e
            LEFT JOIN applications AS b ON e.applicant_id = b.applicant_id
            GROUP BY b.program
            ORDER BY b.program
            """,
            ["Program", "AverageScore"],
        )
        df["Program"] = df["Program"].fillna(NO_PROGRAM)
        df["AverageScore"] = df["AverageScore"].astype(float)
        return df

    def exam_scores(self) -> pd.DataFrame:
        """All exam scores, for the distribution histogram."""
        df = self._query("SELECT score FROM exam_scores WHERE score IS NOT NULL", ["Score"])
        df["Score"] = df["Score"].astype(float)
        return df

    def gender_distribution(self) -> pd.DataFrame:
        df = self._query(
            "SELECT gender, COUNT(*) AS count FROM applicants GROUP BY gender ORDER BY gender",
            ["Gender", "Count"],
        )
        df["Count"] = df["Count"].astype(int)
        return df

    def top_applicants(self, limit: int = 10) -> pd.DataFrame:
        """
        Applicants with the highest average exam score.

        Parameters
        ----------
        limit : int
            Maximum number of applicants returned.

        Returns
        -------
        pandas.DataFrame
            Columns ``FirstName``, ``LastName`` and ``AverageScore``,
            best first.
        """
        df = self._query(
            f"""
            SELECT a.first_name, a.last_name, AVG(e.score) AS avg_score
            FROM exam_scores AS e
            JOIN applicants AS a ON e.applicant_id = a.applicant_id
            GROUP BY a.applicant_id, a.first_name, a.last_name
            ORDER BY avg_score DESC
            LIMIT {int(limit)}
            """,
            ["FirstName", "LastName", "AverageScore"],
        )
        df["AverageScore"] = df["AverageScore"].astype(float)
        return df

    def top_applicants_text(self, limit: int = 10) -> str:
        """Format ``top_applicants`` the way the dashboard text panel shows it."""
        lines: List[str] = [f"Top {limit} Applicants by Average Exam Score:", ""]
        for first, last, score in self.top_applicants(limit).itertuples(index=False, name=None):
            lines.append(f"{first} {last}: {score:.2f}")
        return "\n".join(lines)
