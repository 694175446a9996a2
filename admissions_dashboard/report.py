"""
PDF export of the dashboard summary.

This module defines the ``ReportGenerator`` class which writes the
figures shown on the dashboard into a single PDF document: table sizes,
acceptance rates and average scores per programme, the best applicants
and the four dashboard charts.

The ``fpdf2`` library is used to construct the PDF document and
``matplotlib`` to render the charts, which are embedded as images.
"""

from __future__ import annotations

import datetime
import logging
import os
import tempfile
from typing import List, Sequence

from fpdf import FPDF, XPos, YPos

from admissions_dashboard import charts
from admissions_dashboard.database import DatabaseManager

logger = logging.getLogger(__name__)


def _latin1(text: str) -> str:
    # The core PDF fonts only cover Latin-1.
    return str(text).encode("latin-1", "replace").decode("latin-1")


class ReportGenerator:
    """Generate a PDF summary of the admissions data."""

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db

    def _line(self, pdf: FPDF, height: float, text: str, align: str = "L") -> None:
        pdf.cell(0, height, _latin1(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT, align=align)

    def _table(self, pdf: FPDF, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        col_width = (pdf.w - 2 * pdf.l_margin) / len(headers)
        pdf.set_font("Helvetica", "B", 10)
        for h in headers:
            pdf.cell(col_width, 6, _latin1(h), border=1, align="C")
        pdf.ln()
        pdf.set_font("Helvetica", "", 10)
        for row in rows:
            for cell in row:
                pdf.cell(col_width, 6, _latin1(cell), border=1, align="C")
            pdf.ln()
        pdf.ln(4)

    def _save_charts(self, directory: str) -> List[str]:
        figures = [
            charts.acceptance_rate_chart(self.db.acceptance_rates()),
            charts.average_score_chart(self.db.average_scores_by_program()),
            charts.score_histogram(self.db.exam_scores()),
            charts.gender_pie_chart(self.db.gender_distribution()),
        ]
        paths = []
        for index, fig in enumerate(figures):
            path = os.path.join(directory, f"chart_{index}.png")
            fig.savefig(path, dpi=100)
            paths.append(path)
        return paths

    def generate(self, output_path: str) -> None:
        """
        Write the dashboard summary to ``output_path``.

        Parameters
        ----------
        output_path : str
            Path to the PDF file to write.
        """
        pdf = FPDF()
        pdf.set_auto_page_break(auto=True, margin=15)

        # First page: summary tables
        pdf.add_page()
        pdf.set_font("Helvetica", "B", 16)
        self._line(pdf, 10, "University Admissions Report", align="C")
        pdf.ln(4)
        pdf.set_font("Helvetica", "", 12)
        now_str = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        self._line(pdf, 8, f"Report generated: {now_str}")
        for table, count in self.db.table_counts().items():
            self._line(pdf, 6, f"{table}: {count} rows")
        pdf.ln(4)

        pdf.set_font("Helvetica", "B", 12)
        self._line(pdf, 8, "Acceptance rates")
        rates = self.db.acceptance_rates()
        self._table(
            pdf,
            ["Program", "Accepted", "Total", "Rate (%)"],
            [
                [program, str(accepted), str(total), f"{rate:.2f}"]
                for program, accepted, total, rate in rates.itertuples(index=False, name=None)
            ],
        )

        pdf.set_font("Helvetica", "B", 12)
        self._line(pdf, 8, "Average exam scores")
        averages = self.db.average_scores_by_program()
        self._table(
            pdf,
            ["Program", "Average Score"],
            [[program, f"{avg:.2f}"] for program, avg in averages.itertuples(index=False, name=None)],
        )

        pdf.set_font("Helvetica", "B", 12)
        self._line(pdf, 8, "Top applicants by average exam score")
        pdf.set_font("Helvetica", "", 10)
        top = self.db.top_applicants()
        if top.empty:
            self._line(pdf, 5, "No exam scores recorded")
        for first, last, score in top.itertuples(index=False, name=None):
            self._line(pdf, 5, f"{first} {last}: {score:.2f}")

        # Charts, two per page
        with tempfile.TemporaryDirectory() as tmp:
            page_width = pdf.w - 2 * pdf.l_margin
            for index, path in enumerate(self._save_charts(tmp)):
                if index % 2 == 0:
                    pdf.add_page()
                pdf.image(path, x=pdf.l_margin, w=page_width)
                pdf.ln(4)
            pdf.output(output_path)
        logger.info("Report written to %s", output_path)
