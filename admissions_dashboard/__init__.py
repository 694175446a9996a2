"""
University admissions dashboard.

A desktop dashboard over the ``applicants``, ``applications`` and
``exam_scores`` tables together with a CSV bulk importer used to load
those tables.
"""

from admissions_dashboard.importer import (
    CsvImportError,
    CsvTableImporter,
    ImportFailure,
    ImportResult,
    ImportSuccess,
    import_csv,
)

__all__ = [
    "CsvImportError",
    "CsvTableImporter",
    "ImportFailure",
    "ImportResult",
    "ImportSuccess",
    "import_csv",
]

__version__ = "0.1.0"
