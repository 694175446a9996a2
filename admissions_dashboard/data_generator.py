"""
Utility functions for generating synthetic admissions data.

This module contains helpers to construct randomised applicants,
applications and exam scores for testing and demonstration purposes.
The generated frames use the column names of the ``applicants``,
``applications`` and ``exam_scores`` tables, and ``write_demo_csvs``
saves them in the CSV format accepted by the importer.
"""

from __future__ import annotations

import random
from pathlib import Path
from typing import Dict, List, Optional, Union

import pandas as pd

FIRST_NAMES = [
    "Alice", "Bob", "Carol", "David", "Emma", "Farid", "Grace", "Hiro",
    "Ines", "Jamal", "Kira", "Liam", "Maya", "Noah", "Olga", "Priya",
]
LAST_NAMES = [
    "Anders", "Brown", "Chen", "Diallo", "Evans", "Fischer", "Garcia",
    "Hughes", "Ivanova", "Jones", "Kim", "Lopez", "Mensah", "Novak",
]
GENDERS = ["Female", "Male", "Other"]
CITIES = ["Boston", "Chicago", "Denver", "Houston", "Seattle"]
PROGRAMS = ["Computer Science", "Economics", "Mathematics", "Medicine", "Physics"]
SUBJECTS = ["Mathematics", "English", "Science"]
STATUSES = ["Accepted", "Rejected", "Pending"]


def generate_applicants(num_applicants: int, rng: Optional[random.Random] = None) -> pd.DataFrame:
    """
    Generate the ``applicants`` table.

    Parameters
    ----------
    num_applicants : int
        Number of applicants; IDs run from 1 to ``num_applicants``.
    rng : random.Random, optional
        Source of randomness, for reproducible data.

    Returns
    -------
    pandas.DataFrame
        Columns ``applicant_id``, ``first_name``, ``last_name``,
        ``gender`` and ``city``.
    """
    rng = rng or random.Random()
    rows = []
    for applicant_id in range(1, num_applicants + 1):
        rows.append({
            'applicant_id': applicant_id,
            'first_name': rng.choice(FIRST_NAMES),
            'last_name': rng.choice(LAST_NAMES),
            'gender': rng.choices(GENDERS, weights=[48, 48, 4], k=1)[0],
            'city': rng.choice(CITIES),
        })
    return pd.DataFrame(rows, columns=['applicant_id', 'first_name', 'last_name', 'gender', 'city'])


def generate_applications(
    applicant_ids: List[int],
    rng: Optional[random.Random] = None,
    max_per_applicant: int = 3,
    acceptance_rate: float = 0.35,
) -> pd.DataFrame:
    """Generate one to ``max_per_applicant`` applications per applicant, to distinct programmes."""
    rng = rng or random.Random()
    rows = []
    next_id = 1
    for applicant_id in applicant_ids:
        count = rng.randint(1, max_per_applicant)
        for program in rng.sample(PROGRAMS, k=min(count, len(PROGRAMS))):
            roll = rng.random()
            if roll < acceptance_rate:
                status = 'Accepted'
            elif roll < acceptance_rate + (1 - acceptance_rate) / 2:
                status = 'Rejected'
            else:
                status = 'Pending'
            rows.append({
                'application_id': next_id,
                'applicant_id': applicant_id,
                'program': program,
                'status': status,
            })
            next_id += 1
    return pd.DataFrame(rows, columns=['application_id', 'applicant_id', 'program', 'status'])


def generate_exam_scores(applicant_ids: List[int], rng: Optional[random.Random] = None) -> pd.DataFrame:
    """Generate one score per applicant and subject, between 40 and 100."""
    rng = rng or random.Random()
    rows = []
    next_id = 1
    for applicant_id in applicant_ids:
        for subject in SUBJECTS:
            rows.append({
                'score_id': next_id,
                'applicant_id': applicant_id,
                'subject': subject,
                'score': round(rng.uniform(40, 100), 1),
            })
            next_id += 1
    return pd.DataFrame(rows, columns=['score_id', 'applicant_id', 'subject', 'score'])


def write_demo_csvs(
    directory: Union[str, Path],
    num_applicants: int = 200,
    seed: Optional[int] = None,
) -> Dict[str, Path]:
    """
    Write one CSV file per table into ``directory``.

    Returns
    -------
    dict[str, pathlib.Path]
        Mapping of table name to CSV path, in the order the tables
        should be imported (applicants before the tables referencing it).
    """
    rng = random.Random(seed)
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    applicants = generate_applicants(num_applicants, rng)
    ids = applicants['applicant_id'].tolist()
    frames = {
        'applicants': applicants,
        'applications': generate_applications(ids, rng),
        'exam_scores': generate_exam_scores(ids, rng),
    }
    paths: Dict[str, Path] = {}
    for table, df in frames.items():
        path = directory / f"{table}.csv"
        df.to_csv(path, index=False)
        paths[table] = path
    return paths
