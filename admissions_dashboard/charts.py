"""
Chart builders for the dashboard and the PDF report.

Each function takes a DataFrame produced by ``DatabaseManager`` and
returns a matplotlib ``Figure``. Figures are created through the
object-oriented API rather than ``pyplot`` so they can be embedded in a
Qt canvas or saved to a PNG without touching global plotting state.
"""

from __future__ import annotations

from typing import Tuple

import pandas as pd
from matplotlib.figure import Figure

FIGSIZE: Tuple[float, float] = (6.4, 4.0)


def _empty_figure(title: str) -> Figure:
    fig = Figure(figsize=FIGSIZE)
    ax = fig.add_subplot()
    ax.set_title(f"{title}: No data available")
    ax.set_axis_off()
    return fig


def _bar_chart(labels, values, title: str, xlabel: str, ylabel: str) -> Figure:
    fig = Figure(figsize=FIGSIZE)
    ax = fig.add_subplot()
    ax.bar([str(label) for label in labels], list(values), color="tab:blue")
    ax.set_title(title)
    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    ax.tick_params(axis="x", labelrotation=30)
    fig.tight_layout()
    return fig


def acceptance_rate_chart(df: pd.DataFrame) -> Figure:
    """Bar chart of ``AcceptanceRate`` per ``Program``."""
    title = "Acceptance Rate per Program"
    if df.empty:
        return _empty_figure(title)
    return _bar_chart(df["Program"], df["AcceptanceRate"], title, "Program", "Acceptance Rate (%)")


def average_score_chart(df: pd.DataFrame) -> Figure:
    """Bar chart of ``AverageScore`` per ``Program``."""
    title = "Average Exam Score per Program"
    if df.empty:
        return _empty_figure(title)
    return _bar_chart(df["Program"], df["AverageScore"], title, "Program", "Average Score")


def score_histogram(df: pd.DataFrame, bins: int = 10) -> Figure:
    """Histogram of the ``Score`` column."""
    title = "Distribution of Exam Scores"
    if df.empty:
        return _empty_figure(title)
    fig = Figure(figsize=FIGSIZE)
    ax = fig.add_subplot()
    ax.hist(df["Score"], bins=bins, color="tab:green", edgecolor="black", label="Exam Scores")
    ax.set_title(title)
    ax.set_xlabel("Score")
    ax.set_ylabel("Frequency")
    ax.legend()
    fig.tight_layout()
    return fig


def gender_pie_chart(df: pd.DataFrame) -> Figure:
    """Pie chart of applicants per gender, labelled ``"<gender>: <count> (<share>)"``."""
    title = "Gender Distribution"
    if df.empty or df["Count"].sum() == 0:
        return _empty_figure(title)
    total = df["Count"].sum()
    labels = [
        f"{gender}: {count} ({count / total:.1%})"
        for gender, count in zip(df["Gender"].fillna("Unknown"), df["Count"])
    ]
    fig = Figure(figsize=FIGSIZE)
    ax = fig.add_subplot()
    ax.pie(df["Count"], labels=labels, startangle=90)
    ax.set_title(title)
    ax.axis("equal")
    return fig
