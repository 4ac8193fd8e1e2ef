# resume_ab/insights.py
from typing import List, Sequence

import pandas as pd

from . import models
from .stats import round_half_up

NEED_MORE_VARIANTS = "Add at least 2 variants to start comparing performance."
NOT_SIGNIFICANT_YET = (
    "Results not yet statistically significant. "
    "Continue testing for more reliable insights."
)


def _fmt(value: float) -> str:
    # 60.0 -> "60", 33.33 -> "33.33"
    return f"{value:g}"


def _best(snapshots, key):
    # First snapshot holding the maximum wins
    best = snapshots[0]
    for snapshot in snapshots[1:]:
        if key(snapshot) > key(best):
            best = snapshot
    return best


def _format_averages(snapshots: Sequence[models.ResultSnapshot]) -> pd.Series:
    """Mean response rate per format_type, one vote per variant."""
    rows = [
        {"format_type": s.variant.format_type, "response_rate": s.response_rate}
        for s in snapshots
        if s.variant is not None and s.variant.format_type
    ]
    if not rows:
        return pd.Series(dtype=float)
    df = pd.DataFrame(rows)
    return df.groupby("format_type", sort=False)["response_rate"].mean()


def generate_insights(
    snapshots: Sequence[models.ResultSnapshot],
    trials: Sequence[models.Trial] = (),
) -> List[str]:
    """
    Plain-English observations for the experiment dashboard.

    snapshots must have their variant loaded. trials are the raw
    applications of the experiment; the current observations are all
    derived from the snapshots, which already summarise them.
    """
    if len(snapshots) < 2:
        return [NEED_MORE_VARIANTS]

    insights: List[str] = []

    best_response = _best(snapshots, lambda s: s.response_rate)
    insights.append(
        f'"{best_response.variant.name}" has the highest response rate '
        f"at {_fmt(best_response.response_rate)}%."
    )

    best_interview = _best(snapshots, lambda s: s.interview_conversion_rate)
    if best_interview.interview_conversion_rate > 0:
        insights.append(
            f'"{best_interview.variant.name}" converts best to interviews '
            f"at {_fmt(best_interview.interview_conversion_rate)}%."
        )

    # Time to response
    timed = [s for s in snapshots if s.avg_time_to_response_hours is not None]
    if timed:
        fastest = _best(timed, lambda s: -s.avg_time_to_response_hours)
        days = round_half_up(fastest.avg_time_to_response_hours / 24)
        insights.append(
            f'"{fastest.variant.name}" gets responses {days} days faster on average.'
        )

    # Format/style
    averages = _format_averages(snapshots)
    if len(averages) > 1:
        best_format = averages.idxmax()
        insights.append(
            f"{best_format} format performs best with a "
            f"{round_half_up(float(averages[best_format]))}% average response rate."
        )

    if not any(s.is_statistically_significant for s in snapshots):
        insights.append(NOT_SIGNIFICANT_YET)

    return insights
