# resume_ab/results.py
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from . import models
from .errors import ValidationError
from .repository import Repository
from .stats import percentage, round_half_up, significance

logger = logging.getLogger(__name__)

TRIAL_COLUMNS = [
    "response_received",
    "reached_interview",
    "reached_offer",
    "time_to_response_hours",
]

SIGNIFICANT_CONFIDENCE_LEVEL = 95


def trials_frame(trials: Iterable[models.Trial]) -> pd.DataFrame:
    """One row per trial with the outcome columns the aggregation needs."""
    rows = [
        {
            "response_received": bool(t.response_received),
            "reached_interview": bool(t.reached_interview),
            "reached_offer": bool(t.reached_offer),
            "time_to_response_hours": t.time_to_response_hours,
        }
        for t in trials
    ]
    return pd.DataFrame(rows, columns=TRIAL_COLUMNS)


def compute_variant_metrics(trials: Iterable[models.Trial]) -> Optional[Dict[str, Any]]:
    """
    Funnel metrics for the trials of one variant.

    Returns None for an empty trial set (nothing to report), otherwise a
    dict with the same keys as the ResultSnapshot columns:
    {
      "total_applications": 10, "total_responses": 6, "response_rate": 60.0,
      "avg_time_to_response_hours": 36.5, ..., "p_value": 0.5271,
    }
    """
    df = trials_frame(trials)
    total_apps = len(df)
    if total_apps == 0:
        return None

    total_responses = int(df["response_received"].sum())
    total_interviews = int(df["reached_interview"].sum())
    total_offers = int(df["reached_offer"].sum())

    # Average time to response, only over trials that have one
    times = pd.to_numeric(df["time_to_response_hours"], errors="coerce").dropna()
    if (times < 0).any():
        raise ValidationError("time_to_response_hours must not be negative")
    avg_time = round_half_up(float(times.mean()), 2) if len(times) else None

    result = significance(total_apps, total_responses)

    return {
        "total_applications": total_apps,
        "total_responses": total_responses,
        "response_rate": percentage(total_responses, total_apps),
        "avg_time_to_response_hours": avg_time,
        "total_interviews": total_interviews,
        "interview_conversion_rate": percentage(total_interviews, total_apps),
        "total_offers": total_offers,
        "offer_rate": percentage(total_offers, total_apps),
        "is_statistically_significant": result.is_significant,
        "p_value": result.p_value,
        "confidence_level": SIGNIFICANT_CONFIDENCE_LEVEL if result.is_significant else None,
    }


class ResultsAggregator:
    """
    Rebuilds every result snapshot of an experiment from its trials.

    Snapshots are always derived from the full trial set and overwritten,
    so running it twice (or concurrently) gives the same numbers.
    """

    def __init__(self, repository: Repository):
        self.repository = repository

    def recompute(self, experiment_id: int) -> List[models.ResultSnapshot]:
        snapshots = []
        for variant in self.repository.list_variants(experiment_id):
            trials = self.repository.list_trials_by_variant(variant.id)
            metrics = compute_variant_metrics(trials)
            if metrics is None:
                logger.debug("Variant %s has no trials yet, skipping", variant.id)
                continue
            snapshots.append(
                self.repository.upsert_result_snapshot(experiment_id, variant.id, metrics)
            )

        logger.info(
            "Recomputed %d result snapshot(s) for experiment %s",
            len(snapshots), experiment_id,
        )
        return snapshots


def select_winner(snapshots: Sequence[models.ResultSnapshot]) -> Optional[models.ResultSnapshot]:
    """
    Best snapshot by response rate, ties broken by interview conversion
    rate. The first snapshot wins any remaining tie.
    """
    if not snapshots:
        return None

    best = snapshots[0]
    for candidate in snapshots[1:]:
        if candidate.response_rate > best.response_rate:
            best = candidate
        elif (
            candidate.response_rate == best.response_rate
            and candidate.interview_conversion_rate > best.interview_conversion_rate
        ):
            best = candidate
    return best
