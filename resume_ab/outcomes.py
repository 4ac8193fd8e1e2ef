# resume_ab/outcomes.py
import logging
from datetime import datetime
from typing import Callable, Optional, Union

from . import models
from .errors import ValidationError
from .models import ResponseType, to_utc_naive
from .repository import Repository
from .stats import round_half_up

logger = logging.getLogger(__name__)


def hours_between(start: datetime, end: datetime) -> int:
    """Whole hours from start to end, halves rounded up."""
    seconds = (to_utc_naive(end) - to_utc_naive(start)).total_seconds()
    if seconds < 0:
        raise ValidationError(
            f"Response received at {end.isoformat()} precedes assignment at {start.isoformat()}"
        )
    return round_half_up(seconds / 3600)


def record_outcome(
    repository: Repository,
    job_id: int,
    owner_id: str,
    response_type: Union[ResponseType, str],
    response_received_at: Optional[datetime] = None,
    reached_interview: bool = False,
    interview_date: Optional[datetime] = None,
    reached_offer: bool = False,
    offer_date: Optional[datetime] = None,
    on_recorded: Optional[Callable[[int], None]] = None,
) -> Optional[models.Trial]:
    """
    Store the employer's response for a job application.

    Returns None when the job was never assigned to a variant; that is
    not an error, most jobs are not part of any experiment.

    Every call overwrites the previous outcome of the trial. After the
    update, on_recorded is called with the trial's experiment id so the
    caller can recompute (or schedule recomputing) the results.
    """
    try:
        response_type = ResponseType(response_type)
    except ValueError:
        raise ValidationError(f"Unknown response type: {response_type!r}")

    trial = repository.find_trial_by_job(job_id, owner_id)
    if trial is None:
        logger.debug("Job %s of %s is not part of an experiment", job_id, owner_id)
        return None

    time_to_response_hours = None
    if response_received_at is not None:
        time_to_response_hours = hours_between(trial.assigned_at, response_received_at)

    trial = repository.update_trial(
        trial.id,
        {
            "response_received": response_type != ResponseType.NO_RESPONSE,
            "response_type": response_type,
            "response_received_at": to_utc_naive(response_received_at),
            "time_to_response_hours": time_to_response_hours,
            "reached_interview": bool(reached_interview),
            "interview_date": to_utc_naive(interview_date),
            "reached_offer": bool(reached_offer),
            "offer_date": to_utc_naive(offer_date),
        },
    )
    logger.info(
        "Recorded %s for job %s (trial %s, variant %s)",
        response_type.value, job_id, trial.id, trial.variant_id,
    )

    if on_recorded is not None:
        on_recorded(trial.experiment_id)

    return trial
