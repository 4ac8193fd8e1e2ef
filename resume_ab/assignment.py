# resume_ab/assignment.py
import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, Optional

from . import models
from .errors import NoVariantsAvailable
from .repository import Repository

logger = logging.getLogger(__name__)


@dataclass
class Assignment:
    """The trial that was created and the variant it was bound to."""

    trial: models.Trial
    variant: models.Variant


class VariantAllocator:
    """
    Assigns job applications to variants with equal probability.

    The random source is injected so tests can pass a seeded
    random.Random; by default every allocator gets its own unseeded one.
    """

    def __init__(self, repository: Repository, rng: Optional[random.Random] = None):
        self.repository = repository
        self.rng = rng or random.Random()

    def assign(
        self,
        experiment_id: int,
        owner_id: str,
        job_id: int,
        job_context: Optional[Dict[str, Any]] = None,
    ) -> Assignment:
        # Point-in-time view of the active variants, no locking
        variants = self.repository.list_active_variants(experiment_id)
        if not variants:
            raise NoVariantsAvailable(
                f"No variants available for experiment {experiment_id}"
            )

        selected = variants[self.rng.randrange(len(variants))]

        trial = self.repository.create_trial(
            experiment_id=experiment_id,
            variant_id=selected.id,
            job_id=job_id,
            owner_id=owner_id,
            context=job_context,
        )
        logger.info(
            "Assigned job %s to variant %s (experiment %s, %d candidates)",
            job_id, selected.id, experiment_id, len(variants),
        )
        return Assignment(trial=trial, variant=selected)
