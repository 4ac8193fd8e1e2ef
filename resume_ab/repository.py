# resume_ab/repository.py
"""
SQLAlchemy storage for experiments, variants, trials and result snapshots.

The engine modules only talk to the database through this class, so a
different backend only has to provide the same methods.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from . import models
from .errors import NotFound
from .models import utcnow

logger = logging.getLogger(__name__)

TRIAL_OUTCOME_FIELDS = {
    "response_received",
    "response_type",
    "response_received_at",
    "time_to_response_hours",
    "reached_interview",
    "interview_date",
    "reached_offer",
    "offer_date",
}

VARIANT_FIELDS = {
    "name",
    "resume_version_id",
    "cover_letter_version_id",
    "description",
    "format_type",
    "design_style",
    "length_pages",
    "word_count",
    "has_photo",
    "has_color",
}


class Repository:
    def __init__(self, db: Session):
        self.db = db

    # ==================== Experiments ====================

    def create_experiment(
        self,
        owner_id: str,
        name: str,
        material_type: models.MaterialType,
        minimum_sample_size: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> models.Experiment:
        experiment = models.Experiment(
            owner_id=owner_id,
            name=name,
            material_type=material_type,
            minimum_sample_size=minimum_sample_size or 10,
            notes=notes,
            status=models.ExperimentStatus.ACTIVE,
        )
        self.db.add(experiment)
        self.db.commit()
        self.db.refresh(experiment)  # gives us experiment.id
        return experiment

    def list_experiments(self, owner_id: str) -> List[models.Experiment]:
        return (
            self.db.query(models.Experiment)
            .options(joinedload(models.Experiment.variants))
            .filter(models.Experiment.owner_id == owner_id)
            .order_by(models.Experiment.created_at.desc(), models.Experiment.id.desc())
            .all()
        )

    def get_experiment(self, owner_id: str, experiment_id: int) -> models.Experiment:
        experiment = (
            self.db.query(models.Experiment)
            .filter(
                models.Experiment.id == experiment_id,
                models.Experiment.owner_id == owner_id,
            )
            .first()
        )
        if not experiment:
            raise NotFound(f"Experiment {experiment_id} not found")
        return experiment

    def update_experiment_status(
        self,
        owner_id: str,
        experiment_id: int,
        status: models.ExperimentStatus,
    ) -> models.Experiment:
        experiment = self.get_experiment(owner_id, experiment_id)
        experiment.status = status
        # end_date only describes a completed experiment
        experiment.end_date = utcnow() if status == models.ExperimentStatus.COMPLETED else None
        self.db.commit()
        self.db.refresh(experiment)
        return experiment

    # ==================== Variants ====================

    def add_variant(self, experiment_id: int, data: Dict[str, Any]) -> models.Variant:
        fields = {k: v for k, v in data.items() if k in VARIANT_FIELDS}
        fields["has_photo"] = bool(fields.get("has_photo"))
        fields["has_color"] = bool(fields.get("has_color"))
        variant = models.Variant(experiment_id=experiment_id, **fields)
        self.db.add(variant)
        self.db.commit()
        self.db.refresh(variant)
        return variant

    def list_variants(self, experiment_id: int) -> List[models.Variant]:
        return (
            self.db.query(models.Variant)
            .filter(models.Variant.experiment_id == experiment_id)
            .order_by(models.Variant.id)
            .all()
        )

    def list_active_variants(self, experiment_id: int) -> List[models.Variant]:
        return (
            self.db.query(models.Variant)
            .filter(
                models.Variant.experiment_id == experiment_id,
                models.Variant.archived.is_(False),
            )
            .order_by(models.Variant.id)
            .all()
        )

    def get_owned_variant(self, owner_id: str, variant_id: int) -> models.Variant:
        variant = (
            self.db.query(models.Variant)
            .join(models.Experiment)
            .filter(
                models.Variant.id == variant_id,
                models.Experiment.owner_id == owner_id,
            )
            .first()
        )
        if not variant:
            raise NotFound(f"Variant {variant_id} not found")
        return variant

    def delete_variant(self, variant: models.Variant) -> None:
        # Trials and the result snapshot go with it (relationship cascade)
        variant_id = variant.id
        trial_count = len(variant.trials)
        self.db.delete(variant)
        self.db.commit()
        logger.info("Deleted variant %s with %d trial(s)", variant_id, trial_count)

    def mark_variant_archived(self, variant: models.Variant) -> None:
        variant.archived = True
        self.db.commit()

    # ==================== Trials ====================

    def create_trial(
        self,
        experiment_id: int,
        variant_id: int,
        job_id: int,
        owner_id: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> models.Trial:
        context = context or {}
        trial = models.Trial(
            experiment_id=experiment_id,
            variant_id=variant_id,
            job_id=job_id,
            owner_id=owner_id,
            assigned_at=utcnow(),
            job_industry=context.get("industry"),
            job_level=context.get("level"),
            company_size=context.get("company_size"),
        )
        self.db.add(trial)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(trial)
        return trial

    def find_trial_by_job(self, job_id: int, owner_id: str) -> Optional[models.Trial]:
        return (
            self.db.query(models.Trial)
            .filter(models.Trial.job_id == job_id, models.Trial.owner_id == owner_id)
            .first()
        )

    def update_trial(self, trial_id: int, patch: Dict[str, Any]) -> models.Trial:
        trial = self.db.get(models.Trial, trial_id)
        if trial is None:
            raise NotFound(f"Trial {trial_id} not found")
        unknown = set(patch) - TRIAL_OUTCOME_FIELDS
        if unknown:
            raise ValueError(f"Cannot update trial fields: {', '.join(sorted(unknown))}")
        for key, value in patch.items():
            setattr(trial, key, value)
        self.db.commit()
        self.db.refresh(trial)
        return trial

    def list_trials_by_variant(self, variant_id: int) -> List[models.Trial]:
        return (
            self.db.query(models.Trial)
            .filter(models.Trial.variant_id == variant_id)
            .order_by(models.Trial.id)
            .all()
        )

    def list_trials_by_experiment(self, experiment_id: int) -> List[models.Trial]:
        return (
            self.db.query(models.Trial)
            .filter(models.Trial.experiment_id == experiment_id)
            .order_by(models.Trial.id)
            .all()
        )

    # ==================== Result snapshots ====================

    def upsert_result_snapshot(
        self,
        experiment_id: int,
        variant_id: int,
        values: Dict[str, Any],
    ) -> models.ResultSnapshot:
        snapshot = (
            self.db.query(models.ResultSnapshot)
            .filter(
                models.ResultSnapshot.experiment_id == experiment_id,
                models.ResultSnapshot.variant_id == variant_id,
            )
            .first()
        )
        if snapshot is None:
            snapshot = models.ResultSnapshot(experiment_id=experiment_id, variant_id=variant_id)
            self.db.add(snapshot)

        # Full overwrite, never a patch of the previous numbers
        for key, value in values.items():
            setattr(snapshot, key, value)
        snapshot.last_calculated_at = utcnow()

        self.db.commit()
        self.db.refresh(snapshot)
        return snapshot

    def list_result_snapshots(self, experiment_id: int) -> List[models.ResultSnapshot]:
        return (
            self.db.query(models.ResultSnapshot)
            .options(joinedload(models.ResultSnapshot.variant))
            .filter(models.ResultSnapshot.experiment_id == experiment_id)
            .order_by(models.ResultSnapshot.response_rate.desc(), models.ResultSnapshot.id)
            .all()
        )
