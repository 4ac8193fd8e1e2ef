# resume_ab/service.py
"""
Operations behind the HTTP routes: ownership checks, then the engine.
"""
import logging
import random
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
from sqlalchemy.orm import Session

from . import ai_client, config, models
from .assignment import Assignment, VariantAllocator
from .insights import generate_insights
from .outcomes import record_outcome
from .recompute import RecomputeWorker
from .repository import Repository
from .results import ResultsAggregator, select_winner
from .stats import percentage

logger = logging.getLogger(__name__)


class ExperimentService:
    def __init__(
        self,
        db: Session,
        rng: Optional[random.Random] = None,
        worker: Optional[RecomputeWorker] = None,
        recompute_mode: str = config.RECOMPUTE_MODE,
        archive_mode: str = config.ARCHIVE_MODE,
    ):
        self.repository = Repository(db)
        self.allocator = VariantAllocator(self.repository, rng=rng)
        self.aggregator = ResultsAggregator(self.repository)
        self.worker = worker
        self.recompute_mode = recompute_mode
        self.archive_mode = archive_mode

    # ==================== Experiments ====================

    def create_experiment(
        self,
        owner_id: str,
        name: str,
        material_type: models.MaterialType,
        minimum_sample_size: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> models.Experiment:
        experiment = self.repository.create_experiment(
            owner_id, name, material_type, minimum_sample_size, notes
        )
        logger.info("Created experiment %s for %s", experiment.id, owner_id)
        return experiment

    def list_experiments(self, owner_id: str) -> List[models.Experiment]:
        return self.repository.list_experiments(owner_id)

    def get_experiment(self, owner_id: str, experiment_id: int) -> models.Experiment:
        return self.repository.get_experiment(owner_id, experiment_id)

    def update_status(
        self,
        owner_id: str,
        experiment_id: int,
        status: models.ExperimentStatus,
    ) -> models.Experiment:
        experiment = self.repository.update_experiment_status(owner_id, experiment_id, status)
        logger.info("Experiment %s is now %s", experiment_id, experiment.status.value)
        return experiment

    # ==================== Variants ====================

    def add_variant(self, owner_id: str, experiment_id: int, data: Dict[str, Any]) -> models.Variant:
        self.repository.get_experiment(owner_id, experiment_id)
        return self.repository.add_variant(experiment_id, data)

    def list_variants(self, owner_id: str, experiment_id: int) -> List[models.Variant]:
        self.repository.get_experiment(owner_id, experiment_id)
        return self.repository.list_active_variants(experiment_id)

    def archive_variant(self, owner_id: str, variant_id: int) -> Dict[str, bool]:
        variant = self.repository.get_owned_variant(owner_id, variant_id)
        if self.archive_mode == "soft":
            self.repository.mark_variant_archived(variant)
            logger.info("Archived variant %s, trials kept", variant_id)
        else:
            self.repository.delete_variant(variant)
        return {"success": True}

    # ==================== Applications ====================

    def assign_job(
        self,
        owner_id: str,
        experiment_id: int,
        job_id: int,
        job_details: Optional[Dict[str, Any]] = None,
    ) -> Assignment:
        self.repository.get_experiment(owner_id, experiment_id)
        return self.allocator.assign(experiment_id, owner_id, job_id, job_details)

    def track_response(
        self,
        owner_id: str,
        job_id: int,
        response_type: models.ResponseType,
        response_received_at: Optional[datetime] = None,
        reached_interview: bool = False,
        interview_date: Optional[datetime] = None,
        reached_offer: bool = False,
        offer_date: Optional[datetime] = None,
    ) -> Optional[models.Trial]:
        return record_outcome(
            self.repository,
            job_id,
            owner_id,
            response_type,
            response_received_at=response_received_at,
            reached_interview=reached_interview,
            interview_date=interview_date,
            reached_offer=reached_offer,
            offer_date=offer_date,
            on_recorded=self._results_changed,
        )

    def _results_changed(self, experiment_id: int) -> None:
        if self.recompute_mode == "background" and self.worker is not None:
            self.worker.mark_dirty(experiment_id)
        else:
            self.aggregator.recompute(experiment_id)

    # ==================== Results & analytics ====================

    def calculate(self, owner_id: str, experiment_id: int) -> List[models.ResultSnapshot]:
        self.repository.get_experiment(owner_id, experiment_id)
        return self.aggregator.recompute(experiment_id)

    def dashboard(
        self,
        owner_id: str,
        experiment_id: int,
        include_report: bool = False,
    ) -> Dict[str, Any]:
        experiment = self.repository.get_experiment(owner_id, experiment_id)
        results = self.repository.list_result_snapshots(experiment_id)
        applications = self.repository.list_trials_by_experiment(experiment_id)

        responses = sum(1 for t in applications if t.response_received)
        dashboard = {
            "experiment": experiment,
            "results": results,
            "applications": applications,
            "winning_variant": select_winner(results),
            "insights": generate_insights(results, applications),
            "summary": {
                "total_applications": len(applications),
                "total_responses": responses,
                "overall_response_rate": percentage(responses, len(applications)),
            },
            "report": None,
        }

        if include_report and results:
            try:
                dashboard["report"] = ai_client.generate_report(experiment, results)
            except (requests.RequestException, KeyError, ValueError) as err:
                # Non-fatal: the dashboard is complete without the narrative
                logger.warning("Report generation failed for experiment %s: %s", experiment_id, err)

        return dashboard
