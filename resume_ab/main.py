import logging
import random
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import config, schemas
from .db import SessionLocal, get_db, init_db
from .errors import NoVariantsAvailable, NotFound, ValidationError
from .recompute import RecomputeWorker
from .service import ExperimentService

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Missing tables are created at import, before the first request
init_db()

recompute_worker = RecomputeWorker(SessionLocal)
assignment_rng = random.Random(config.ASSIGNMENT_SEED)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if config.RECOMPUTE_MODE == "background":
        recompute_worker.start()
    yield
    if config.RECOMPUTE_MODE == "background":
        recompute_worker.stop()
        # Don't lose outcomes recorded just before shutdown
        recompute_worker.drain()


app = FastAPI(title="Resume A/B Testing", lifespan=lifespan)


# ==================== Errors ====================

def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return _error(404, exc)


@app.exception_handler(NoVariantsAvailable)
async def no_variants_handler(request: Request, exc: NoVariantsAvailable):
    return _error(409, exc)


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    return _error(422, exc)


@app.exception_handler(IntegrityError)
async def integrity_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s: %s", request.url.path, exc.orig)
    return JSONResponse(
        status_code=409,
        content={"detail": "This job is already assigned to an experiment variant."},
    )


# ==================== Dependencies ====================

def get_owner_id(x_user_id: Optional[str] = Header(None)) -> str:
    # Authentication lives in front of this service; it forwards the user id
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


def get_service(db: Session = Depends(get_db)) -> ExperimentService:
    return ExperimentService(db, rng=assignment_rng, worker=recompute_worker)


# ==================== Routes ====================

@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/experiments", response_model=schemas.ExperimentOut)
def create_experiment(
    body: schemas.ExperimentCreate,
    owner_id: str = Depends(get_owner_id),
    service: ExperimentService = Depends(get_service),
):
    experiment = service.create_experiment(
        owner_id,
        name=body.name,
        material_type=body.material_type,
        minimum_sample_size=body.minimum_sample_size,
        notes=body.notes,
    )
    return schemas.ExperimentOut.model_validate(experiment)


@app.get("/experiments", response_model=List[schemas.ExperimentOut])
def list_experiments(
    owner_id: str = Depends(get_owner_id),
    service: ExperimentService = Depends(get_service),
):
    return [schemas.ExperimentOut.model_validate(e) for e in service.list_experiments(owner_id)]


@app.get("/experiments/{experiment_id}", response_model=schemas.ExperimentDetail)
def get_experiment(
    experiment_id: int,
    owner_id: str = Depends(get_owner_id),
    service: ExperimentService = Depends(get_service),
):
    experiment = service.get_experiment(owner_id, experiment_id)
    return schemas.ExperimentDetail.model_validate(experiment)


@app.put("/experiments/{experiment_id}/status", response_model=schemas.ExperimentOut)
def update_experiment_status(
    experiment_id: int,
    body: schemas.StatusUpdate,
    owner_id: str = Depends(get_owner_id),
    service: ExperimentService = Depends(get_service),
):
    experiment = service.update_status(owner_id, experiment_id, body.status)
    return schemas.ExperimentOut.model_validate(experiment)


@app.post("/experiments/{experiment_id}/variants", response_model=schemas.VariantOut)
def add_variant(
    experiment_id: int,
    body: schemas.VariantCreate,
    owner_id: str = Depends(get_owner_id),
    service: ExperimentService = Depends(get_service),
):
    variant = service.add_variant(owner_id, experiment_id, body.model_dump())
    return schemas.VariantOut.model_validate(variant)


@app.get("/experiments/{experiment_id}/variants", response_model=List[schemas.VariantOut])
def list_variants(
    experiment_id: int,
    owner_id: str = Depends(get_owner_id),
    service: ExperimentService = Depends(get_service),
):
    return [schemas.VariantOut.model_validate(v) for v in service.list_variants(owner_id, experiment_id)]


@app.delete("/variants/{variant_id}")
def archive_variant(
    variant_id: int,
    owner_id: str = Depends(get_owner_id),
    service: ExperimentService = Depends(get_service),
):
    return service.archive_variant(owner_id, variant_id)


@app.post("/experiments/{experiment_id}/assign-job", response_model=schemas.AssignmentOut)
def assign_job(
    experiment_id: int,
    body: schemas.AssignJob,
    owner_id: str = Depends(get_owner_id),
    service: ExperimentService = Depends(get_service),
):
    job_details = body.job_details.model_dump() if body.job_details else None
    assignment = service.assign_job(owner_id, experiment_id, body.job_id, job_details)
    return schemas.AssignmentOut.model_validate(assignment.trial)


@app.post("/track-response", response_model=Optional[schemas.TrialOut])
def track_response(
    body: schemas.TrackResponse,
    owner_id: str = Depends(get_owner_id),
    service: ExperimentService = Depends(get_service),
):
    data = body.response_data
    trial = service.track_response(
        owner_id,
        body.job_id,
        data.response_type,
        response_received_at=data.response_received_at,
        reached_interview=data.reached_interview,
        interview_date=data.interview_date,
        reached_offer=data.reached_offer,
        offer_date=data.offer_date,
    )
    # None: the job is not part of an experiment
    return schemas.TrialOut.model_validate(trial) if trial is not None else None


@app.post("/experiments/{experiment_id}/calculate", response_model=List[schemas.ResultOut])
def calculate_results(
    experiment_id: int,
    owner_id: str = Depends(get_owner_id),
    service: ExperimentService = Depends(get_service),
):
    return [schemas.ResultOut.model_validate(s) for s in service.calculate(owner_id, experiment_id)]


@app.get("/experiments/{experiment_id}/dashboard", response_model=schemas.DashboardOut)
def experiment_dashboard(
    experiment_id: int,
    include_report: bool = False,
    owner_id: str = Depends(get_owner_id),
    service: ExperimentService = Depends(get_service),
):
    dashboard = service.dashboard(owner_id, experiment_id, include_report=include_report)
    return schemas.DashboardOut.model_validate(dashboard, from_attributes=True)
