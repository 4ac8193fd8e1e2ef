# resume_ab/schemas.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import ExperimentStatus, MaterialType, ResponseType


# ==================== Requests ====================

class ExperimentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    material_type: MaterialType
    minimum_sample_size: Optional[int] = Field(None, ge=1)
    notes: Optional[str] = None


class StatusUpdate(BaseModel):
    status: ExperimentStatus


class VariantCreate(BaseModel):
    name: str = Field(..., min_length=1)
    resume_version_id: Optional[str] = None
    cover_letter_version_id: Optional[str] = None
    description: Optional[str] = None
    format_type: Optional[str] = None
    design_style: Optional[str] = None
    length_pages: Optional[int] = Field(None, ge=0)
    word_count: Optional[int] = Field(None, ge=0)
    has_photo: bool = False
    has_color: bool = False


class JobDetails(BaseModel):
    industry: Optional[str] = None
    level: Optional[str] = None
    company_size: Optional[str] = None


class AssignJob(BaseModel):
    job_id: int
    job_details: Optional[JobDetails] = None


class ResponseData(BaseModel):
    response_type: ResponseType
    response_received_at: Optional[datetime] = None
    reached_interview: bool = False
    interview_date: Optional[datetime] = None
    reached_offer: bool = False
    offer_date: Optional[datetime] = None


class TrackResponse(BaseModel):
    job_id: int
    response_data: ResponseData


# ==================== Responses ====================

class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class VariantOut(ORMModel):
    id: int
    experiment_id: int
    name: str
    resume_version_id: Optional[str] = None
    cover_letter_version_id: Optional[str] = None
    description: Optional[str] = None
    format_type: Optional[str] = None
    design_style: Optional[str] = None
    length_pages: Optional[int] = None
    word_count: Optional[int] = None
    has_photo: bool
    has_color: bool
    archived: bool
    created_at: Optional[datetime] = None


class ExperimentOut(ORMModel):
    id: int
    owner_id: str
    name: str
    material_type: MaterialType
    minimum_sample_size: int
    status: ExperimentStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    end_date: Optional[datetime] = None
    variants: List[VariantOut] = []


class TrialOut(ORMModel):
    id: int
    experiment_id: int
    variant_id: int
    job_id: int
    owner_id: str
    assigned_at: datetime
    job_industry: Optional[str] = None
    job_level: Optional[str] = None
    company_size: Optional[str] = None
    response_received: bool
    response_type: Optional[ResponseType] = None
    response_received_at: Optional[datetime] = None
    time_to_response_hours: Optional[int] = None
    reached_interview: bool
    interview_date: Optional[datetime] = None
    reached_offer: bool
    offer_date: Optional[datetime] = None


class AssignmentOut(TrialOut):
    variant: VariantOut


class ResultOut(ORMModel):
    experiment_id: int
    variant_id: int
    variant: Optional[VariantOut] = None
    total_applications: int
    total_responses: int
    response_rate: float
    avg_time_to_response_hours: Optional[float] = None
    total_interviews: int
    interview_conversion_rate: float
    total_offers: int
    offer_rate: float
    is_statistically_significant: bool
    p_value: Optional[float] = None
    confidence_level: Optional[int] = None
    last_calculated_at: Optional[datetime] = None


class ExperimentDetail(ExperimentOut):
    trials: List[TrialOut] = []
    results: List[ResultOut] = []


class Summary(BaseModel):
    total_applications: int
    total_responses: int
    overall_response_rate: float


class Report(BaseModel):
    report_text: str
    recommendation: str


class DashboardOut(ORMModel):
    experiment: ExperimentOut
    results: List[ResultOut]
    applications: List[TrialOut]
    winning_variant: Optional[ResultOut] = None
    insights: List[str]
    summary: Summary
    report: Optional[Report] = None
