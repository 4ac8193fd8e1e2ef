# resume_ab/models.py
import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .db import Base


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value):
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class MaterialType(str, enum.Enum):
    RESUME = "resume"
    COVER_LETTER = "cover_letter"
    BOTH = "both"


class ExperimentStatus(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class ResponseType(str, enum.Enum):
    INTERVIEW_INVITE = "interview_invite"
    REJECTION = "rejection"
    PHONE_SCREEN = "phone_screen"
    NO_RESPONSE = "no_response"


def _enum_column(enum_cls, **kwargs):
    # Store the lowercase values ("cover_letter"), not the member names
    return Column(
        Enum(
            enum_cls,
            values_callable=lambda members: [m.value for m in members],
            native_enum=False,
            validate_strings=True,
        ),
        **kwargs,
    )


class Experiment(Base):
    __tablename__ = "ab_test_experiments"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    material_type = _enum_column(MaterialType, nullable=False)
    minimum_sample_size = Column(Integer, nullable=False, default=10)
    status = _enum_column(ExperimentStatus, nullable=False, default=ExperimentStatus.ACTIVE)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    end_date = Column(DateTime, nullable=True)  # set when status becomes completed

    # One-to-many: Experiment → Variants
    variants = relationship(
        "Variant",
        back_populates="experiment",
        cascade="all, delete-orphan",
        order_by="Variant.id",
    )
    trials = relationship("Trial", back_populates="experiment", order_by="Trial.id")
    results = relationship("ResultSnapshot", back_populates="experiment")


class Variant(Base):
    __tablename__ = "ab_test_variants"

    id = Column(Integer, primary_key=True, index=True)
    experiment_id = Column(Integer, ForeignKey("ab_test_experiments.id"), nullable=False, index=True)

    name = Column(String, nullable=False)  # e.g. "One-page modern"
    resume_version_id = Column(String, nullable=True)
    cover_letter_version_id = Column(String, nullable=True)
    description = Column(Text, nullable=True)

    # Descriptive attributes used by the insight generator
    format_type = Column(String, nullable=True)
    design_style = Column(String, nullable=True)
    length_pages = Column(Integer, nullable=True)
    word_count = Column(Integer, nullable=True)
    has_photo = Column(Boolean, nullable=False, default=False)
    has_color = Column(Boolean, nullable=False, default=False)

    archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)

    experiment = relationship("Experiment", back_populates="variants")

    # Deleting a variant removes its trials and its result snapshot
    trials = relationship(
        "Trial",
        back_populates="variant",
        cascade="all, delete-orphan",
        order_by="Trial.id",
    )
    result = relationship(
        "ResultSnapshot",
        back_populates="variant",
        uselist=False,
        cascade="all, delete-orphan",
    )


class Trial(Base):
    """One job application bound to one variant."""

    __tablename__ = "ab_test_applications"
    __table_args__ = (UniqueConstraint("job_id", "owner_id", name="uq_trial_job_owner"),)

    id = Column(Integer, primary_key=True, index=True)
    experiment_id = Column(Integer, ForeignKey("ab_test_experiments.id"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("ab_test_variants.id"), nullable=False, index=True)
    job_id = Column(Integer, nullable=False)
    owner_id = Column(String, nullable=False)
    assigned_at = Column(DateTime, nullable=False, default=utcnow)

    # Job context captured at assignment time
    job_industry = Column(String, nullable=True)
    job_level = Column(String, nullable=True)
    company_size = Column(String, nullable=True)

    # Outcome, filled in by the outcome recorder
    response_received = Column(Boolean, nullable=False, default=False)
    response_type = _enum_column(ResponseType, nullable=True)
    response_received_at = Column(DateTime, nullable=True)
    time_to_response_hours = Column(Integer, nullable=True)
    reached_interview = Column(Boolean, nullable=False, default=False)
    interview_date = Column(DateTime, nullable=True)
    reached_offer = Column(Boolean, nullable=False, default=False)
    offer_date = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    experiment = relationship("Experiment", back_populates="trials")
    variant = relationship("Variant", back_populates="trials")


class ResultSnapshot(Base):
    __tablename__ = "ab_test_results"
    __table_args__ = (UniqueConstraint("experiment_id", "variant_id", name="uq_result_experiment_variant"),)

    id = Column(Integer, primary_key=True, index=True)
    experiment_id = Column(Integer, ForeignKey("ab_test_experiments.id"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("ab_test_variants.id"), nullable=False)

    total_applications = Column(Integer, nullable=False, default=0)
    total_responses = Column(Integer, nullable=False, default=0)
    response_rate = Column(Float, nullable=False, default=0.0)
    avg_time_to_response_hours = Column(Float, nullable=True)
    total_interviews = Column(Integer, nullable=False, default=0)
    interview_conversion_rate = Column(Float, nullable=False, default=0.0)
    total_offers = Column(Integer, nullable=False, default=0)
    offer_rate = Column(Float, nullable=False, default=0.0)

    is_statistically_significant = Column(Boolean, nullable=False, default=False)
    p_value = Column(Float, nullable=True)
    confidence_level = Column(Integer, nullable=True)  # 95 when significant
    last_calculated_at = Column(DateTime, default=utcnow)

    experiment = relationship("Experiment", back_populates="results")
    variant = relationship("Variant", back_populates="result")
