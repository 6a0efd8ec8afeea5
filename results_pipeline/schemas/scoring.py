"""
Scoring and Rubric API Schemas (Pydantic)
"""
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ScoreEntryIn(BaseModel):
    """One criterion score from a judge."""
    criterion_id: int = Field(..., ge=1)
    score: Decimal = Field(..., ge=0, max_digits=8, decimal_places=2, allow_inf_nan=False)
    feedback: Optional[str] = Field(default=None, max_length=5000)

    @field_validator('feedback')
    @classmethod
    def strip_feedback(cls, v):
        if v is None:
            return v
        v = v.strip()
        return v or None


class SubmitScoresRequest(BaseModel):
    scores: List[ScoreEntryIn] = Field(..., min_length=1)


class SubmitScoresResponse(BaseModel):
    submission_id: int
    judge_id: str
    saved: int
    updated: int


class CriterionIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    max_score: Decimal = Field(..., gt=0, max_digits=8, decimal_places=2, allow_inf_nan=False)
    weight: Decimal = Field(default=Decimal("1"), ge=0, max_digits=8, decimal_places=2, allow_inf_nan=False)
    display_order: Optional[int] = Field(default=None, ge=0)

    @field_validator('title')
    @classmethod
    def strip_title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v


class SaveRubricRequest(BaseModel):
    criteria: List[CriterionIn] = Field(..., min_length=1)


class CriterionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    title: str
    description: Optional[str] = None
    max_score: float
    weight: float
    display_order: int


class JudgeProgress(BaseModel):
    judge_id: str
    submissions_scored: int


class ScoringProgressResponse(BaseModel):
    event_id: int
    results_status: str
    total_submissions: int
    reviewed_submissions: int
    pending_submissions: int
    criteria_count: int
    judges: List[JudgeProgress]
