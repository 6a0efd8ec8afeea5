"""
Lifecycle and Results API Schemas (Pydantic)
"""
from typing import Dict, List, Optional

from pydantic import BaseModel


class EventStatusResponse(BaseModel):
    id: int
    title: str
    results_status: str
    public_vote_weight: int
    results_published_at: Optional[str] = None
    computed_results: int
    issued_credentials: int
    allowed_operations: List[str]


class TransitionResponse(BaseModel):
    success: bool
    event_id: int
    results_status: str
    message: str


class ComputeResponse(TransitionResponse):
    computed_results: int


class PublishResponse(TransitionResponse):
    issued_credentials: int
    results_published_at: Optional[str] = None


class OperationCheckResponse(BaseModel):
    event_id: int
    operation: str
    allowed: bool
    reason: str


class ResultResponse(BaseModel):
    submission_id: int
    event_id: int
    student_id: int
    raw_score: str
    weighted_score: str
    public_vote_score: str
    public_vote_count: int
    judge_count: int
    rank: int
    tier: str
    computed_at: Optional[str] = None


class EventResultsResponse(BaseModel):
    event_id: int
    results_status: str
    tiers: Dict[str, int]
    results: List[ResultResponse]


class LeaderboardEntry(BaseModel):
    submission_id: int
    student_id: int
    student_name: str
    school_name: str
    weighted_score: str
    rank: int
    tier: str
    credential_id: Optional[str] = None


class LeaderboardResponse(BaseModel):
    event_id: int
    title: str
    results_published_at: Optional[str] = None
    results: List[LeaderboardEntry]


class VoteResponse(BaseModel):
    success: bool
    submission_id: int
    vote_count: int
